"""
Pydantic schemas for request/response validation and serialization.

Every operation of the billing engine takes and returns one of these typed
structs instead of loose dictionaries.
"""

from .common import DateRange, parse_request
from .examination import (
    ExaminationCreate,
    ExaminationLineItemCreate,
    ExaminationLineView,
    ExaminationRecord,
)
from .invoice import (
    BillLine,
    BillSummary,
    GeneratedInvoice,
    GenerateInvoiceRequest,
    InvoiceCreate,
    InvoiceDashboardSummary,
    InvoiceDocument,
    InvoiceDraft,
    InvoiceListItem,
    InvoiceResponse,
)
from .owner import OwnerResponse

__all__ = [
    # Shared
    "DateRange",
    "parse_request",
    # Owner schemas
    "OwnerResponse",
    # Examination schemas
    "ExaminationCreate",
    "ExaminationLineItemCreate",
    "ExaminationLineView",
    "ExaminationRecord",
    # Invoice schemas
    "BillLine",
    "BillSummary",
    "InvoiceCreate",
    "InvoiceResponse",
    "InvoiceListItem",
    "InvoiceDraft",
    "InvoiceDocument",
    "GeneratedInvoice",
    "GenerateInvoiceRequest",
    "InvoiceDashboardSummary",
]
