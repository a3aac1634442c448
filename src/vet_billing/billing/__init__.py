"""
Billing engine: aggregation, document rendering and invoice lifecycle.

This module exposes the three components of the billing engine:

- ``BillingAggregator`` / ``compute_bill_lines`` turn examinations into bill lines
- ``InvoiceRenderer`` serializes an invoice to an XLSX document
- ``InvoiceLifecycleManager`` issues, renders and settles invoices
"""

from .aggregator import BillingAggregator, compute_bill_lines
from .lifecycle import InvoiceLifecycleManager
from .renderer import XLSX_MIME_TYPE, InvoiceRenderer, document_filename

__all__ = [
    # Aggregation
    "BillingAggregator",
    "compute_bill_lines",
    # Rendering
    "InvoiceRenderer",
    "XLSX_MIME_TYPE",
    "document_filename",
    # Lifecycle
    "InvoiceLifecycleManager",
]
