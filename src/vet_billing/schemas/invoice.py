"""
Invoice Pydantic schemas for billing requests and responses.

This module contains the computed bill structures produced by the
aggregator, the insert payload handed to the repository, and the response
structs returned to the presentation layer.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.invoice import InvoiceStatus
from ..utils.money import exact_sum, round_money
from .common import DateRange


class BillLine(BaseModel):
    """One billable line: a medication administered in one examination."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    examination_id: int
    line_item_id: int
    examination_date: date
    description: str = Field(..., description="Medication name")
    quantity: Decimal
    unit_price: Decimal = Field(..., description="Captured unit price")
    line_total: Decimal = Field(..., description="quantity * unit_price, unrounded")


class BillSummary(BaseModel):
    """Ordered bill lines and their total for one owner."""

    model_config = ConfigDict(frozen=True)

    owner_id: Optional[int] = None
    lines: List[BillLine] = Field(default_factory=list)
    total: Decimal = Field(Decimal("0.00"), description="Rounded half-up to cents")
    examination_ids: List[int] = Field(
        default_factory=list, description="Every examination that was aggregated"
    )

    @property
    def is_empty(self) -> bool:
        """Whether there is nothing to bill."""
        return not self.lines


class InvoiceCreate(BaseModel):
    """Insert payload for a new invoice with its line snapshot."""

    owner_id: int = Field(..., gt=0)
    total_amount: Decimal = Field(..., ge=0, decimal_places=2)
    due_date: date
    issued_at: Optional[datetime] = Field(
        None, description="Creation time; the due date is derived from it"
    )
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    lines: List[BillLine] = Field(default_factory=list)
    examination_ids: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_total(self) -> "InvoiceCreate":
        """The total is derived from the lines and cannot be set independently."""
        expected = round_money(exact_sum(line.line_total for line in self.lines))
        if self.total_amount != expected:
            raise ValueError(
                f"Invoice total {self.total_amount} does not match line total {expected}"
            )
        return self

    @classmethod
    def from_summary(
        cls,
        summary: BillSummary,
        owner_id: int,
        due_date: date,
        date_range: Optional[DateRange] = None,
        issued_at: Optional[datetime] = None,
    ) -> "InvoiceCreate":
        """Build the insert payload from a computed bill."""
        return cls(
            owner_id=owner_id,
            total_amount=summary.total,
            due_date=due_date,
            issued_at=issued_at,
            period_start=date_range.start if date_range else None,
            period_end=date_range.end if date_range else None,
            lines=list(summary.lines),
            examination_ids=list(summary.examination_ids),
        )


class InvoiceResponse(BaseModel):
    """Schema for invoice response data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    total_amount: Decimal
    paid: bool
    due_date: date
    paid_at: Optional[datetime] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    created_at: datetime
    status: InvoiceStatus


class InvoiceListItem(InvoiceResponse):
    """Invoice with its owner's name resolved for display."""

    owner_name: str


class InvoiceDraft(BaseModel):
    """A computed, not yet persisted invoice."""

    model_config = ConfigDict(frozen=True)

    owner_id: int
    status: InvoiceStatus = InvoiceStatus.DRAFT
    lines: List[BillLine] = Field(default_factory=list)
    total: Decimal = Decimal("0.00")
    date_range: Optional[DateRange] = None


class InvoiceDocument(BaseModel):
    """A rendered invoice document ready to be sent to the caller."""

    model_config = ConfigDict(frozen=True)

    invoice_id: int
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def content_disposition(self) -> str:
        """Value for a Content-Disposition header."""
        return f"attachment; filename={self.filename}"

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Yield the document in chunks for streaming responses."""
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        for offset in range(0, len(self.content), chunk_size):
            yield self.content[offset : offset + chunk_size]


class GeneratedInvoice(BaseModel):
    """Result of generating an invoice: the issued record and its document."""

    model_config = ConfigDict(frozen=True)

    invoice: InvoiceResponse
    lines: List[BillLine]
    document: InvoiceDocument


class GenerateInvoiceRequest(BaseModel):
    """Request to generate an invoice for an owner."""

    owner_id: int = Field(..., gt=0)
    date_range: Optional[DateRange] = None


class InvoiceDashboardSummary(BaseModel):
    """Invoice counts and amounts for dashboard summaries."""

    total_count: int = 0
    paid_count: int = 0
    unpaid_count: int = 0
    outstanding_amount: Decimal = Decimal("0.00")
    collected_amount: Decimal = Decimal("0.00")
