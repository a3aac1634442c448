"""
Invoice models for the vet-billing package.

An invoice bills a batch of an owner's examinations. Next to the invoice row
the engine persists a snapshot of every billed line (``invoice_lines``) and
the set of billed examinations (``invoice_examinations``). The snapshot is
what documents are rendered from after issue; the unique constraints on the
snapshot tables guarantee a line item or examination is billed at most once.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..exceptions import InvalidStateTransitionException
from ..utils.datetime_utils import get_current_utc
from .base import BaseModel


class InvoiceStatus(enum.Enum):
    """
    Lifecycle states of an invoice.

    DRAFT invoices exist only in memory (a computed bill that was never
    persisted). Invoices are append-only, so there is no superseded state.
    """

    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"


class Invoice(BaseModel):
    """Persisted invoice for one owner."""

    __tablename__ = "invoices"

    def __init__(self, **kwargs):
        """Initialize Invoice with default values."""
        if "paid" not in kwargs:
            kwargs["paid"] = False
        super().__init__(**kwargs)

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("owners.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Billed owner",
    )

    # Wide enough for many maximal lines
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(22, 2),
        nullable=False,
        comment="Sum of all billed line totals, rounded half-up to cents",
    )

    paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
        comment="Whether the invoice has been paid",
    )

    due_date: Mapped[date] = mapped_column(
        Date, nullable=False, comment="Payment due date"
    )

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="When payment was recorded"
    )

    period_start: Mapped[Optional[date]] = mapped_column(
        Date, nullable=True, comment="Inclusive start of the billed date range"
    )

    period_end: Mapped[Optional[date]] = mapped_column(
        Date, nullable=True, comment="Inclusive end of the billed date range"
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_invoices_total_non_negative"),
        Index("idx_invoices_owner_paid", "owner_id", "paid"),
    )

    @property
    def status(self) -> InvoiceStatus:
        """Current lifecycle state of a persisted invoice."""
        return InvoiceStatus.PAID if self.paid else InvoiceStatus.ISSUED

    def can_mark_paid(self) -> bool:
        """Check if the invoice can transition to paid."""
        return self.status == InvoiceStatus.ISSUED

    def mark_paid(self, paid_at: Optional[datetime] = None) -> None:
        """
        Transition the invoice from issued to paid.

        Raises:
            InvalidStateTransitionException: If the invoice is already paid
        """
        if not self.can_mark_paid():
            raise InvalidStateTransitionException(
                f"Cannot mark invoice {self.id} paid: it is already {self.status.value}",
                invoice_id=self.id,
                from_state=self.status.value,
                to_state=InvoiceStatus.PAID.value,
            )
        self.paid = True
        self.paid_at = paid_at or get_current_utc()

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, owner_id={self.owner_id}, "
            f"total_amount={self.total_amount}, paid={self.paid})>"
        )


class InvoiceLine(BaseModel):
    """Snapshot of one billed line as it was computed at generation time."""

    __tablename__ = "invoice_lines"

    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    examination_id: Mapped[int] = mapped_column(
        ForeignKey("examinations.id", ondelete="RESTRICT"), nullable=False
    )

    examination_medication_id: Mapped[int] = mapped_column(
        ForeignKey("examination_medications.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        comment="Billed line item; unique so a line is never billed twice",
    )

    position: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Zero-based order within the invoice"
    )

    examination_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(200), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(20, 4), nullable=False, comment="quantity * unit_price, unrounded"
    )

    __table_args__ = (Index("idx_invoice_lines_invoice_position", "invoice_id", "position"),)


class InvoiceExamination(BaseModel):
    """Link between an invoice and an examination it billed."""

    __tablename__ = "invoice_examinations"

    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    examination_id: Mapped[int] = mapped_column(
        ForeignKey("examinations.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        comment="Billed examination; unique so a visit is never billed twice",
    )
