"""
Examination models for the vet-billing package.

An examination records one visit of a pet for a diagnosed disease. The
medications administered during the visit are stored as line items, each
carrying the unit price captured when the visit was recorded.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class Examination(BaseModel):
    """A recorded visit of one pet for one disease."""

    __tablename__ = "examinations"

    pet_id: Mapped[int] = mapped_column(
        ForeignKey("pets.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Examined pet",
    )

    disease_id: Mapped[int] = mapped_column(
        ForeignKey("diseases.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Diagnosed disease",
    )

    examination_date: Mapped[date] = mapped_column(
        Date, nullable=False, comment="Date of the examination"
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Free-text notes"
    )

    __table_args__ = (Index("idx_examinations_pet_date", "pet_id", "examination_date"),)

    def __repr__(self) -> str:
        return (
            f"<Examination(id={self.id}, pet_id={self.pet_id}, "
            f"date={self.examination_date})>"
        )


class ExaminationMedication(BaseModel):
    """
    A medication administered during an examination.

    ``price`` is the unit price in effect when the examination was recorded
    and is immutable afterwards.
    """

    __tablename__ = "examination_medications"

    examination_id: Mapped[int] = mapped_column(
        ForeignKey("examinations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning examination",
    )

    medication_id: Mapped[int] = mapped_column(
        ForeignKey("medications.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Administered medication",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Administered quantity"
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Unit price captured at recording"
    )

    __table_args__ = (
        CheckConstraint(
            "quantity >= 0", name="ck_examination_medications_quantity_non_negative"
        ),
        CheckConstraint(
            "price >= 0", name="ck_examination_medications_price_non_negative"
        ),
    )

    @property
    def billable_amount(self) -> Decimal:
        """Quantity times captured price, unrounded."""
        return Decimal(self.quantity) * Decimal(self.price)

    def __repr__(self) -> str:
        return (
            f"<ExaminationMedication(id={self.id}, examination_id={self.examination_id}, "
            f"medication_id={self.medication_id}, quantity={self.quantity}, "
            f"price={self.price})>"
        )
