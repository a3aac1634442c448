"""
Reference data models: diseases and medications.

Both are read-only from the billing engine's point of view. The medication
``price`` is the current master price; it may change at any time and is
never used to re-price an examination that was already recorded.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class Disease(BaseModel):
    """Diagnosis reference entry."""

    __tablename__ = "diseases"

    name: Mapped[str] = mapped_column(
        String(200), nullable=False, unique=True, comment="Disease name"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Optional description"
    )

    def __repr__(self) -> str:
        return f"<Disease(id={self.id}, name='{self.name}')>"


class Medication(BaseModel):
    """Medication master record with its current unit price."""

    __tablename__ = "medications"

    name: Mapped[str] = mapped_column(
        String(200), nullable=False, unique=True, comment="Medication name"
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Current master unit price"
    )

    unit: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="Unit label (tablet, ml, ...)"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Optional description"
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_medications_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Medication(id={self.id}, name='{self.name}', price={self.price})>"
