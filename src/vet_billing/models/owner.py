"""
Owner and Pet models for the vet-billing package.

Owners are long-lived master records maintained through plain CRUD screens;
the billing engine only reads them. Pets hold their owner's id; the owner
does not keep a collection of pets.
"""

from datetime import date
from typing import Optional

from sqlalchemy import Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class Owner(BaseModel):
    """A clinic client who owns pets and receives invoices."""

    __tablename__ = "owners"

    name: Mapped[str] = mapped_column(
        String(200), nullable=False, comment="Owner's full name"
    )

    phone: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="Contact phone number"
    )

    address: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Postal address"
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Optional email address"
    )

    __table_args__ = (Index("idx_owners_name", "name"),)

    def __repr__(self) -> str:
        """String representation of the Owner model."""
        return f"<Owner(id={self.id}, name='{self.name}')>"


class Pet(BaseModel):
    """A pet belonging to exactly one owner."""

    __tablename__ = "pets"

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("owners.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="ID of the pet's owner",
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, comment="Pet's name")

    species: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Pet's species"
    )

    breed: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, comment="Pet's breed"
    )

    birth_date: Mapped[Optional[date]] = mapped_column(
        Date, nullable=True, comment="Pet's birth date"
    )

    __table_args__ = (Index("idx_pets_owner_name", "owner_id", "name"),)

    def __repr__(self) -> str:
        """String representation of the Pet model."""
        return f"<Pet(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"
