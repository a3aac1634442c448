"""
Examination Pydantic schemas.

Request schemas validate a visit before it is recorded; the read schemas
are the flattened examination / line item / medication-name join the
repository hands to the billing aggregator.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExaminationLineItemCreate(BaseModel):
    """Schema for one medication administered during a visit."""

    model_config = ConfigDict(str_strip_whitespace=True)

    medication_id: int = Field(..., description="Administered medication", gt=0)
    quantity: Decimal = Field(
        ...,
        description="Administered quantity",
        ge=0,
        max_digits=10,
        decimal_places=2,
    )


class ExaminationCreate(BaseModel):
    """Schema for recording an examination together with its line items."""

    model_config = ConfigDict(str_strip_whitespace=True)

    pet_id: int = Field(..., description="Examined pet", gt=0)
    disease_id: int = Field(..., description="Diagnosed disease", gt=0)
    examination_date: date = Field(..., description="Date of the examination")
    notes: Optional[str] = Field(None, description="Free-text notes")
    medications: List[ExaminationLineItemCreate] = Field(
        default_factory=list, description="Administered medications"
    )

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        """Collapse blank notes to None."""
        if v is not None and not v.strip():
            return None
        return v


class ExaminationLineView(BaseModel):
    """A recorded line item joined with its medication name."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    line_item_id: int
    medication_id: int
    medication_name: str
    quantity: Decimal
    price: Decimal = Field(..., description="Unit price captured at recording")

    @property
    def billable_amount(self) -> Decimal:
        """Quantity times captured price, unrounded."""
        return self.quantity * self.price


class ExaminationRecord(BaseModel):
    """An examination with its line items, as read for billing."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    examination_id: int
    pet_id: int
    pet_name: str
    disease_id: int
    examination_date: date
    line_items: List[ExaminationLineView] = Field(default_factory=list)
