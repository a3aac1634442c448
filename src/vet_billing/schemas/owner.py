"""
Owner Pydantic schemas.

Owners are maintained elsewhere; the billing engine only needs a read view.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class OwnerResponse(BaseModel):
    """Schema for owner response data."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    phone: str
    address: str
    email: Optional[str] = None
