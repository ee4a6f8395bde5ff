"""Hourly rate plan domain models.

Amounts are Decimals with two places; never floats.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class RateCreate(BaseModel):
    """Data required to create a rate plan."""

    description: str = Field(..., min_length=1, max_length=255)
    amount_per_hour: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class RateUpdate(BaseModel):
    """Data that can be updated on a rate. All fields optional."""

    description: str | None = Field(None, min_length=1, max_length=255)
    amount_per_hour: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_active: bool | None = None


class Rate(BaseModel):
    """Full rate entity as stored."""

    id: int
    description: str
    amount_per_hour: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "frozen": True}
