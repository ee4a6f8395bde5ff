"""Ticket (billing session) domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class TicketStatus(str, Enum):
    """Ticket lifecycle status. FINALIZED and CANCELLED are terminal."""

    ACTIVE = "active"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


class EntryRequest(BaseModel):
    """Vehicle entry. Without rate_id the default active rate applies."""

    client_id: int = Field(..., ge=1)
    space_id: int = Field(..., ge=1)
    rate_id: int | None = Field(None, ge=1)


class TicketCreate(BaseModel):
    """Generic ticket creation with an explicit rate and optional entry time."""

    client_id: int = Field(..., ge=1)
    space_id: int = Field(..., ge=1)
    rate_id: int = Field(..., ge=1)
    entry_time: datetime | None = None


class TicketUpdate(BaseModel):
    """Changes allowed on an active ticket. All fields optional."""

    client_id: int | None = Field(None, ge=1)
    space_id: int | None = Field(None, ge=1)
    rate_id: int | None = Field(None, ge=1)


class Ticket(BaseModel):
    """Full ticket entity as stored."""

    id: int
    client_id: int
    space_id: int
    rate_id: int
    entry_time: datetime
    exit_time: datetime | None
    hours: Decimal
    amount: Decimal
    status: TicketStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def is_active(self) -> bool:
        return self.status == TicketStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        """Whether the ticket is closed for good (immutable)."""
        return self.status in (TicketStatus.FINALIZED, TicketStatus.CANCELLED)
