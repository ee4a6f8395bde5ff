"""Parking space domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SpaceStatus(str, Enum):
    """Space occupancy state.

    Entry claims a space in two phases inside one transaction:
    FREE -> RESERVED (compare-and-swap) then RESERVED -> OCCUPIED once the
    ticket exists. Exit and cancellation return it to FREE.
    """

    FREE = "free"
    RESERVED = "reserved"
    OCCUPIED = "occupied"


class SpaceCreate(BaseModel):
    """Data required to create a space. New spaces always start FREE."""

    number: str = Field(..., min_length=1, max_length=50)


class SpaceUpdate(BaseModel):
    """Administrative edits. Status only changes through entry/exit."""

    number: str | None = Field(None, min_length=1, max_length=50)


class Space(BaseModel):
    """Full space entity as stored."""

    id: int
    number: str
    status: SpaceStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def is_free(self) -> bool:
        """Whether the space can take a new vehicle."""
        return self.status == SpaceStatus.FREE


class SpaceAvailability(BaseModel):
    """Result of the availability check."""

    id: int
    status: SpaceStatus
    has_active_ticket: bool
