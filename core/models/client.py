"""Client (vehicle owner) domain models."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class ClientCreate(BaseModel):
    """Data required to register a client."""

    tax_id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    plate: str = Field(..., min_length=1, max_length=20)

    @field_validator("tax_id", "name", "plate")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        """Reject values that are only whitespace."""
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("plate")
    @classmethod
    def normalize_plate(cls, value: str) -> str:
        return value.upper()


class ClientUpdate(BaseModel):
    """Corrective edits to a client. All fields optional."""

    tax_id: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=255)
    plate: str | None = Field(None, min_length=1, max_length=20)

    @field_validator("tax_id", "name", "plate")
    @classmethod
    def strip_whitespace(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("plate")
    @classmethod
    def normalize_plate(cls, value: str | None) -> str | None:
        return value.upper() if value is not None else None


class Client(BaseModel):
    """Full client entity as stored."""

    id: int
    tax_id: str
    name: str
    plate: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "frozen": True}
