"""Application configuration."""

import os
from typing import Literal

from pydantic import BaseModel, Field

_ENV_PREFIX = "PARKING_"


class ParkingConfig(BaseModel):
    """
    Runtime configuration for the parking API.

    Secrets (the database URL) are not stored here; they come from
    clients.vault_client.
    """

    app_name: str = Field(
        default="Parking API",
        description="Application name shown in the API index and docs",
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )

    # Storage
    storage_backend: Literal["postgres", "memory"] = Field(
        default="postgres",
        description="Store implementation; 'memory' is for local development",
    )
    db_min_connections: int = Field(
        default=2,
        description="Minimum pooled database connections",
        ge=1,
    )
    db_max_connections: int = Field(
        default=20,
        description="Maximum pooled database connections",
        ge=1,
        le=200,
    )
    db_connect_timeout_seconds: int = Field(
        default=30,
        description="Timeout when opening a database connection",
        ge=1,
    )

    # HTTP
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins",
    )
    default_list_limit: int = Field(
        default=100,
        description="Page size for list endpoints",
        ge=1,
        le=1000,
    )

    @classmethod
    def from_env(cls) -> "ParkingConfig":
        """
        Build config from PARKING_* environment variables.

        Unset variables keep their defaults. PARKING_CORS_ORIGINS is a
        comma-separated list.
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{_ENV_PREFIX}{name.upper()}")
            if raw is None or raw == "":
                continue
            if name == "cors_origins":
                values[name] = [o.strip() for o in raw.split(",") if o.strip()]
            else:
                values[name] = raw
        return cls.model_validate(values)
