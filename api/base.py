"""Unified API response format and error codes."""

from typing import Any
from datetime import datetime

from pydantic import BaseModel, Field

from utils.request_context import get_current_request_id
from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    detail: str | None = Field(None, description="Underlying cause, for internal errors")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Matches the X-Request-ID response header")


class APIResponse(BaseModel):
    """
    Unified response format for all API endpoints.

    Every endpoint returns this structure, making client parsing predictable.
    """

    success: bool
    message: str
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta(request_id: str | None = None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id or get_current_request_id())


def success_response(data: Any, message: str = "OK") -> APIResponse:
    """Create a success response."""
    return APIResponse(
        success=True,
        message=message,
        data=data,
        error=None,
        meta=_meta(),
    )


def error_response(
    code: str,
    message: str,
    detail: str | None = None,
    request_id: str | None = None,
) -> APIResponse:
    """
    Create an error response. The top-level message repeats error.message.

    request_id overrides the context-bound ID, for handlers that run after
    RequestIDMiddleware has unwound.
    """
    return APIResponse(
        success=False,
        message=message,
        data=None,
        error=APIError(code=code, message=message, detail=detail),
        meta=_meta(request_id),
    )


class ErrorCodes:
    """Standard error codes for consistent error handling."""

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"
    ROUTE_NOT_FOUND = "ROUTE_NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Parking Lifecycle
    SPACE_UNAVAILABLE = "SPACE_UNAVAILABLE"
    TICKET_NOT_ACTIVE = "TICKET_NOT_ACTIVE"
    NO_ACTIVE_RATE = "NO_ACTIVE_RATE"
    SPACE_RELEASE_FAILED = "SPACE_RELEASE_FAILED"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
