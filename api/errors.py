"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    ConflictError,
    NotFoundError,
    ParkingError,
    SpaceReleaseError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _status_for(exc: ParkingError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (ConflictError, ValidationError)):
        return 400
    return 500


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(ParkingError)
    async def parking_error_handler(request: Request, exc: ParkingError):
        status_code = _status_for(exc)
        detail = None
        if status_code >= 500:
            cause = exc.__cause__
            detail = str(cause) if cause is not None else str(exc)
            if not isinstance(exc, SpaceReleaseError):
                # SpaceReleaseError is logged where it is raised
                logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content=error_response(exc.code, str(exc), detail).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                "Invalid request",
                str(exc.errors()),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            code, message = ErrorCodes.ROUTE_NOT_FOUND, "Route not found. Check the URL."
        else:
            code, message = ErrorCodes.VALIDATION_ERROR, str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(code, message).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # Runs outside RequestIDMiddleware; the ID survives on request.state
        request_id = getattr(request.state, "request_id", None)
        logger.exception(f"Unhandled exception (request {request_id})")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                f"{type(exc).__name__}: {exc}",
                request_id=request_id,
            ).model_dump(mode="json"),
            headers={"X-Request-ID": request_id} if request_id else None,
        )
