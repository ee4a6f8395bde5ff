"""Request-scoped middleware for API requests."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from utils.request_context import set_current_request_id, clear_current_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assigns a unique request ID to every request.

    A client-supplied X-Request-ID is reused. The ID is exposed on
    request.state, in the response header and in every response envelope.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id
        set_current_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_current_request_id()
        response.headers["X-Request-ID"] = request_id
        return response
