"""Propagate the current request ID through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

_current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)


def get_current_request_id() -> str:
    """
    Get the request ID bound to this context.

    Outside a request (scripts, tests) a fresh ID is generated so callers
    always have something to put in response metadata.
    """
    request_id = _current_request_id.get()
    if request_id is None:
        return str(uuid4())
    return request_id


def set_current_request_id(request_id: str) -> None:
    """Called by RequestIDMiddleware when a request starts."""
    _current_request_id.set(request_id)


def clear_current_request_id() -> None:
    """Must be called in a finally block to prevent context leakage."""
    _current_request_id.set(None)


@contextmanager
def request_context(request_id: str):
    """
    Temporarily bind a request ID.

    Example:
        with request_context("abc"):
            assert get_current_request_id() == "abc"
    """
    previous = _current_request_id.get()
    set_current_request_id(request_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_request_id()
        else:
            set_current_request_id(previous)
