"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, milliseconds_between
from utils.request_context import (
    get_current_request_id,
    set_current_request_id,
    clear_current_request_id,
    request_context,
)
