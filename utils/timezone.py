"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import datetime, timedelta, timezone

_ONE_MILLISECOND = timedelta(milliseconds=1)


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def milliseconds_between(start: datetime, end: datetime) -> int:
    """
    Whole milliseconds from start to end, negative if end precedes start.

    Both datetimes must be timezone-aware.
    """
    return (to_utc(end) - to_utc(start)) // _ONE_MILLISECOND
