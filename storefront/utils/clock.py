"""Time helpers shared by models and services."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime.

    Stored timestamps are naive UTC with microsecond precision; several
    queries (session eviction, order numbering, default address promotion)
    order by created_at and need sub-second resolution.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)
