"""
Timezone helpers.

Delivery timestamps (created_at, delivered_at, seen_at) are always UTC.
SQLite hands back naive values and PostgreSQL hands back aware ones, so
everything read from the database goes through ensure_utc before it is
compared or serialized.
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Normalize a timestamp to aware UTC.

    Naive values are taken to already be UTC; aware values in another
    offset are converted.

    Args:
        dt: Timestamp or None

    Returns:
        Aware UTC timestamp, or None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_utc(dt: datetime | None) -> str | None:
    """
    Format a timestamp for realtime payloads, e.g. "2025-12-16T11:30:00Z".

    Returns:
        ISO 8601 string with a 'Z' suffix, or None
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")
