"""Timestamp helpers. Everything is stored and compared in UTC."""
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo), convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an event or query timestamp.

    Accepts datetimes, ISO-8601 strings (``Z`` suffix allowed) and epoch
    milliseconds. Returns None for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.strip()))
        except ValueError:
            return None
    return None


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string with a ``Z`` suffix for UTC values."""
    if value is None:
        return None
    return ensure_utc(value).isoformat().replace("+00:00", "Z")
