"""
Timezone Utilities

All timestamps inside the engine are naive UTC datetimes, the same shape the
record store hands back. Only hour-of-day rules convert to the fleet's local
timezone.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from config import TIMEZONE


def utc_now() -> datetime:
    """Current UTC time as a naive datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Normalize a stored timestamp to naive UTC.

    Accepts datetimes (aware values are converted to UTC), ISO-8601 strings
    including a trailing 'Z', and None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def to_fleet_local(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert a naive UTC datetime to the fleet's local timezone"""
    target = ZoneInfo(tz_name or TIMEZONE.FLEET_TZ)
    return dt.replace(tzinfo=timezone.utc).astimezone(target)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None
