"""
Time helpers.

Everything is stored as naive UTC; per-user timezones are kept on the
subscription but not used for scheduling.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as naive UTC (replacement for datetime.utcnow())"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize to naive UTC.
    Naive input is assumed to be UTC already.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_airstamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 airstamp ("2024-05-01T01:00:00+00:00") to naive UTC"""
    if not value:
        return None
    try:
        # Python < 3.11 does not accept a trailing "Z"
        return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None
