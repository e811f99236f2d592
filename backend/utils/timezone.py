"""
Timezone Utility Module
All stored datetimes are timezone-aware UTC
"""
from datetime import datetime
from zoneinfo import ZoneInfo

UTC_TZ = ZoneInfo("UTC")


def now_utc() -> datetime:
    """Get current datetime in UTC timezone."""
    return datetime.now(UTC_TZ)


def to_utc(dt: datetime) -> datetime:
    """Convert any datetime to UTC timezone."""
    if dt.tzinfo is None:
        # Mongo hands back naive UTC unless the client is tz_aware
        dt = dt.replace(tzinfo=UTC_TZ)
    return dt.astimezone(UTC_TZ)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from earlier to later (floor)."""
    return int((to_utc(later) - to_utc(earlier)).total_seconds() // 86400)
