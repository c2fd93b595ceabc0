"""
Time helpers. Every timestamp bound into a query goes through `as_utc`, so
comparisons in the store are UTC against UTC regardless of driver.
"""

from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from club_booking.core.config import get_settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("datetime must be timezone-aware")
    return value.astimezone(timezone.utc)


@lru_cache()
def club_timezone() -> ZoneInfo:
    return ZoneInfo(get_settings().CLUB_TIMEZONE)
