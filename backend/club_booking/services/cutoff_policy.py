"""
Booking/cancellation cutoff.

An event can be booked or cancelled up to 18:00 (club local time) on the
day it takes place; past days are closed. Both sides of the comparison are
evaluated in the club timezone, so the event's civil date is never compared
against a UTC date.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

CUTOFF_HOUR = 18


@dataclass(frozen=True)
class CutoffDecision:
    allowed: bool
    reason: Optional[str] = None


def local_now(now: datetime, tz: ZoneInfo) -> datetime:
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(tz)


def _check(event_date: date, now: datetime, tz: ZoneInfo, action: str) -> CutoffDecision:
    current = local_now(now, tz)
    today = current.date()

    if event_date < today:
        return CutoffDecision(False, f"Cannot {action} past events")

    if event_date == today and current.hour >= CUTOFF_HOUR:
        return CutoffDecision(
            False,
            f"Cannot {action} today's events after {CUTOFF_HOUR:02d}:00",
        )

    return CutoffDecision(True)


def can_book(event_date: date, now: datetime, tz: ZoneInfo) -> CutoffDecision:
    return _check(event_date, now, tz, "book")


def can_cancel(event_date: date, now: datetime, tz: ZoneInfo) -> CutoffDecision:
    return _check(event_date, now, tz, "cancel")
