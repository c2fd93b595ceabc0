"""
Event endpoints with Redis caching on the day schedule.
"""

import datetime as dt

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.api.deps import get_now
from club_booking.db.session import get_db
from club_booking.schemas.event import DayScheduleResponse, EventResponse
from club_booking.services.cache_service import get_cached_day, set_cached_day
from club_booking.services.event_service import build_day_schedule, get_event, list_day_events
from club_booking.core.security import get_current_member_id
from club_booking.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/day", response_model=DayScheduleResponse)
async def day_schedule(
    day: dt.date = Query(..., description="Civil date in the club timezone"),
    member_id: int = Depends(get_current_member_id),
    now: dt.datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """
    Scheduled events of a day with the member's advisory booking view.
    The event list is cached in Redis and invalidated on every slot change;
    `can_book` is a hint, the booking endpoint decides.
    """
    cached = await get_cached_day(day)
    if cached is not None:
        logger.info("day_schedule_cache_hit", day=day.isoformat())
        events = [EventResponse.model_validate(item) for item in cached]
    else:
        events = [EventResponse.model_validate(e) for e in await list_day_events(db, day)]
        await set_cached_day(day, [e.model_dump(mode="json") for e in events])

    entries = await build_day_schedule(db, events, member_id, now)
    return DayScheduleResponse(day=day, events=entries, cached=cached is not None)


@router.get(
    "/{event_id}",
    response_model=EventResponse,
    dependencies=[Depends(get_current_member_id)],
)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (real-time slot counts)."""
    return await get_event(db, event_id)
