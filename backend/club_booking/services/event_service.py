"""
Event service handling scheduling administration and the advisory day schedule.

Nothing here moves `booked_slots`; only the reservation manager does. Capacity
edits are guarded against it instead.
"""

from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.core.clock import club_timezone
from club_booking.core.logging import get_logger
from club_booking.models.enums import EventStatus
from club_booking.models.event import Event, EventCategory
from club_booking.models.signup import Signup
from club_booking.schemas.event import (
    DayScheduleEntry, EventCategoryResponse, EventCreate, EventResponse, EventUpdate,
)
from club_booking.services.cache_service import get_redis, invalidate_day
from club_booking.services.cutoff_policy import can_book
from club_booking.services.eligibility import RuleTable, get_rule_table
from club_booking.services.entitlement_service import resolve_tiers
from club_booking.services.subscription_service import get_active_subscription

logger = get_logger(__name__)


async def _category_id(db: AsyncSession, code: str) -> int:
    result = await db.execute(select(EventCategory.id).where(EventCategory.code == code))
    category_id = result.scalar_one_or_none()
    if category_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown event category {code}",
        )
    return category_id


async def list_categories(db: AsyncSession, rules: Optional[RuleTable] = None) -> list[EventCategoryResponse]:
    """Known categories with the eligibility rule each one is booked under."""
    if rules is None:
        rules = get_rule_table()
    result = await db.execute(select(EventCategory).order_by(EventCategory.code.asc()))

    categories = []
    for category in result.scalars().all():
        rule = rules.rule_for(category.code)
        categories.append(EventCategoryResponse(
            id=category.id,
            code=category.code,
            label=category.label,
            requires_active_subscription=rule.requires_active_subscription,
            allowed_tiers=sorted(rule.allowed_tiers, key=lambda tier: tier.rank),
            minimum_tier=rule.minimum_tier,
        ))
    return categories


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    """Create a new scheduled event with all slots free."""
    async with db.begin():
        category_id = await _category_id(db, event_data.category_code)

        event = Event(
            title=event_data.title,
            description=event_data.description,
            location=event_data.location,
            date=event_data.date,
            start_time=event_data.start_time,
            end_time=event_data.end_time,
            max_slots=event_data.max_slots,
            booked_slots=0,
            status=EventStatus.SCHEDULED.value,
            category_id=category_id,
        )
        db.add(event)
        await db.flush()
        event = await _load_event(db, event.id)

    logger.info("event_created", event_id=event.id, title=event.title, slots=event.max_slots)
    return event


async def _load_event(db: AsyncSession, event_id: int) -> Optional[Event]:
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    event = await _load_event(db, event_id)

    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Event {event_id} not found",
        )
    return event


async def _set_status(db: AsyncSession, event_id: int, new_status: EventStatus) -> Event:
    async with db.begin():
        event = await get_event(db, event_id)
        if event.status == new_status.value:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Event {event_id} is already {new_status.value.lower()}",
            )
        event.status = new_status.value
        await db.flush()
        event = await _load_event(db, event_id)
    return event


async def cancel_event(db: AsyncSession, event_id: int) -> Event:
    """Soft-cancel: bookings are refused, existing signups stay cancellable."""
    event = await _set_status(db, event_id, EventStatus.CANCELLED)
    logger.info("event_cancelled", event_id=event_id, signups=event.booked_slots)
    return event


async def restore_event(db: AsyncSession, event_id: int) -> Event:
    event = await _set_status(db, event_id, EventStatus.SCHEDULED)
    logger.info("event_restored", event_id=event_id)
    return event


async def update_event(db: AsyncSession, event_id: int, event_data: EventUpdate) -> Event:
    """
    Edit an event in place.

    A new `max_slots` is written with a conditional UPDATE that only matches
    while `booked_slots <= max_slots`, so a concurrent booking can never be
    left above capacity. Shrinking below the current signups is a 409.
    """
    changes = event_data.model_dump(exclude_unset=True)

    async with db.begin():
        event = await get_event(db, event_id)
        previous_date = event.date

        start_time = changes.get("start_time", event.start_time)
        end_time = changes.get("end_time", event.end_time)
        if end_time <= start_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="end_time must be after start_time",
            )

        if "category_code" in changes:
            changes["category_id"] = await _category_id(db, changes.pop("category_code"))

        max_slots = changes.pop("max_slots", None)
        if max_slots is not None:
            result = await db.execute(
                update(Event)
                .where(Event.id == event_id, Event.booked_slots <= max_slots)
                .values(max_slots=max_slots)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Event {event_id} has more signups than {max_slots} slots",
                )

        if changes:
            await db.execute(
                update(Event)
                .where(Event.id == event_id)
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
        event = await _load_event(db, event_id)

    if event.date != previous_date:
        await invalidate_day(previous_date)
    logger.info("event_updated", event_id=event_id, fields=sorted(event_data.model_fields_set))
    return event


async def list_day_events(db: AsyncSession, day: date) -> list[Event]:
    """Scheduled events on a civil date, in start order."""
    result = await db.execute(
        select(Event)
        .where(Event.date == day, Event.status == EventStatus.SCHEDULED.value)
        .order_by(Event.start_time.asc(), Event.id.asc())
    )
    return list(result.unique().scalars().all())


async def build_day_schedule(
    db: AsyncSession,
    events: list[EventResponse],
    member_id: int,
    now: datetime,
    rules: Optional[RuleTable] = None,
) -> list[DayScheduleEntry]:
    """
    Annotate a day's events with the member's advisory view.

    `can_book` mirrors the booking preconditions on a read-only snapshot; the
    reservation manager re-checks everything inside its own transaction.
    """
    if rules is None:
        rules = get_rule_table()
    tz = club_timezone()

    tiers = await resolve_tiers(db, member_id, now)
    subscription = await get_active_subscription(db, member_id, now)
    has_credit = subscription is not None and subscription.credits > 0

    booked_ids: set[int] = set()
    if events:
        result = await db.execute(
            select(Signup.event_id).where(
                Signup.member_id == member_id,
                Signup.event_id.in_([event.id for event in events]),
            )
        )
        booked_ids = set(result.scalars().all())

    entries = []
    for event in events:
        rule = rules.rule_for(event.category_code)
        booked = event.id in booked_ids
        eligible = rule.admits(tiers) and (subscription is not None or not rule.requires_active_subscription)
        credit_ok = subscription is None or has_credit
        entries.append(DayScheduleEntry(
            **event.model_dump(),
            minimum_tier=rule.minimum_tier,
            booked_by_me=booked,
            can_book=(
                not booked
                and event.free_slots > 0
                and eligible
                and credit_ok
                and can_book(event.date, now, tz).allowed
            ),
        ))
    return entries


async def invalidate_event_day(db: AsyncSession, event_id: int) -> None:
    """Drop the cached day schedule containing `event_id`."""
    if await get_redis() is None:
        return
    result = await db.execute(select(Event.date).where(Event.id == event_id))
    day = result.scalar_one_or_none()
    if day is not None:
        await invalidate_day(day)
