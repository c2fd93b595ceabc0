"""
Tests for event administration and the advisory day schedule.
"""

from datetime import datetime, time, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from club_booking.models.enums import EventStatus, Tier
from club_booking.models.event import Event
from club_booking.schemas.event import EventCreate, EventResponse, EventUpdate
from club_booking.services.booking_service import book
from club_booking.services.eligibility import RuleTable
from club_booking.services.event_service import (
    build_day_schedule, cancel_event, create_event, get_event, list_categories, list_day_events,
    restore_event, update_event,
)

from conftest import EVENT_DAY, NOW, TODAY


def event_payload(**overrides) -> EventCreate:
    data = {
        "title": "Deep pool session",
        "date": EVENT_DAY,
        "start_time": time(20, 0),
        "end_time": time(21, 30),
        "max_slots": 12,
        "category_code": "Y40_DEEP",
    }
    data.update(overrides)
    return EventCreate(**data)


@pytest.mark.asyncio
async def test_create_event(db_session, make_category):
    await make_category("Y40_DEEP")

    event = await create_event(db_session, event_payload())

    assert event.id is not None
    assert event.booked_slots == 0
    assert event.free_slots == 12
    assert event.status == EventStatus.SCHEDULED.value
    assert event.category_code == "Y40_DEEP"


@pytest.mark.asyncio
async def test_create_event_unknown_category(db_session):
    with pytest.raises(HTTPException) as exc_info:
        await create_event(db_session, event_payload(category_code="NOPE"))
    assert exc_info.value.status_code == 400


def test_event_payload_validation():
    with pytest.raises(ValidationError):
        event_payload(end_time=time(19, 0))
    with pytest.raises(ValidationError):
        event_payload(max_slots=0)


@pytest.mark.asyncio
async def test_cancel_and_restore_event(db_session, make_event):
    event = await make_event()

    cancelled = await cancel_event(db_session, event.id)
    assert cancelled.status == EventStatus.CANCELLED.value

    with pytest.raises(HTTPException) as exc_info:
        await cancel_event(db_session, event.id)
    assert exc_info.value.status_code == 409

    restored = await restore_event(db_session, event.id)
    assert restored.status == EventStatus.SCHEDULED.value


@pytest.mark.asyncio
async def test_get_unknown_event(db_session):
    with pytest.raises(HTTPException) as exc_info:
        await get_event(db_session, 99999)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_list_day_events_in_start_order(db_session, make_event):
    late = await make_event(start_time=time(20, 0))
    early = await make_event(start_time=time(7, 0))
    await make_event(start_time=time(12, 0), status=EventStatus.CANCELLED)
    await make_event(day=TODAY)

    events = await list_day_events(db_session, EVENT_DAY)

    assert [event.id for event in events] == [early.id, late.id]


@pytest.mark.asyncio
async def test_day_schedule_flags(db_session, make_event, subscribed_member):
    member = await subscribed_member(tiers=(Tier.OPEN,))
    booked = await make_event(category_code="TRAINING_ALL", start_time=time(7, 0))
    open_slot = await make_event(category_code="TRAINING_OPEN", start_time=time(8, 0))
    too_deep = await make_event(category_code="TRAINING_DEEP", start_time=time(9, 0))
    full = await make_event(category_code="TRAINING_OPEN", max_slots=1, booked_slots=1, start_time=time(10, 0))
    assert (await book(db_session, member.id, booked.id, NOW)).ok

    events = [EventResponse.model_validate(e) for e in await list_day_events(db_session, EVENT_DAY)]
    entries = {entry.id: entry for entry in await build_day_schedule(db_session, events, member.id, NOW)}

    assert entries[booked.id].booked_by_me and not entries[booked.id].can_book
    assert entries[open_slot.id].can_book
    assert entries[open_slot.id].minimum_tier == Tier.OPEN
    assert not entries[too_deep.id].can_book
    assert entries[too_deep.id].minimum_tier == Tier.DEEP
    assert not entries[full.id].can_book
    assert entries[full.id].free_slots == 0


@pytest.mark.asyncio
async def test_day_schedule_after_cutoff(db_session, make_event, subscribed_member):
    member = await subscribed_member()
    await make_event(day=TODAY)

    events = [EventResponse.model_validate(e) for e in await list_day_events(db_session, TODAY)]
    evening = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)
    entries = await build_day_schedule(db_session, events, member.id, evening)

    assert [entry.can_book for entry in entries] == [False]


@pytest.mark.asyncio
async def test_day_schedule_without_credits(db_session, make_event, make_member, make_subscription):
    member = await make_member()
    await make_subscription(member, credits=0)
    await make_event()

    events = [EventResponse.model_validate(e) for e in await list_day_events(db_session, EVENT_DAY)]
    entries = await build_day_schedule(db_session, events, member.id, NOW)

    assert [entry.can_book for entry in entries] == [False]


@pytest.mark.asyncio
async def test_day_schedule_with_empty_rule_table(db_session, make_event, subscribed_member):
    member = await subscribed_member(tiers=(Tier.OPEN,))
    await make_event(category_code="TRAINING_DEEP")

    events = [EventResponse.model_validate(e) for e in await list_day_events(db_session, EVENT_DAY)]
    entries = await build_day_schedule(db_session, events, member.id, NOW, rules=RuleTable({}))

    assert [entry.can_book for entry in entries] == [True]
    assert entries[0].minimum_tier == Tier.ALL


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_event_fields(db_session, make_event, make_category):
    event = await make_event()
    await make_category("Y40_DEEP")

    updated = await update_event(
        db_session, event.id,
        EventUpdate(title="Y-40 night", date=TODAY, category_code="Y40_DEEP", location=None),
    )

    assert updated.title == "Y-40 night"
    assert updated.date == TODAY
    assert updated.category_code == "Y40_DEEP"
    assert updated.location is None
    assert updated.start_time == event.start_time


@pytest.mark.asyncio
async def test_shrinking_capacity_below_signups_is_rejected(db_session, fetch, make_event, subscribed_member):
    members = [await subscribed_member() for _ in range(3)]
    event = await make_event(max_slots=5)
    for member in members:
        assert (await book(db_session, member.id, event.id, NOW)).ok

    with pytest.raises(HTTPException) as exc_info:
        await update_event(db_session, event.id, EventUpdate(max_slots=2, title="Smaller"))
    assert exc_info.value.status_code == 409

    # The whole edit rolled back
    stored = await fetch(Event, event.id)
    assert stored.max_slots == 5
    assert stored.title == "Pool training"
    assert stored.booked_slots == 3


@pytest.mark.asyncio
async def test_capacity_can_shrink_to_current_signups(db_session, make_event):
    event = await make_event(max_slots=8, booked_slots=3)

    updated = await update_event(db_session, event.id, EventUpdate(max_slots=3))

    assert updated.max_slots == 3
    assert updated.free_slots == 0


@pytest.mark.asyncio
async def test_grown_capacity_is_bookable(db_session, make_event, subscribed_member):
    member = await subscribed_member()
    event = await make_event(max_slots=1, booked_slots=1)

    await update_event(db_session, event.id, EventUpdate(max_slots=2))

    assert (await book(db_session, member.id, event.id, NOW)).ok


@pytest.mark.asyncio
async def test_update_event_checks_times_against_stored_values(db_session, make_event):
    event = await make_event(start_time=time(19, 0))

    with pytest.raises(HTTPException) as exc_info:
        await update_event(db_session, event.id, EventUpdate(end_time=time(18, 0)))
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_update_event_unknown_references(db_session, make_event):
    event = await make_event()

    with pytest.raises(HTTPException) as exc_info:
        await update_event(db_session, event.id, EventUpdate(category_code="NOPE"))
    assert exc_info.value.status_code == 400

    with pytest.raises(HTTPException) as exc_info:
        await update_event(db_session, 99999, EventUpdate(title="Ghost"))
    assert exc_info.value.status_code == 404


def test_update_payload_validation():
    with pytest.raises(ValidationError):
        EventUpdate()
    with pytest.raises(ValidationError):
        EventUpdate(max_slots=0)
    with pytest.raises(ValidationError):
        EventUpdate(title=None)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_categories_with_their_rules(db_session, make_category):
    await make_category("TRY_DIVE")
    await make_category("COURSE_ADVANCED")
    await make_category("LOCAL_MEETUP")

    categories = {category.code: category for category in await list_categories(db_session)}

    assert list(categories) == ["COURSE_ADVANCED", "LOCAL_MEETUP", "TRY_DIVE"]
    assert categories["TRY_DIVE"].requires_active_subscription is False
    assert categories["COURSE_ADVANCED"].allowed_tiers == [Tier.ADVANCED]
    assert categories["COURSE_ADVANCED"].minimum_tier == Tier.ADVANCED
    # Unknown codes fall back to the default rule
    assert categories["LOCAL_MEETUP"].allowed_tiers == [Tier.ALL, Tier.OPEN, Tier.ADVANCED, Tier.DEEP]
