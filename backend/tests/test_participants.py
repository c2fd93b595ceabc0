"""
Tests for administrative participant management.
"""

import pytest
from sqlalchemy import select

from club_booking.core.exceptions import BookingError
from club_booking.models.enums import EventStatus, SubscriptionStatus
from club_booking.models.event import Event
from club_booking.models.signup import Signup
from club_booking.models.subscription import Subscription
from club_booking.services.booking_service import add_participants, book, remove_participants

from conftest import NOW, TODAY


async def credits_of(session_factory, member_id: int) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(Subscription.credits).where(
                Subscription.member_id == member_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
        )
        return result.scalar_one()


@pytest.mark.asyncio
async def test_add_participants_signs_up_without_charge(db_session, session_factory, fetch, make_event, subscribed_member):
    members = [await subscribed_member(credits=4) for _ in range(2)]
    event = await make_event(max_slots=5)

    result = await add_participants(db_session, event.id, [m.id for m in members])

    assert result.ok
    assert result.value.added == [m.id for m in members]
    assert (await fetch(Event, event.id)).booked_slots == 2
    for member in members:
        assert await credits_of(session_factory, member.id) == 4

    async with session_factory() as session:
        signups = (await session.execute(select(Signup).where(Signup.event_id == event.id))).scalars().all()
    assert all(signup.subscription_id is None for signup in signups)


@pytest.mark.asyncio
async def test_add_participants_skips_cutoff_and_eligibility(db_session, make_event, make_member):
    """Administrators may add members to today's events and to categories above their tier."""
    member = await make_member()
    event = await make_event(day=TODAY, category_code="COURSE_DEEP")

    result = await add_participants(db_session, event.id, [member.id])

    assert result.value.added == [member.id]


@pytest.mark.asyncio
async def test_add_participants_reports_each_member(db_session, make_event, subscribed_member):
    booked = await subscribed_member()
    first = await subscribed_member()
    second = await subscribed_member()
    event = await make_event(max_slots=2)
    assert (await book(db_session, booked.id, event.id, NOW)).ok

    result = await add_participants(db_session, event.id, [booked.id, first.id, 424242, second.id, first.id])

    outcome = result.value
    assert outcome.already_booked == [booked.id]
    assert outcome.added == [first.id]
    assert outcome.unknown_members == [424242]
    assert outcome.rejected_full == [second.id]


@pytest.mark.asyncio
async def test_add_participants_never_exceeds_capacity(db_session, fetch, make_event, make_member):
    members = [await make_member() for _ in range(4)]
    event = await make_event(max_slots=3, booked_slots=1)

    result = await add_participants(db_session, event.id, [m.id for m in members])

    assert len(result.value.added) == 2
    assert len(result.value.rejected_full) == 2
    assert (await fetch(Event, event.id)).booked_slots == 3


@pytest.mark.asyncio
async def test_add_participants_to_cancelled_event(db_session, make_event, make_member):
    member = await make_member()
    event = await make_event(status=EventStatus.CANCELLED)

    result = await add_participants(db_session, event.id, [member.id])

    assert result.error == BookingError.EVENT_NOT_SCHEDULED


@pytest.mark.asyncio
async def test_add_participants_to_unknown_event(db_session, make_member):
    member = await make_member()
    result = await add_participants(db_session, 99999, [member.id])
    assert result.error == BookingError.EVENT_NOT_FOUND


@pytest.mark.asyncio
async def test_remove_participants_refunds_charged_signups(db_session, session_factory, fetch, make_event, subscribed_member):
    charged = await subscribed_member(credits=3)
    added = await subscribed_member(credits=3)
    absent = await subscribed_member()
    event = await make_event()
    assert (await book(db_session, charged.id, event.id, NOW)).ok
    assert (await add_participants(db_session, event.id, [added.id])).ok

    result = await remove_participants(db_session, event.id, [charged.id, added.id, absent.id], NOW)

    assert result.ok
    assert result.value.removed == [charged.id, added.id]
    assert result.value.not_booked == [absent.id]
    assert (await fetch(Event, event.id)).booked_slots == 0
    assert await credits_of(session_factory, charged.id) == 3
    assert await credits_of(session_factory, added.id) == 3


@pytest.mark.asyncio
async def test_remove_participants_from_unknown_event(db_session, make_member):
    member = await make_member()
    result = await remove_participants(db_session, 99999, [member.id], NOW)
    assert result.error == BookingError.EVENT_NOT_FOUND
