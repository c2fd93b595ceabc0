"""
Tests for the subscription lifecycle: creation, supersession, activation,
cancellation and expiry.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import select

from club_booking.models.enums import SubscriptionStatus, Tier
from club_booking.models.group import GroupMembership
from club_booking.models.subscription import Subscription
from club_booking.schemas.subscription import SubscriptionCreate
from club_booking.services.entitlement_service import resolve_tiers
from club_booking.services.subscription_service import (
    activate_subscription, cancel_subscription, create_subscription,
    expire_subscriptions, get_active_subscription,
)

from conftest import NOW


def aware(value: datetime) -> datetime:
    """SQLite hands timestamps back without an offset; they are stored in UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def payload(member_id: int, group_ids=(), **overrides) -> SubscriptionCreate:
    data = {
        "member_id": member_id,
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=364),
        "amount": Decimal("350.00"),
        "group_ids": list(group_ids),
    }
    data.update(overrides)
    return SubscriptionCreate(**data)


async def memberships_of(session_factory, subscription_id: int) -> list[GroupMembership]:
    async with session_factory() as session:
        result = await session.execute(
            select(GroupMembership).where(GroupMembership.subscription_id == subscription_id)
        )
        return list(result.unique().scalars().all())


@pytest.mark.asyncio
async def test_create_subscription_with_memberships(db_session, session_factory, make_member, make_group):
    member = await make_member()
    group = await make_group(Tier.OPEN)

    subscription = await create_subscription(db_session, payload(member.id, [group.id]), NOW)

    assert subscription.status == SubscriptionStatus.ACTIVE.value
    assert subscription.credits == 32
    assert subscription.currency == "EUR"

    memberships = await memberships_of(session_factory, subscription.id)
    assert [(m.member_id, m.group_id, m.is_active) for m in memberships] == [(member.id, group.id, True)]
    assert aware(memberships[0].valid_from) == NOW - timedelta(days=1)
    assert aware(memberships[0].valid_to) == NOW + timedelta(days=364)

    assert await resolve_tiers(db_session, member.id, NOW) == {Tier.OPEN, Tier.ALL}


@pytest.mark.asyncio
async def test_create_subscription_with_explicit_credits_and_window(db_session, session_factory, make_member, make_group):
    member = await make_member()
    group = await make_group(Tier.DEEP)
    valid_to = NOW + timedelta(days=30)

    subscription = await create_subscription(
        db_session, payload(member.id, [group.id], credits=10, valid_to=valid_to), NOW
    )

    assert subscription.credits == 10
    memberships = await memberships_of(session_factory, subscription.id)
    assert aware(memberships[0].valid_to) == valid_to


@pytest.mark.asyncio
async def test_new_active_subscription_supersedes_previous(
    db_session, session_factory, fetch, make_member, make_group, make_subscription
):
    member = await make_member()
    old = await make_subscription(member, tiers=(Tier.DEEP,), credits=7)
    group = await make_group(Tier.OPEN)

    new = await create_subscription(db_session, payload(member.id, [group.id]), NOW)

    previous = await fetch(Subscription, old.id)
    assert previous.status == SubscriptionStatus.CANCELLED.value
    assert aware(previous.end_date) == NOW
    assert previous.credits == 7
    assert all(not m.is_active for m in await memberships_of(session_factory, old.id))

    active = await get_active_subscription(db_session, member.id, NOW)
    assert active.id == new.id
    assert await resolve_tiers(db_session, member.id, NOW) == {Tier.OPEN, Tier.ALL}


@pytest.mark.asyncio
async def test_superseding_a_future_subscription_keeps_its_window(db_session, fetch, make_member, make_subscription):
    member = await make_member()
    start = NOW + timedelta(days=10)
    end = NOW + timedelta(days=40)
    future = await make_subscription(member, start=start, end=end)

    await create_subscription(db_session, payload(member.id), NOW)

    previous = await fetch(Subscription, future.id)
    assert previous.status == SubscriptionStatus.CANCELLED.value
    assert aware(previous.end_date) == end


@pytest.mark.asyncio
async def test_pending_subscription_does_not_supersede(db_session, make_member, make_subscription):
    member = await make_member()
    current = await make_subscription(member)

    pending = await create_subscription(
        db_session, payload(member.id, status=SubscriptionStatus.PENDING), NOW
    )

    assert pending.status == SubscriptionStatus.PENDING.value
    assert (await get_active_subscription(db_session, member.id, NOW)).id == current.id


@pytest.mark.asyncio
async def test_activation_supersedes_previous(db_session, fetch, make_member, make_subscription):
    member = await make_member()
    current = await make_subscription(member)
    pending = await create_subscription(
        db_session, payload(member.id, status=SubscriptionStatus.PENDING), NOW
    )

    activated = await activate_subscription(db_session, pending.id, NOW, payment_ref="pi_123")

    assert activated.status == SubscriptionStatus.ACTIVE.value
    assert activated.payment_ref == "pi_123"
    assert (await fetch(Subscription, current.id)).status == SubscriptionStatus.CANCELLED.value
    assert (await get_active_subscription(db_session, member.id, NOW)).id == pending.id


@pytest.mark.asyncio
async def test_only_pending_subscriptions_can_be_activated(db_session, make_member, make_subscription):
    member = await make_member()
    current = await make_subscription(member)

    with pytest.raises(HTTPException) as exc_info:
        await activate_subscription(db_session, current.id, NOW)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_activate_unknown_subscription(db_session):
    with pytest.raises(HTTPException) as exc_info:
        await activate_subscription(db_session, 99999, NOW)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_subscription(db_session, session_factory, make_member, make_subscription):
    member = await make_member()
    subscription = await make_subscription(member, tiers=(Tier.ADVANCED,))

    cancelled = await cancel_subscription(db_session, subscription.id, NOW)

    assert cancelled.status == SubscriptionStatus.CANCELLED.value
    assert aware(cancelled.end_date) == NOW
    assert all(not m.is_active for m in await memberships_of(session_factory, subscription.id))
    assert await get_active_subscription(db_session, member.id, NOW) is None
    assert await resolve_tiers(db_session, member.id, NOW) == frozenset()


@pytest.mark.asyncio
async def test_cancel_twice(db_session, make_member, make_subscription):
    member = await make_member()
    subscription = await make_subscription(member)
    await cancel_subscription(db_session, subscription.id, NOW)

    with pytest.raises(HTTPException) as exc_info:
        await cancel_subscription(db_session, subscription.id, NOW)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_unknown_member(db_session):
    with pytest.raises(HTTPException) as exc_info:
        await create_subscription(db_session, payload(99999), NOW)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_unknown_group(db_session, make_member):
    member = await make_member()

    with pytest.raises(HTTPException) as exc_info:
        await create_subscription(db_session, payload(member.id, [99999]), NOW)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_expire_subscriptions(db_session, fetch, make_member, make_subscription):
    lapsed = await make_subscription(
        await make_member(), start=NOW - timedelta(days=60), end=NOW - timedelta(days=1)
    )
    running = await make_subscription(await make_member())

    assert await expire_subscriptions(db_session, NOW) == 1

    assert (await fetch(Subscription, lapsed.id)).status == SubscriptionStatus.EXPIRED.value
    assert (await fetch(Subscription, running.id)).status == SubscriptionStatus.ACTIVE.value
    assert await expire_subscriptions(db_session, NOW) == 0


@pytest.mark.asyncio
async def test_active_subscription_respects_window(db_session, make_member, make_subscription):
    member = await make_member()
    subscription = await make_subscription(member, start=NOW + timedelta(days=1), end=NOW + timedelta(days=30))

    assert await get_active_subscription(db_session, member.id, NOW) is None
    found = await get_active_subscription(db_session, member.id, NOW + timedelta(days=1))
    assert found.id == subscription.id


def test_payload_validation():
    with pytest.raises(ValidationError):
        payload(1, currency="JPY")
    with pytest.raises(ValidationError):
        payload(1, end_date=NOW - timedelta(days=2))
    with pytest.raises(ValidationError):
        payload(1, start_date=datetime(2026, 3, 1))
    with pytest.raises(ValidationError):
        payload(1, status=SubscriptionStatus.EXPIRED)
    with pytest.raises(ValidationError):
        payload(1, amount=Decimal("0"))
