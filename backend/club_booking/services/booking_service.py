"""
Reservation transaction manager: atomic book/cancel of event slots.

CONCURRENCY STRATEGY: Conditional claim + row locks in one transaction
=====================================================================

Problem:
  Two members try to book the last slot simultaneously.
  Both count signups=9 of 10, both insert, both succeed.
  Result: Overbooking. The same race drains a subscription with 1 credit twice.

Solution:
  Every decision re-reads authoritative state inside the transaction that
  writes it. The first statement of the write transaction is

    UPDATE events SET booked_slots = booked_slots + 1
    WHERE id = :event_id AND status = 'SCHEDULED' AND booked_slots < max_slots

  which claims a slot atomically and leaves the event row locked until
  commit, so concurrent bookings for the same event are serialized there.
  If no row matched, the event is re-read only to pick the rejection code.

  Then, still in the same transaction:
  1. SELECT ... FOR UPDATE the member's ACTIVE subscription (credit check)
  2. eligibility: member status, subscription requirement, resolved tiers
  3. INSERT the signup; the (member_id, event_id) unique constraint turns
     a concurrent duplicate into ALREADY_BOOKED
  4. UPDATE subscriptions SET credits = credits - 1 WHERE credits > 0

  Any rejection raised along the way rolls the whole transaction back,
  including the claimed slot. CHECK constraints (booked_slots <= max_slots,
  credits >= 0) are the final safety net.

  Cancellation takes the event row first as well (releasing the slot), then
  deletes the signup and refunds the credit, so book and cancel on one event
  always lock in the same order.

  Running the conditional UPDATE first also matters on SQLite: the write
  lock is requested before anything is read, so a competing writer waits on
  the busy timeout instead of failing a read-to-write lock upgrade.

The cutoff check runs before any write transaction is opened.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Mapping, Optional, TypeVar
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.core.clock import as_utc, club_timezone
from club_booking.core.exceptions import BookingError, BookingRejected, BookingResult
from club_booking.core.logging import get_logger
from club_booking.core.metrics import booking_latency, record_booking_attempt, record_transient_error
from club_booking.models.enums import EventStatus, MemberStatus, SubscriptionStatus, Tier
from club_booking.models.event import Event, EventCategory
from club_booking.models.member import Member
from club_booking.models.signup import Signup
from club_booking.models.subscription import Subscription
from club_booking.services.cutoff_policy import can_book, can_cancel
from club_booking.services.eligibility import (
    EligibilityRule, RuleTable, TierSet, get_hierarchy, get_rule_table,
)
from club_booking.services.entitlement_service import resolve_tiers

logger = get_logger(__name__)

T = TypeVar("T")

# Serialization failure and deadlock: the store aborted us, a retry may succeed
TRANSIENT_SQLSTATES = {"40001", "40P01"}


@dataclass
class ParticipantsOutcome:
    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    already_booked: list[int] = field(default_factory=list)
    not_booked: list[int] = field(default_factory=list)
    unknown_members: list[int] = field(default_factory=list)
    rejected_full: list[int] = field(default_factory=list)


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, PoolTimeoutError):
        return True
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    if exc.connection_invalidated:
        return True
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True
    # OperationalError covers lost connections, lock timeouts and "database is locked"
    return isinstance(exc, OperationalError)


async def _run(
    operation: str,
    action: Callable[[], Awaitable[T]],
    **context,
) -> BookingResult[T]:
    """Run one engine operation and fold its outcome into a BookingResult."""
    started = time.perf_counter()
    try:
        value = await action()
    except BookingRejected as rejection:
        record_booking_attempt(operation, rejection.code.value)
        logger.info(
            "booking_rejected",
            operation=operation,
            code=rejection.code.value,
            reason=rejection.message,
            **context,
        )
        return BookingResult.rejected(rejection)
    except (DBAPIError, PoolTimeoutError) as exc:
        if not _is_transient(exc):
            raise
        record_transient_error(operation)
        record_booking_attempt(operation, BookingError.TRANSIENT_STORE_ERROR.value)
        logger.warning("booking_store_error", operation=operation, error=str(exc), **context)
        return BookingResult.rejected(BookingRejected(BookingError.TRANSIENT_STORE_ERROR))
    finally:
        booking_latency.labels(operation=operation).observe(time.perf_counter() - started)

    record_booking_attempt(operation, "ok")
    return BookingResult.success(value)


# ---------------------------------------------------------------------------
# Building blocks (except _event_date, all run inside the caller's transaction)
# ---------------------------------------------------------------------------

async def _event_date(db: AsyncSession, event_id: int):
    """Short read-only transaction for the cutoff pre-check."""
    async with db.begin():
        result = await db.execute(select(Event.date).where(Event.id == event_id))
        event_date = result.scalar_one_or_none()
    if event_date is None:
        raise BookingRejected(BookingError.EVENT_NOT_FOUND)
    return event_date


async def _try_claim_slot(db: AsyncSession, event_id: int) -> bool:
    result = await db.execute(
        update(Event)
        .where(
            Event.id == event_id,
            Event.status == EventStatus.SCHEDULED.value,
            Event.booked_slots < Event.max_slots,
        )
        .values(booked_slots=Event.booked_slots + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _claim_slot(db: AsyncSession, event_id: int) -> None:
    if await _try_claim_slot(db, event_id):
        return

    result = await db.execute(select(Event.status).where(Event.id == event_id))
    status = result.scalar_one_or_none()
    if status is None:
        raise BookingRejected(BookingError.EVENT_NOT_FOUND)
    if status != EventStatus.SCHEDULED.value:
        raise BookingRejected(BookingError.EVENT_NOT_SCHEDULED)
    raise BookingRejected(BookingError.EVENT_FULL)


async def _release_slot(db: AsyncSession, event_id: int) -> bool:
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.booked_slots > 0)
        .values(booked_slots=Event.booked_slots - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _category_code(db: AsyncSession, event_id: int) -> Optional[str]:
    result = await db.execute(
        select(EventCategory.code)
        .join(Event, Event.category_id == EventCategory.id)
        .where(Event.id == event_id)
    )
    return result.scalar_one_or_none()


async def _lock_active_subscription(
    db: AsyncSession, member_id: int, now: datetime
) -> Optional[Subscription]:
    """The member's ACTIVE subscription whose window contains `now`, row-locked."""
    now = as_utc(now)
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.member_id == member_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.start_date <= now,
            Subscription.end_date > now,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _adjust_credits(db: AsyncSession, subscription_id: int, delta: int) -> None:
    stmt = update(Subscription).where(Subscription.id == subscription_id)
    if delta < 0:
        stmt = stmt.where(Subscription.credits >= -delta)
    result = await db.execute(
        stmt.values(credits=Subscription.credits + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise BookingRejected(BookingError.INSUFFICIENT_CREDIT)


async def _check_eligibility(
    db: AsyncSession,
    member_id: int,
    rule: EligibilityRule,
    subscription: Optional[Subscription],
    now: datetime,
    hierarchy: Mapping[Tier, TierSet],
) -> None:
    result = await db.execute(select(Member.status).where(Member.id == member_id))
    status = result.scalar_one_or_none()
    if status != MemberStatus.ACTIVE.value:
        raise BookingRejected(BookingError.NOT_AUTHORIZED, "Member is not active")

    if rule.requires_active_subscription and subscription is None:
        raise BookingRejected(
            BookingError.NOT_AUTHORIZED, "An active subscription is required for this category"
        )

    tiers = await resolve_tiers(db, member_id, now, hierarchy)
    if not rule.admits(tiers):
        raise BookingRejected(BookingError.NOT_AUTHORIZED)


async def _refund(db: AsyncSession, member_id: int, event_id: int, now: datetime) -> Optional[int]:
    subscription = await _lock_active_subscription(db, member_id, now)
    if subscription is None:
        logger.warning("signup_cancelled_without_refund", member_id=member_id, event_id=event_id)
        return None
    await _adjust_credits(db, subscription.id, +1)
    return subscription.id


# ---------------------------------------------------------------------------
# Book / cancel
# ---------------------------------------------------------------------------

async def _book(
    db: AsyncSession,
    member_id: int,
    event_id: int,
    now: datetime,
    rules: RuleTable,
    hierarchy: Mapping[Tier, TierSet],
    tz: ZoneInfo,
) -> Signup:
    event_date = await _event_date(db, event_id)
    decision = can_book(event_date, now, tz)
    if not decision.allowed:
        raise BookingRejected(BookingError.CUTOFF_EXCEEDED, decision.reason)

    async with db.begin():
        await _claim_slot(db, event_id)

        rule = rules.rule_for(await _category_code(db, event_id))
        subscription = await _lock_active_subscription(db, member_id, now)
        if subscription is not None and subscription.credits <= 0:
            raise BookingRejected(BookingError.INSUFFICIENT_CREDIT)

        await _check_eligibility(db, member_id, rule, subscription, now, hierarchy)

        signup = Signup(
            member_id=member_id,
            event_id=event_id,
            subscription_id=subscription.id if subscription is not None else None,
        )
        db.add(signup)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise BookingRejected(BookingError.ALREADY_BOOKED) from exc

        if subscription is not None:
            await _adjust_credits(db, subscription.id, -1)

        await db.refresh(signup)

    logger.info(
        "booking_created",
        signup_id=signup.id,
        member_id=member_id,
        event_id=event_id,
        subscription_id=signup.subscription_id,
    )
    return signup


async def book(
    db: AsyncSession,
    member_id: int,
    event_id: int,
    now: datetime,
    *,
    rules: Optional[RuleTable] = None,
    hierarchy: Optional[Mapping[Tier, TierSet]] = None,
    tz: Optional[ZoneInfo] = None,
) -> BookingResult[Signup]:
    """
    Reserve a slot on `event_id` for `member_id` at server time `now`.

    `db` must not have a transaction in progress; the operation opens and
    commits its own. Returns the created Signup or a typed rejection.
    """
    return await _run(
        "book",
        lambda: _book(
            db,
            member_id,
            event_id,
            now,
            rules if rules is not None else get_rule_table(),
            hierarchy if hierarchy is not None else get_hierarchy(),
            tz or club_timezone(),
        ),
        member_id=member_id,
        event_id=event_id,
    )


async def _cancel(
    db: AsyncSession,
    member_id: int,
    event_id: int,
    now: datetime,
    tz: ZoneInfo,
) -> None:
    event_date = await _event_date(db, event_id)
    decision = can_cancel(event_date, now, tz)
    if not decision.allowed:
        raise BookingRejected(BookingError.CUTOFF_EXCEEDED, decision.reason)

    async with db.begin():
        if not await _release_slot(db, event_id):
            raise BookingRejected(BookingError.SIGNUP_NOT_FOUND)

        result = await db.execute(
            select(Signup)
            .where(Signup.member_id == member_id, Signup.event_id == event_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        signup = result.scalar_one_or_none()
        if signup is None:
            raise BookingRejected(BookingError.SIGNUP_NOT_FOUND)

        charged = signup.charged
        await db.delete(signup)
        await db.flush()

        refunded_to = await _refund(db, member_id, event_id, now) if charged else None

    logger.info(
        "booking_cancelled",
        member_id=member_id,
        event_id=event_id,
        refunded_subscription_id=refunded_to,
    )


async def cancel(
    db: AsyncSession,
    member_id: int,
    event_id: int,
    now: datetime,
    *,
    tz: Optional[ZoneInfo] = None,
) -> BookingResult[None]:
    """Release `member_id`'s slot on `event_id` and refund the credit it cost."""
    return await _run(
        "cancel",
        lambda: _cancel(db, member_id, event_id, now, tz or club_timezone()),
        member_id=member_id,
        event_id=event_id,
    )


# ---------------------------------------------------------------------------
# Administrative participant management
# ---------------------------------------------------------------------------

async def _lock_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .with_for_update(of=Event)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if event is None:
        raise BookingRejected(BookingError.EVENT_NOT_FOUND)
    return event


async def _add_participants(db: AsyncSession, event_id: int, member_ids: list[int]) -> ParticipantsOutcome:
    outcome = ParticipantsOutcome()

    async with db.begin():
        event = await _lock_event(db, event_id)
        if event.status != EventStatus.SCHEDULED.value:
            raise BookingRejected(BookingError.EVENT_NOT_SCHEDULED)

        existing = set(
            (await db.execute(
                select(Signup.member_id).where(
                    Signup.event_id == event_id, Signup.member_id.in_(member_ids)
                )
            )).scalars().all()
        )
        known = set(
            (await db.execute(select(Member.id).where(Member.id.in_(member_ids)))).scalars().all()
        )

        for member_id in member_ids:
            if member_id in existing:
                outcome.already_booked.append(member_id)
            elif member_id not in known:
                outcome.unknown_members.append(member_id)
            elif await _try_claim_slot(db, event_id):
                db.add(Signup(member_id=member_id, event_id=event_id, subscription_id=None))
                outcome.added.append(member_id)
            else:
                outcome.rejected_full.append(member_id)

        try:
            await db.flush()
        except IntegrityError as exc:
            raise BookingRejected(BookingError.ALREADY_BOOKED) from exc

    logger.info("participants_added", event_id=event_id, added=outcome.added, full=outcome.rejected_full)
    return outcome


async def add_participants(
    db: AsyncSession, event_id: int, member_ids: Iterable[int]
) -> BookingResult[ParticipantsOutcome]:
    """
    Administrative bulk signup. Skips cutoff, eligibility and credit checks
    and does not charge credits, but claims capacity through the same
    conditional update as `book`.
    """
    ids = list(dict.fromkeys(member_ids))
    return await _run("add_participants", lambda: _add_participants(db, event_id, ids), event_id=event_id)


async def _remove_participants(
    db: AsyncSession, event_id: int, member_ids: list[int], now: datetime
) -> ParticipantsOutcome:
    outcome = ParticipantsOutcome()

    async with db.begin():
        await _lock_event(db, event_id)

        for member_id in member_ids:
            result = await db.execute(
                select(Signup)
                .where(Signup.member_id == member_id, Signup.event_id == event_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            signup = result.scalar_one_or_none()
            if signup is None:
                outcome.not_booked.append(member_id)
                continue

            charged = signup.charged
            await db.delete(signup)
            await db.flush()
            await _release_slot(db, event_id)
            if charged:
                await _refund(db, member_id, event_id, now)
            outcome.removed.append(member_id)

    logger.info("participants_removed", event_id=event_id, removed=outcome.removed)
    return outcome


async def remove_participants(
    db: AsyncSession, event_id: int, member_ids: Iterable[int], now: datetime
) -> BookingResult[ParticipantsOutcome]:
    """Administrative bulk removal; charged signups are refunded like a cancel."""
    ids = list(dict.fromkeys(member_ids))
    return await _run(
        "remove_participants",
        lambda: _remove_participants(db, event_id, ids, now),
        event_id=event_id,
    )


async def list_member_signups(db: AsyncSession, member_id: int) -> list[Signup]:
    """Get all live signups for a member, newest first."""
    result = await db.execute(
        select(Signup)
        .where(Signup.member_id == member_id)
        .order_by(Signup.created_at.desc(), Signup.id.desc())
    )
    return list(result.scalars().all())
