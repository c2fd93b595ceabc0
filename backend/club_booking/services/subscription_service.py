"""
Subscription lifecycle: creation with group memberships, activation on
payment confirmation, cancellation and expiry.

At most one ACTIVE subscription per member. Every path that produces an
ACTIVE subscription supersedes the previous one in the same transaction:
the member row is locked first, prior ACTIVE subscriptions are moved to
CANCELLED (their window clamped to "now") and the group memberships they
funded are deactivated. The partial unique index on
subscriptions(member_id) WHERE status = 'ACTIVE' backs this up in the store.

Credits are never written here; only the reservation manager moves them.
"""

from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, case, func, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.core.clock import as_utc
from club_booking.core.config import get_settings
from club_booking.core.logging import get_logger
from club_booking.core.metrics import subscriptions_superseded
from club_booking.models.enums import SubscriptionStatus
from club_booking.models.group import Group, GroupMembership
from club_booking.models.member import Member
from club_booking.models.subscription import Subscription
from club_booking.schemas.subscription import SubscriptionCreate

logger = get_logger(__name__)


async def _lock_member(db: AsyncSession, member_id: int) -> Member:
    result = await db.execute(select(Member).where(Member.id == member_id).with_for_update())
    member = result.scalar_one_or_none()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Member {member_id} not found",
        )
    return member


async def _lock_subscription(db: AsyncSession, subscription_id: int) -> Subscription:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.id == subscription_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    subscription = result.scalar_one_or_none()
    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subscription {subscription_id} not found",
        )
    return subscription


async def _end_subscriptions(
    db: AsyncSession,
    subscription_ids: list[int],
    new_status: SubscriptionStatus,
    now: datetime,
) -> None:
    """Move subscriptions to a terminal status and deactivate their memberships."""
    if not subscription_ids:
        return

    now_param = literal(now, Subscription.end_date.type)
    await db.execute(
        update(Subscription)
        .where(Subscription.id.in_(subscription_ids))
        .values(
            status=new_status.value,
            # Clamp a running window to "now"; leave future or past windows alone
            end_date=case(
                (
                    and_(Subscription.start_date < now_param, Subscription.end_date > now_param),
                    now_param,
                ),
                else_=Subscription.end_date,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(GroupMembership)
        .where(GroupMembership.subscription_id.in_(subscription_ids))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )


async def _supersede_active(
    db: AsyncSession,
    member_id: int,
    now: datetime,
    keep_id: Optional[int] = None,
) -> list[int]:
    query = select(Subscription.id).where(
        Subscription.member_id == member_id,
        Subscription.status == SubscriptionStatus.ACTIVE.value,
    )
    if keep_id is not None:
        query = query.where(Subscription.id != keep_id)

    result = await db.execute(query.with_for_update())
    superseded = list(result.scalars().all())
    if superseded:
        await _end_subscriptions(db, superseded, SubscriptionStatus.CANCELLED, now)
        subscriptions_superseded.inc(len(superseded))
        logger.info("subscription_superseded", member_id=member_id, subscription_ids=superseded)
    return superseded


async def create_subscription(
    db: AsyncSession,
    data: SubscriptionCreate,
    now: datetime,
) -> Subscription:
    """
    Create a subscription and its group memberships in one transaction.
    A new ACTIVE subscription cancels the member's previous ACTIVE one.
    """
    now = as_utc(now)
    start_date = as_utc(data.start_date)
    end_date = as_utc(data.end_date)
    group_ids = list(dict.fromkeys(data.group_ids))

    async with db.begin():
        await _lock_member(db, data.member_id)

        if group_ids:
            result = await db.execute(select(func.count()).select_from(Group).where(Group.id.in_(group_ids)))
            if result.scalar() != len(group_ids):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="One or more groups do not exist",
                )

        if data.status == SubscriptionStatus.ACTIVE:
            await _supersede_active(db, data.member_id, now)

        subscription = Subscription(
            member_id=data.member_id,
            start_date=start_date,
            end_date=end_date,
            amount=data.amount,
            currency=data.currency,
            credits=data.credits if data.credits is not None else get_settings().DEFAULT_SUBSCRIPTION_CREDITS,
            status=data.status.value,
            payment_ref=data.payment_ref,
        )
        db.add(subscription)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Member already has an active subscription",
            ) from exc

        valid_from = as_utc(data.valid_from) if data.valid_from else start_date
        valid_to = as_utc(data.valid_to) if data.valid_to else end_date
        for group_id in group_ids:
            db.add(GroupMembership(
                member_id=data.member_id,
                group_id=group_id,
                subscription_id=subscription.id,
                valid_from=valid_from,
                valid_to=valid_to,
                is_active=True,
            ))
        await db.flush()
        await db.refresh(subscription)

    logger.info(
        "subscription_created",
        subscription_id=subscription.id,
        member_id=subscription.member_id,
        status=subscription.status,
        groups=group_ids,
    )
    return subscription


async def activate_subscription(
    db: AsyncSession,
    subscription_id: int,
    now: datetime,
    payment_ref: Optional[str] = None,
) -> Subscription:
    """PENDING -> ACTIVE once the payment is confirmed."""
    now = as_utc(now)

    async with db.begin():
        # Member row first, same lock order as create_subscription
        result = await db.execute(select(Subscription.member_id).where(Subscription.id == subscription_id))
        member_id = result.scalar_one_or_none()
        if member_id is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Subscription {subscription_id} not found",
            )
        await _lock_member(db, member_id)

        subscription = await _lock_subscription(db, subscription_id)
        if subscription.status != SubscriptionStatus.PENDING.value:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Only pending subscriptions can be activated (status: {subscription.status})",
            )

        await _supersede_active(db, subscription.member_id, now, keep_id=subscription.id)

        subscription.status = SubscriptionStatus.ACTIVE.value
        if payment_ref:
            subscription.payment_ref = payment_ref
        try:
            await db.flush()
        except IntegrityError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Member already has an active subscription",
            ) from exc
        await db.refresh(subscription)

    logger.info("subscription_activated", subscription_id=subscription.id, member_id=subscription.member_id)
    return subscription


async def cancel_subscription(db: AsyncSession, subscription_id: int, now: datetime) -> Subscription:
    """Administrative cancellation of a PENDING or ACTIVE subscription."""
    now = as_utc(now)

    async with db.begin():
        subscription = await _lock_subscription(db, subscription_id)
        if subscription.status not in (SubscriptionStatus.PENDING.value, SubscriptionStatus.ACTIVE.value):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Subscription is already {subscription.status.lower()}",
            )
        await _end_subscriptions(db, [subscription.id], SubscriptionStatus.CANCELLED, now)
        subscription = await _lock_subscription(db, subscription_id)

    logger.info("subscription_cancelled", subscription_id=subscription.id, member_id=subscription.member_id)
    return subscription


async def expire_subscriptions(db: AsyncSession, now: datetime) -> int:
    """
    Background sweep: ACTIVE subscriptions past their end_date become EXPIRED.
    Reads already treat them as inactive; this only keeps the status column honest.
    """
    now = as_utc(now)

    async with db.begin():
        result = await db.execute(
            select(Subscription.id)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.end_date <= now,
            )
            .with_for_update()
        )
        expired = list(result.scalars().all())
        await _end_subscriptions(db, expired, SubscriptionStatus.EXPIRED, now)

    if expired:
        logger.info("subscriptions_expired", count=len(expired))
    return len(expired)


async def get_active_subscription(
    db: AsyncSession, member_id: int, now: datetime
) -> Optional[Subscription]:
    """The member's ACTIVE subscription whose window contains `now`, if any."""
    now = as_utc(now)
    result = await db.execute(
        select(Subscription).where(
            Subscription.member_id == member_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.start_date <= now,
            Subscription.end_date > now,
        )
    )
    return result.scalar_one_or_none()
