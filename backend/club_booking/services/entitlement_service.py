"""
Entitlement resolver: which tiers does a member hold at a given instant.

Read-only. Used for advisory display outside any transaction and by the
booking transaction itself, where it runs on the transaction's connection.
"""

from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.core.clock import as_utc
from club_booking.models.enums import Tier
from club_booking.models.group import Group, GroupMembership
from club_booking.services.eligibility import TierSet, expand_tiers, get_hierarchy


async def granted_tiers(db: AsyncSession, member_id: int, as_of: datetime) -> TierSet:
    """Tiers of the member's memberships valid at `as_of`, before expansion."""
    as_of = as_utc(as_of)
    result = await db.execute(
        select(Group.tier)
        .join(GroupMembership, GroupMembership.group_id == Group.id)
        .where(
            GroupMembership.member_id == member_id,
            GroupMembership.is_active.is_(True),
            GroupMembership.valid_from <= as_of,
            GroupMembership.valid_to > as_of,
        )
        .distinct()
    )
    return frozenset(Tier(value) for value in result.scalars().all())


async def resolve_tiers(
    db: AsyncSession,
    member_id: int,
    as_of: datetime,
    hierarchy: Optional[Mapping[Tier, TierSet]] = None,
) -> TierSet:
    """Granted tiers expanded through the tier hierarchy."""
    tiers = await granted_tiers(db, member_id, as_of)
    if hierarchy is None:
        hierarchy = get_hierarchy()
    return expand_tiers(tiers, hierarchy)
