"""
Access group administration. Groups are referenced by subscriptions when
granting tiers; their tier is fixed once memberships point at them.
"""

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.core.logging import get_logger
from club_booking.models.group import Group
from club_booking.schemas.group import GroupCreate

logger = get_logger(__name__)


async def create_group(db: AsyncSession, group_data: GroupCreate) -> Group:
    async with db.begin():
        group = Group(
            name=group_data.name,
            tier=group_data.tier.value,
            description=group_data.description,
        )
        db.add(group)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Group {group_data.name!r} already exists",
            ) from exc

    logger.info("group_created", group_id=group.id, name=group.name, tier=group.tier)
    return group


async def list_groups(db: AsyncSession) -> list[Group]:
    result = await db.execute(select(Group).order_by(Group.name.asc()))
    return list(result.scalars().all())
