"""
Member entitlement endpoints (advisory display).
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.api.deps import get_now
from club_booking.db.session import get_db
from club_booking.schemas.member import TiersResponse
from club_booking.schemas.subscription import SubscriptionResponse
from club_booking.services.entitlement_service import resolve_tiers
from club_booking.services.subscription_service import get_active_subscription
from club_booking.core.security import get_current_member_id

router = APIRouter(prefix="/members", tags=["Members"])


@router.get("/me/tiers", response_model=TiersResponse)
async def my_tiers(
    member_id: int = Depends(get_current_member_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """Tiers the member holds right now, after hierarchy expansion."""
    tiers = await resolve_tiers(db, member_id, now)
    subscription = await get_active_subscription(db, member_id, now)
    return TiersResponse(
        member_id=member_id,
        as_of=now,
        tiers=sorted(tiers, key=lambda tier: tier.rank),
        active_subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
    )
