"""
Pydantic schemas for member-facing entitlement display.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from club_booking.models.enums import Tier
from club_booking.schemas.subscription import SubscriptionResponse


class TiersResponse(BaseModel):
    member_id: int
    as_of: datetime
    tiers: list[Tier]
    active_subscription: Optional[SubscriptionResponse] = None
