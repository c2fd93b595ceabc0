"""
Pydantic schemas for access groups.
"""

from typing import Optional

from pydantic import BaseModel, Field

from club_booking.models.enums import Tier


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    tier: Tier = Tier.ALL
    description: Optional[str] = Field(None, max_length=500)


class GroupResponse(BaseModel):
    id: int
    name: str
    tier: Tier
    description: Optional[str]

    model_config = {"from_attributes": True}
