"""
Pydantic schemas for subscription administration.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from club_booking.models.enums import SubscriptionStatus
from club_booking.models.subscription import ISO_CURRENCIES


class SubscriptionCreate(BaseModel):
    member_id: int
    start_date: datetime
    end_date: datetime
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: str = Field(default="EUR")
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    credits: Optional[int] = Field(default=None, ge=0)
    payment_ref: Optional[str] = Field(default=None, max_length=255)
    group_ids: list[int] = Field(default_factory=list)
    # Membership window overrides; default to the subscription window
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    @model_validator(mode="after")
    def check_fields(self) -> "SubscriptionCreate":
        if self.currency not in ISO_CURRENCIES:
            raise ValueError(f"currency must be one of {', '.join(ISO_CURRENCIES)}")
        if self.status not in (SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE):
            raise ValueError("new subscriptions must be PENDING or ACTIVE")
        for name in ("start_date", "end_date", "valid_from", "valid_to"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                raise ValueError(f"{name} must include a timezone offset")
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        valid_from = self.valid_from or self.start_date
        valid_to = self.valid_to or self.end_date
        if valid_to <= valid_from:
            raise ValueError("valid_to must be after valid_from")
        return self


class SubscriptionActivate(BaseModel):
    payment_ref: Optional[str] = Field(default=None, max_length=255)


class SubscriptionResponse(BaseModel):
    id: int
    member_id: int
    start_date: datetime
    end_date: datetime
    amount: Decimal
    currency: str
    credits: int
    status: str
    payment_ref: Optional[str]

    model_config = {"from_attributes": True}


class ExpireResponse(BaseModel):
    expired: int
