"""
Pydantic schemas for event-related request/response validation.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from club_booking.models.enums import Tier


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=255)
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    max_slots: int = Field(default=10, gt=0, le=1000)
    category_code: str = Field(..., min_length=1, max_length=50)

    @model_validator(mode="after")
    def check_times(self) -> "EventCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventUpdate(BaseModel):
    """Partial edit; omitted fields keep their value. Status has its own routes."""

    title: str = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=255)
    date: dt.date = None
    start_time: dt.time = None
    end_time: dt.time = None
    max_slots: int = Field(None, gt=0, le=1000)
    category_code: str = Field(None, min_length=1, max_length=50)

    @model_validator(mode="after")
    def check_not_empty(self) -> "EventUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field must be given")
        return self


class EventCategoryResponse(BaseModel):
    """A category together with the eligibility rule the engine applies to it."""

    id: int
    code: str
    label: str
    requires_active_subscription: bool
    allowed_tiers: list[Tier]
    minimum_tier: Tier


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    location: Optional[str]
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    max_slots: int
    booked_slots: int
    free_slots: int
    status: str
    category_code: Optional[str] = None

    model_config = {"from_attributes": True}


class DayScheduleEntry(EventResponse):
    minimum_tier: Tier
    can_book: bool = False
    booked_by_me: bool = False


class DayScheduleResponse(BaseModel):
    day: dt.date
    events: list[DayScheduleEntry]
    cached: bool = False
