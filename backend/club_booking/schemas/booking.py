"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from club_booking.core.exceptions import BookingError


class BookingCreate(BaseModel):
    event_id: int


class SignupResponse(BaseModel):
    id: int
    member_id: int
    event_id: int
    subscription_id: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    event_id: int


class BookingErrorResponse(BaseModel):
    code: BookingError
    message: str


class ParticipantsRequest(BaseModel):
    member_ids: list[int] = Field(..., min_length=1)


class ParticipantsResponse(BaseModel):
    added: list[int] = []
    removed: list[int] = []
    already_booked: list[int] = []
    not_booked: list[int] = []
    unknown_members: list[int] = []
    rejected_full: list[int] = []

    model_config = {"from_attributes": True}
