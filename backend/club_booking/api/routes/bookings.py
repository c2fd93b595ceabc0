"""
Booking endpoints backed by the reservation transaction manager.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.api.deps import get_now
from club_booking.api.errors import rejection_response
from club_booking.db.session import get_db
from club_booking.schemas.booking import (
    BookingCancelResponse, BookingCreate, BookingErrorResponse, SignupResponse,
)
from club_booking.services.booking_service import book, cancel, list_member_signups
from club_booking.services.event_service import invalidate_event_day
from club_booking.core.security import get_current_member_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])

REJECTIONS = {
    code: {"model": BookingErrorResponse}
    for code in (
        status.HTTP_403_FORBIDDEN,
        status.HTTP_404_NOT_FOUND,
        status.HTTP_409_CONFLICT,
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
}


@router.post(
    "/",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    responses=REJECTIONS,
)
async def create_booking(
    booking_data: BookingCreate,
    member_id: int = Depends(get_current_member_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a slot on an event.

    Capacity, credit and duplicate checks run inside one transaction, so
    concurrent requests for the last slot cannot both succeed. Rejections
    come back as {"code", "message"}; 503 means retry the same request.
    """
    result = await book(db, member_id, booking_data.event_id, now)
    if not result.ok:
        return rejection_response(result)
    await invalidate_event_day(db, booking_data.event_id)
    return result.value


@router.delete("/{event_id}", response_model=BookingCancelResponse, responses=REJECTIONS)
async def cancel_booking_endpoint(
    event_id: int,
    member_id: int = Depends(get_current_member_id),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the member's booking on an event and refund the credit."""
    result = await cancel(db, member_id, event_id, now)
    if not result.ok:
        return rejection_response(result)
    await invalidate_event_day(db, event_id)
    return BookingCancelResponse(message="Booking cancelled successfully", event_id=event_id)


@router.get("/", response_model=list[SignupResponse])
async def list_member_bookings(
    member_id: int = Depends(get_current_member_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all live bookings of the authenticated member."""
    return await list_member_signups(db, member_id)
