"""
Administrative endpoints: scheduling, participants, groups and subscriptions.

Participant changes go through the reservation manager so that slot
counts and credits stay under the same atomic guards as member bookings.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from club_booking.api.deps import get_now
from club_booking.api.errors import rejection_response
from club_booking.core.security import require_admin
from club_booking.db.session import get_db
from club_booking.schemas.booking import BookingErrorResponse, ParticipantsRequest, ParticipantsResponse
from club_booking.schemas.event import EventCategoryResponse, EventCreate, EventResponse, EventUpdate
from club_booking.schemas.group import GroupCreate, GroupResponse
from club_booking.schemas.subscription import (
    ExpireResponse, SubscriptionActivate, SubscriptionCreate, SubscriptionResponse,
)
from club_booking.services import group_service, subscription_service
from club_booking.services.booking_service import add_participants, remove_participants
from club_booking.services.event_service import (
    cancel_event, create_event, invalidate_event_day, list_categories, restore_event, update_event,
)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

PARTICIPANT_REJECTIONS = {
    code: {"model": BookingErrorResponse}
    for code in (status.HTTP_404_NOT_FOUND, status.HTTP_409_CONFLICT, status.HTTP_503_SERVICE_UNAVAILABLE)
}


# -- Events -----------------------------------------------------------------

@router.post("/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(event_data: EventCreate, db: AsyncSession = Depends(get_db)):
    """Create a new event in a known category."""
    event = await create_event(db, event_data)
    await invalidate_event_day(db, event.id)
    return event


@router.patch("/events/{event_id}", response_model=EventResponse)
async def update_event_endpoint(event_id: int, event_data: EventUpdate, db: AsyncSession = Depends(get_db)):
    """Edit an event; capacity cannot drop below the current signups."""
    event = await update_event(db, event_id, event_data)
    await invalidate_event_day(db, event_id)
    return event


@router.get("/event-categories", response_model=list[EventCategoryResponse])
async def list_categories_endpoint(db: AsyncSession = Depends(get_db)):
    return await list_categories(db)


@router.delete("/events/{event_id}", response_model=EventResponse)
async def cancel_event_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Soft-cancel an event; new bookings are refused."""
    event = await cancel_event(db, event_id)
    await invalidate_event_day(db, event_id)
    return event


@router.patch("/events/{event_id}/restore", response_model=EventResponse)
async def restore_event_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    event = await restore_event(db, event_id)
    await invalidate_event_day(db, event_id)
    return event


@router.post(
    "/events/{event_id}/participants",
    response_model=ParticipantsResponse,
    status_code=status.HTTP_201_CREATED,
    responses=PARTICIPANT_REJECTIONS,
)
async def add_participants_endpoint(
    event_id: int,
    request: ParticipantsRequest,
    db: AsyncSession = Depends(get_db),
):
    """Sign members up without charging credits, within capacity."""
    result = await add_participants(db, event_id, request.member_ids)
    if not result.ok:
        return rejection_response(result)
    await invalidate_event_day(db, event_id)
    return result.value


@router.delete(
    "/events/{event_id}/participants",
    response_model=ParticipantsResponse,
    responses=PARTICIPANT_REJECTIONS,
)
async def remove_participants_endpoint(
    event_id: int,
    request: ParticipantsRequest,
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """Remove members from an event; charged signups are refunded."""
    result = await remove_participants(db, event_id, request.member_ids, now)
    if not result.ok:
        return rejection_response(result)
    await invalidate_event_day(db, event_id)
    return result.value


# -- Groups -----------------------------------------------------------------

@router.post("/groups", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group_endpoint(group_data: GroupCreate, db: AsyncSession = Depends(get_db)):
    """Create an access group; subscriptions grant its tier."""
    return await group_service.create_group(db, group_data)


@router.get("/groups", response_model=list[GroupResponse])
async def list_groups_endpoint(db: AsyncSession = Depends(get_db)):
    return await group_service.list_groups(db)


# -- Subscriptions ----------------------------------------------------------

@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription_endpoint(
    data: SubscriptionCreate,
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """Create a subscription with its group memberships; an ACTIVE one supersedes the previous."""
    return await subscription_service.create_subscription(db, data, now)


@router.post("/subscriptions/expire", response_model=ExpireResponse)
async def expire_subscriptions_endpoint(
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """Mark ACTIVE subscriptions past their end date as EXPIRED."""
    return ExpireResponse(expired=await subscription_service.expire_subscriptions(db, now))


@router.post("/subscriptions/{subscription_id}/activate", response_model=SubscriptionResponse)
async def activate_subscription_endpoint(
    subscription_id: int,
    data: SubscriptionActivate,
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    """Confirm payment for a PENDING subscription."""
    return await subscription_service.activate_subscription(db, subscription_id, now, data.payment_ref)


@router.post("/subscriptions/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription_endpoint(
    subscription_id: int,
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.cancel_subscription(db, subscription_id, now)
