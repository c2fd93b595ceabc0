from club_booking.schemas.booking import (
    BookingCreate, SignupResponse, BookingCancelResponse, BookingErrorResponse,
    ParticipantsRequest, ParticipantsResponse,
)
from club_booking.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventCategoryResponse, DayScheduleEntry, DayScheduleResponse,
)
from club_booking.schemas.group import GroupCreate, GroupResponse
from club_booking.schemas.member import TiersResponse
from club_booking.schemas.subscription import (
    SubscriptionCreate, SubscriptionActivate, SubscriptionResponse, ExpireResponse,
)

__all__ = [
    "BookingCreate", "SignupResponse", "BookingCancelResponse", "BookingErrorResponse",
    "ParticipantsRequest", "ParticipantsResponse",
    "EventCreate", "EventUpdate", "EventResponse", "EventCategoryResponse",
    "DayScheduleEntry", "DayScheduleResponse",
    "GroupCreate", "GroupResponse",
    "TiersResponse",
    "SubscriptionCreate", "SubscriptionActivate", "SubscriptionResponse", "ExpireResponse",
]
