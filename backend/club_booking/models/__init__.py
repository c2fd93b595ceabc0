from club_booking.models.member import Member
from club_booking.models.subscription import Subscription
from club_booking.models.group import Group, GroupMembership
from club_booking.models.event import Event, EventCategory
from club_booking.models.signup import Signup

__all__ = [
    "Member", "Subscription", "Group", "GroupMembership",
    "Event", "EventCategory", "Signup",
]
