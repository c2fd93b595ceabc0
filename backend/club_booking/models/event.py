"""
Event model with slot inventory tracking.

Key design decisions:
- `date` is a civil DATE in the club's timezone; the cutoff policy compares
  it against "now" converted to that same timezone
- `booked_slots` is denormalized (avoids COUNT on signups) and only moves
  inside the book/cancel transaction, in step with the signup rows
- Booking claims a slot with a single conditional UPDATE
  (booked_slots < max_slots), so concurrent claims cannot overshoot
- CHECK constraints are the final safety net for the slot counter
"""

from sqlalchemy import (
    Column, Integer, String, Date, Time, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from club_booking.db.base import Base, TimestampMixin
from club_booking.models.enums import EventStatus, check_in


class EventCategory(Base):
    __tablename__ = "event_categories"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False)
    label = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<EventCategory(id={self.id}, code={self.code})>"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    location = Column(String(255), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_slots = Column(Integer, nullable=False, default=10)
    booked_slots = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=EventStatus.SCHEDULED.value)
    category_id = Column(Integer, ForeignKey("event_categories.id", ondelete="RESTRICT"), nullable=False)

    # Relationships
    category = relationship("EventCategory", lazy="joined", innerjoin=True)
    signups = relationship("Signup", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("max_slots > 0", name="check_max_slots_positive"),
        CheckConstraint("booked_slots >= 0", name="check_booked_slots_non_negative"),
        CheckConstraint("booked_slots <= max_slots", name="check_booked_lte_max"),
        CheckConstraint(check_in("status", EventStatus), name="check_event_status"),
        # Day schedule lookups
        Index("ix_events_date_status", "date", "status"),
    )

    @property
    def free_slots(self) -> int:
        return self.max_slots - self.booked_slots

    @property
    def category_code(self):
        return self.category.code if self.category is not None else None

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, booked={self.booked_slots}/{self.max_slots})>"
