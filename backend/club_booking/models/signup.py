"""
Signup model representing a member's reservation on an event.

Key design decisions:
- Unique constraint on (member_id, event_id) is the primary guard against
  duplicate bookings; a pre-check alone would be racy
- Cancellation deletes the row, so a live row always means "booked"
- `subscription_id` records the subscription that was debited; NULL for
  uncharged signups (free categories, administrator additions), which are
  not refunded on cancellation
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship

from club_booking.db.base import Base


class Signup(Base):
    __tablename__ = "signups"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(
        Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    member = relationship("Member", back_populates="signups")
    event = relationship("Event", back_populates="signups")

    __table_args__ = (
        UniqueConstraint("member_id", "event_id", name="uq_member_event_signup"),
    )

    @property
    def charged(self) -> bool:
        return self.subscription_id is not None

    def __repr__(self) -> str:
        return f"<Signup(id={self.id}, member={self.member_id}, event={self.event_id})>"
