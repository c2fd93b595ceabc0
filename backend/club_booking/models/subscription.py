"""
Subscription model: a time-boxed entitlement with a finite credit balance.

Key design decisions:
- Window is half-open [start_date, end_date); all timestamps stored in UTC
- `credits` is debited per booking and refunded per cancellation, never
  written outside the reservation transaction manager
- CHECK credits >= 0 is the store-level guard against overdraft
- Partial unique index on member_id WHERE status = 'ACTIVE' enforces
  at most one ACTIVE subscription per member
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint, Index, text,
)
from sqlalchemy.orm import relationship

from club_booking.db.base import Base, TimestampMixin
from club_booking.models.enums import SubscriptionStatus, check_in

ISO_CURRENCIES = ("EUR", "USD", "GBP", "CHF")

_ACTIVE_ONLY = text("status = 'ACTIVE'")


class Subscription(Base, TimestampMixin):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    credits = Column(Integer, nullable=False, default=32)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    payment_ref = Column(String(255), nullable=True)

    # Relationships
    member = relationship("Member", back_populates="subscriptions")
    memberships = relationship("GroupMembership", back_populates="subscription", lazy="raise")

    __table_args__ = (
        CheckConstraint("credits >= 0", name="check_subscription_credits_non_negative"),
        CheckConstraint("amount > 0", name="check_subscription_amount_positive"),
        CheckConstraint("end_date > start_date", name="check_subscription_window"),
        CheckConstraint(check_in("status", SubscriptionStatus), name="check_subscription_status"),
        Index(
            "uq_subscriptions_one_active_per_member",
            "member_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
        Index("ix_subscriptions_member_status", "member_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, member={self.member_id}, "
            f"status={self.status}, credits={self.credits})>"
        )
