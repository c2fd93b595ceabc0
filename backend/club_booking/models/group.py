"""
Access tiers: named groups and the time-boxed memberships that grant them.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint, Index, func,
)
from sqlalchemy.orm import relationship

from club_booking.db.base import Base
from club_booking.models.enums import Tier, check_in


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    tier = Column(String(20), nullable=False, default=Tier.ALL.value)
    description = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint(check_in("tier", Tier), name="check_group_tier"),
    )

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name}, tier={self.tier})>"


class GroupMembership(Base):
    """
    Ternary (member, group, subscription) relation. Created together with the
    subscription that funds it; validity window defaults to the subscription's.
    """

    __tablename__ = "group_memberships"

    member_id = Column(Integer, ForeignKey("members.id", ondelete="RESTRICT"), primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="RESTRICT"), primary_key=True)
    subscription_id = Column(
        Integer, ForeignKey("subscriptions.id", ondelete="CASCADE"), primary_key=True
    )
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_to = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    member = relationship("Member", back_populates="memberships")
    group = relationship("Group", lazy="joined")
    subscription = relationship("Subscription", back_populates="memberships")

    __table_args__ = (
        CheckConstraint("valid_to > valid_from", name="check_membership_window"),
        # Resolver lookup: active memberships of one member
        Index("ix_group_memberships_member_active", "member_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<GroupMembership(member={self.member_id}, group={self.group_id}, "
            f"subscription={self.subscription_id}, active={self.is_active})>"
        )
