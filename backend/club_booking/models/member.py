"""
Club member. Credentials live with the identity service; the engine only
needs identity, lifecycle status and role.
"""

from sqlalchemy import Column, Integer, String, CheckConstraint
from sqlalchemy.orm import relationship

from club_booking.db.base import Base, TimestampMixin
from club_booking.models.enums import MemberRole, MemberStatus, check_in


class Member(Base, TimestampMixin):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=MemberStatus.ACTIVE.value)
    role = Column(String(20), nullable=False, default=MemberRole.USER.value)

    # Relationships
    subscriptions = relationship("Subscription", back_populates="member", lazy="raise")
    memberships = relationship("GroupMembership", back_populates="member", lazy="raise")
    signups = relationship("Signup", back_populates="member", lazy="raise")

    __table_args__ = (
        CheckConstraint(check_in("status", MemberStatus), name="check_member_status"),
        CheckConstraint(check_in("role", MemberRole), name="check_member_role"),
    )

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, email={self.email}, status={self.status})>"
