"""
String enums stored as VARCHAR columns guarded by CHECK constraints.
"""

import enum


class MemberStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class MemberRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class SubscriptionStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class EventStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"


class Tier(str, enum.Enum):
    """Access tier granted through group membership, lowest first."""

    ALL = "ALL"
    OPEN = "OPEN"
    ADVANCED = "ADVANCED"
    DEEP = "DEEP"

    @property
    def rank(self) -> int:
        return list(Tier).index(self)


def check_in(column: str, enum_cls: type[enum.Enum]) -> str:
    """SQL fragment for a CHECK constraint restricting `column` to the enum's values."""
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"
