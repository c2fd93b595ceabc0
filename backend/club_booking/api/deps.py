"""
Shared route dependencies.
"""

from datetime import datetime

from club_booking.core.clock import utcnow


def get_now() -> datetime:
    """Server time handed to the engine; overridden in tests."""
    return utcnow()
