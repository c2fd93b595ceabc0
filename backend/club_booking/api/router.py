"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from club_booking.api.routes import admin, bookings, events, members

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(events.router)
api_router.include_router(members.router)
api_router.include_router(admin.router)
