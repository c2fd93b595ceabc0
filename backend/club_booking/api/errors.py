"""
Mapping of booking rejections to HTTP responses.
"""

from fastapi import status
from fastapi.responses import JSONResponse

from club_booking.core.config import get_settings
from club_booking.core.exceptions import BookingError, BookingResult

STATUS_BY_ERROR = {
    BookingError.CUTOFF_EXCEEDED: status.HTTP_403_FORBIDDEN,
    BookingError.INSUFFICIENT_CREDIT: status.HTTP_403_FORBIDDEN,
    BookingError.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    BookingError.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingError.SIGNUP_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingError.EVENT_NOT_SCHEDULED: status.HTTP_409_CONFLICT,
    BookingError.EVENT_FULL: status.HTTP_409_CONFLICT,
    BookingError.ALREADY_BOOKED: status.HTTP_409_CONFLICT,
    BookingError.TRANSIENT_STORE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def rejection_response(result: BookingResult) -> JSONResponse:
    headers = {}
    if result.error.retriable:
        headers["Retry-After"] = str(get_settings().TRANSIENT_RETRY_AFTER_SECONDS)
    return JSONResponse(
        status_code=STATUS_BY_ERROR[result.error],
        content={"code": result.error.value, "message": result.message},
        headers=headers,
    )
