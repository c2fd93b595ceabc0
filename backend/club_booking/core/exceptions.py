"""
Booking outcomes.

Precondition failures never escape `book`/`cancel` as exceptions: inside
the transaction they are raised as `BookingRejected` (which rolls the
transaction back) and converted to a `BookingResult` at the engine boundary.
"""

import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class BookingError(str, enum.Enum):
    # Policy rejections: retrying with the same inputs gives the same answer
    CUTOFF_EXCEEDED = "CUTOFF_EXCEEDED"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_NOT_SCHEDULED = "EVENT_NOT_SCHEDULED"
    EVENT_FULL = "EVENT_FULL"
    INSUFFICIENT_CREDIT = "INSUFFICIENT_CREDIT"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    SIGNUP_NOT_FOUND = "SIGNUP_NOT_FOUND"
    # Conflict rejection: a concurrent request won the uniqueness guard
    ALREADY_BOOKED = "ALREADY_BOOKED"
    # Store fault: retry the whole operation
    TRANSIENT_STORE_ERROR = "TRANSIENT_STORE_ERROR"

    @property
    def retriable(self) -> bool:
        return self is BookingError.TRANSIENT_STORE_ERROR


DEFAULT_MESSAGES = {
    BookingError.CUTOFF_EXCEEDED: "Booking window for this event is closed",
    BookingError.EVENT_NOT_FOUND: "Event not found",
    BookingError.EVENT_NOT_SCHEDULED: "Event is not scheduled",
    BookingError.EVENT_FULL: "Event is full",
    BookingError.INSUFFICIENT_CREDIT: "Insufficient credits",
    BookingError.NOT_AUTHORIZED: "Not authorized for this category",
    BookingError.SIGNUP_NOT_FOUND: "Not booked on this event",
    BookingError.ALREADY_BOOKED: "Already booked on this event",
    BookingError.TRANSIENT_STORE_ERROR: "Temporary storage error, please retry",
}


class BookingRejected(Exception):
    def __init__(self, code: BookingError, message: Optional[str] = None):
        self.code = code
        self.message = message or DEFAULT_MESSAGES[code]
        super().__init__(f"{code.value}: {self.message}")


@dataclass(frozen=True)
class BookingResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[BookingError] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "BookingResult[T]":
        return cls(value=value)

    @classmethod
    def rejected(cls, rejection: BookingRejected) -> "BookingResult[T]":
        return cls(error=rejection.code, message=rejection.message)
