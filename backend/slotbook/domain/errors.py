from __future__ import annotations


class ErrorCode:
    UNAUTHENTICATED = "UNAUTHENTICATED"
    SLOT_IN_PAST = "SLOT_IN_PAST"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_STATE = "INVALID_STATE"
    STORE_FAILURE = "STORE_FAILURE"


class BookingError(Exception):
    """Base for every typed failure a booking protocol can report."""

    code: str = "BOOKING_ERROR"
    default_message: str = "The booking could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(BookingError):
    code = ErrorCode.UNAUTHENTICATED
    default_message = "You need to be logged in"


class SlotInPast(BookingError):
    code = ErrorCode.SLOT_IN_PAST
    default_message = "This slot has already started"


class ResourceNotFound(BookingError):
    code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "The selected resource is not available for booking"


class ReservationNotFound(BookingError):
    code = ErrorCode.RESERVATION_NOT_FOUND
    default_message = "Reservation not found"


class InsufficientCapacity(BookingError):
    code = ErrorCode.INSUFFICIENT_CAPACITY
    default_message = "Not enough units left for this slot"

    def __init__(self, message: str | None = None, *, requested: int | None = None, remaining: int | None = None) -> None:
        super().__init__(message)
        self.requested = requested
        self.remaining = remaining


class MissingRequiredField(BookingError):
    code = ErrorCode.MISSING_REQUIRED_FIELD
    default_message = "A required field is missing"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"{field} is required")
        self.field = field


class PermissionDenied(BookingError):
    code = ErrorCode.PERMISSION_DENIED
    default_message = "You cannot manage this booking"


class InvalidState(BookingError):
    code = ErrorCode.INVALID_STATE
    default_message = "The reservation is not in a state that allows this action"


class StoreFailure(BookingError):
    code = ErrorCode.STORE_FAILURE
    default_message = "Could not reach the reservation store"


_USER_MESSAGES: dict[str, str] = {
    ErrorCode.UNAUTHENTICATED: "Please log in to continue.",
    ErrorCode.SLOT_IN_PAST: "Past slots cannot be booked or changed.",
    ErrorCode.RESOURCE_NOT_FOUND: "That item is not available for booking.",
    ErrorCode.RESERVATION_NOT_FOUND: "That booking no longer exists.",
    ErrorCode.INSUFFICIENT_CAPACITY: "Not enough units are left for the selected slot.",
    ErrorCode.MISSING_REQUIRED_FIELD: "Please fill in all required fields.",
    ErrorCode.PERMISSION_DENIED: "You do not have permission to do that.",
    ErrorCode.INVALID_STATE: "This booking can no longer be changed that way.",
    ErrorCode.STORE_FAILURE: "Something went wrong saving your booking. Please try again.",
}


def user_message(error: BookingError) -> str:
    return _USER_MESSAGES.get(error.code, error.message)
