class BookingError(Exception):
    """Base for caller-recoverable booking failures. Routes map these to 4xx."""

    status_code = 409
    code = "BOOKING_FAILED"
    default_message = "Booking failed"

    def __init__(self, message=None, reason=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.reason = reason

    def to_dict(self):
        out = {"error": self.message, "code": self.code}
        if self.reason:
            out["reason"] = self.reason
        return out


class InvalidInput(BookingError):
    status_code = 400
    code = "INVALID_INPUT"
    default_message = "Invalid input"


class NotFound(BookingError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class NotAvailable(BookingError):
    code = "NOT_AVAILABLE"
    default_message = "Offering is not open for booking"


class Full(BookingError):
    code = "FULL"
    default_message = "Offering is fully booked"


class DuplicateBooking(BookingError):
    code = "DUPLICATE"
    ALREADY_PENDING = "ALREADY_PENDING"
    ALREADY_BOOKED = "ALREADY_BOOKED"

    default_message = "You already have a booking for this offering"


class ConflictRetryExhausted(BookingError):
    code = "CODE_CONFLICT"
    default_message = "Could not allocate a booking code, try again"


class NotReviewable(BookingError):
    code = "NOT_REVIEWABLE"
    default_message = "Reservation can no longer be reviewed"
