"""Domain errors raised by the booking core and mapped to HTTP responses in main.py."""

from typing import Any


class BookingError(Exception):
    """Base class for every error a booking request can end in."""
    status_code = 500
    code = 'internal_error'
    message = 'Internal server error'

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload = {'error': self.message, 'code': self.code}
        payload.update(self.details)
        return payload


class ValidationError(BookingError):
    """Missing, empty or malformed request fields."""
    status_code = 400
    code = 'validation_error'
    message = 'Invalid booking request'

    def __init__(
        self,
        message: str | None = None,
        missing_fields: list[str] | None = None,
        invalid_fields: list[str] | None = None,
    ) -> None:
        self.missing_fields = list(missing_fields or [])
        self.invalid_fields = list(invalid_fields or [])
        if message is None and self.missing_fields:
            verb = 'are' if len(self.missing_fields) > 1 else 'is'
            message = f"{', '.join(self.missing_fields)} {verb} required"

        details: dict[str, Any] = {}
        if self.missing_fields:
            details['missingFields'] = self.missing_fields
        if self.invalid_fields:
            details['invalidFields'] = self.invalid_fields
        super().__init__(message, **details)


class SlotConflict(BookingError):
    status_code = 409
    code = 'slot_taken'
    message = 'Time slot already booked'


class SlotConflictDuringProcessing(BookingError):
    status_code = 409
    code = 'slot_taken_during_processing'
    message = 'This time slot was already booked while processing your request. Please select another time.'


class NotFound(BookingError):
    status_code = 404
    code = 'not_found'
    message = 'Booking not found'


class StorageError(BookingError):
    status_code = 500
    code = 'storage_error'
    message = 'Error accessing bookings database'


class TimestampParseError(ValueError):
    """A stored appointment time matches neither ISO-8601 nor the legacy localized format."""
