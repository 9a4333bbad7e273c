import logging
from datetime import date, datetime
from typing import Iterable, NamedTuple
from zoneinfo import ZoneInfo

from appointment_ez.core.exceptions import NotFound, TimestampParseError
from appointment_ez.models.booking import Booking
from appointment_ez.scheduling.timestamps import parse_stored_instant

logger = logging.getLogger(__name__)


class SlotKey(NamedTuple):
    year: int
    month: int
    day: int
    hour: int
    minute: int


class AvailabilityMatcher:
    """Compares appointment times by their business-local minute, whatever their stored encoding."""

    def __init__(self, business_tz: ZoneInfo) -> None:
        self.business_tz = business_tz

    def slot_key(self, instant: datetime) -> SlotKey:
        local = instant.astimezone(self.business_tz)
        return SlotKey(local.year, local.month, local.day, local.hour, local.minute)

    def stored_instant(self, booking: Booking) -> datetime | None:
        try:
            return parse_stored_instant(booking.appointment_time, self.business_tz)
        except TimestampParseError:
            logger.warning(
                'Skipping booking %s with unparseable appointment time %r',
                booking.id,
                booking.appointment_time,
            )
            return None

    def stored_slot_key(self, booking: Booking) -> SlotKey | None:
        instant = self.stored_instant(booking)
        if instant is None:
            return None
        return self.slot_key(instant)

    def find_conflicts(
        self,
        candidate: datetime,
        bookings: Iterable[Booking],
        exclude_id: str | None = None,
    ) -> list[Booking]:
        candidate_key = self.slot_key(candidate)
        return [
            booking
            for booking in bookings
            if booking.id != exclude_id and self.stored_slot_key(booking) == candidate_key
        ]

    def is_available(
        self,
        candidate: datetime,
        bookings: Iterable[Booking],
        exclude_id: str | None = None,
    ) -> bool:
        return not self.find_conflicts(candidate, bookings, exclude_id=exclude_id)

    def booked_slot_keys(self, bookings: Iterable[Booking]) -> set[SlotKey]:
        keys = set()
        for booking in bookings:
            key = self.stored_slot_key(booking)
            if key is not None:
                keys.add(key)
        return keys

    def bookings_on_date(self, bookings: Iterable[Booking], on_date: date) -> list[tuple[Booking, datetime]]:
        matches = []
        for booking in bookings:
            instant = self.stored_instant(booking)
            if instant is not None and instant.astimezone(self.business_tz).date() == on_date:
                matches.append((booking, instant))
        return matches

    def find_by_instant_and_email(self, bookings: Iterable[Booking], instant: datetime, email: str) -> Booking:
        target_key = self.slot_key(instant)
        for booking in bookings:
            if booking.email == email and self.stored_slot_key(booking) == target_key:
                return booking
        raise NotFound('Appointment not found')


def _normalize_id(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def find_by_id(bookings: list[Booking], booking_id: object) -> Booking:
    """Locate one booking by id, trying exact equality before normalized string equality.

    The first strategy yielding exactly one match wins; if neither is unique the
    earliest candidate is used.
    """
    exact = [booking for booking in bookings if booking.id == booking_id]
    if len(exact) == 1:
        return exact[0]

    normalized_id = _normalize_id(booking_id)
    normalized = [booking for booking in bookings if _normalize_id(booking.id) == normalized_id]
    if len(normalized) == 1:
        return normalized[0]

    candidates = exact or normalized
    if not candidates:
        raise NotFound(requestedId=booking_id)

    logger.warning('Booking id %r matches %d rows; using the first', booking_id, len(candidates))
    return candidates[0]
