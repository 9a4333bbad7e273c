from __future__ import annotations

import threading
from typing import Iterable

from appointment_ez.models.booking import Booking


class MemoryBookingStore:
    """Process-local booking store with the same interface as CsvBookingStore."""

    def __init__(self, bookings: Iterable[Booking] = ()) -> None:
        self._bookings: list[Booking] = [booking.model_copy() for booking in bookings]
        self._lock = threading.Lock()

    def ensure_file(self) -> None:
        return None

    def list(self) -> list[Booking]:
        with self._lock:
            return [booking.model_copy() for booking in self._bookings]

    def append(self, booking: Booking) -> None:
        with self._lock:
            self._bookings.append(booking.model_copy())

    def remove(self, booking_id: str) -> Booking | None:
        with self._lock:
            for index, booking in enumerate(self._bookings):
                if booking.id == booking_id:
                    return self._bookings.pop(index)
            return None

    def replace(self, booking: Booking) -> Booking | None:
        with self._lock:
            for index, existing in enumerate(self._bookings):
                if existing.id == booking.id:
                    self._bookings[index] = booking.model_copy()
                    return existing
            return None
