from __future__ import annotations

import csv
import io
import logging
import threading
from pathlib import Path

from appointment_ez.core.exceptions import StorageError
from appointment_ez.models.booking import RECORD_FIELDS, Booking

logger = logging.getLogger(__name__)


class CsvBookingStore:
    """Bookings kept as one fully quoted CSV row each, rewritten atomically on every change."""

    def __init__(self, file_path: str | Path = 'bookings.csv') -> None:
        self._file_path = Path(file_path)
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def ensure_file(self) -> None:
        with self._lock:
            if not self._file_path.exists():
                self._write_rows([])

    def list(self) -> list[Booking]:
        with self._lock:
            return self._read_rows()

    def append(self, booking: Booking) -> None:
        with self._lock:
            bookings = self._read_rows()
            bookings.append(booking)
            self._write_rows(bookings)

    def remove(self, booking_id: str) -> Booking | None:
        with self._lock:
            bookings = self._read_rows()
            for index, booking in enumerate(bookings):
                if booking.id == booking_id:
                    removed = bookings.pop(index)
                    self._write_rows(bookings)
                    return removed
            return None

    def replace(self, booking: Booking) -> Booking | None:
        with self._lock:
            bookings = self._read_rows()
            for index, existing in enumerate(bookings):
                if existing.id == booking.id:
                    bookings[index] = booking
                    self._write_rows(bookings)
                    return existing
            return None

    def _read_rows(self) -> list[Booking]:
        if not self._file_path.exists():
            return []

        try:
            content = self._file_path.read_text(encoding='utf-8-sig')
        except OSError as exc:
            logger.exception('Could not read bookings file %s', self._file_path)
            raise StorageError('Error reading bookings database') from exc

        if not content.strip():
            return []

        try:
            reader = csv.DictReader(io.StringIO(content, newline=''))
            return [Booking.from_record(row) for row in reader if any((value or '').strip() for value in row.values())]
        except csv.Error as exc:
            logger.exception('Malformed bookings file %s', self._file_path)
            raise StorageError('Error reading bookings database') from exc

    def _write_rows(self, bookings: list[Booking]) -> None:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=RECORD_FIELDS, quoting=csv.QUOTE_ALL, lineterminator='\n')
        writer.writeheader()
        for booking in bookings:
            writer.writerow(booking.to_record())

        temp_path = self._file_path.with_name(self._file_path.name + '.tmp')
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(buffer.getvalue(), encoding='utf-8', newline='')
            temp_path.replace(self._file_path)
        except OSError as exc:
            logger.exception('Could not write bookings file %s', self._file_path)
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError('Error updating bookings database') from exc
        logger.debug('Wrote %d bookings to %s', len(bookings), self._file_path)
