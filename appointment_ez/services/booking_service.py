"""Booking operations shared by the public booking page and the admin dashboard.

Every mutation re-reads the store inside the BookingQueue before deciding,
so nothing here caches bookings between requests.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable

from appointment_ez.core.exceptions import NotFound, SlotConflict, SlotConflictDuringProcessing, ValidationError
from appointment_ez.models.booking import (
    Booking,
    BookingSubmission,
    BookingUpdateRequest,
    BookingView,
    CancelBookingRequest,
    DEFAULT_LANGUAGE,
)
from appointment_ez.scheduling.availability import AvailabilityMatcher, find_by_id
from appointment_ez.scheduling.queue import BookingQueue
from appointment_ez.scheduling.slots import BusinessHoursPolicy, generate_slots, is_slot_start
from appointment_ez.scheduling.timestamps import (
    missing_submission_fields,
    parse_requested_instant,
    render_clock_time,
    to_iso,
    to_persisted,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TimeSlot:
    instant: datetime
    is_booked: bool

    @property
    def time(self) -> str:
        return to_iso(self.instant)


class BookingService:
    def __init__(
        self,
        store,
        policy: BusinessHoursPolicy,
        clock: Callable[[], datetime] = utc_now,
        filter_past_times: bool = True,
    ) -> None:
        self.store = store
        self.policy = policy
        self.clock = clock
        self.filter_past_times = filter_past_times
        self.matcher = AvailabilityMatcher(policy.zone)
        self.queue = BookingQueue(store, self.matcher)

    async def _read_bookings(self) -> list[Booking]:
        return await asyncio.to_thread(self.store.list)

    async def list_time_slots(self, slot_date: date) -> list[TimeSlot]:
        candidates = generate_slots(slot_date, self.policy, self.clock(), filter_past_times=self.filter_past_times)
        if not candidates:
            return []

        booked_keys = self.matcher.booked_slot_keys(await self._read_bookings())
        return [TimeSlot(instant, self.matcher.slot_key(instant) in booked_keys) for instant in candidates]

    async def list_bookings(self, on_date: date | None = None) -> list[BookingView]:
        bookings = await self._read_bookings()
        if on_date is not None:
            dated = self.matcher.bookings_on_date(bookings, on_date)
        else:
            dated = [(booking, self.matcher.stored_instant(booking)) for booking in bookings]

        # Unparseable legacy rows stay visible at the end of the full listing.
        dated.sort(key=lambda pair: (pair[1] is None, pair[1] or datetime.min.replace(tzinfo=timezone.utc)))
        return [self._to_view(booking, instant) for booking, instant in dated]

    def _to_view(self, booking: Booking, instant: datetime | None) -> BookingView:
        if instant is None:
            display_date, display_time = '', ''
        else:
            local = instant.astimezone(self.policy.zone)
            display_date = local.date().isoformat()
            display_time = render_clock_time(instant, self.policy.business_time_zone)
        return BookingView(**booking.model_dump(), display_date=display_date, display_time=display_time)

    def _validate_appointment_instant(self, instant: datetime, now: datetime) -> None:
        if instant <= now:
            raise ValidationError('Cannot book appointments in the past', invalid_fields=['appointmentTime'])
        if not is_slot_start(instant, self.policy):
            raise ValidationError(
                'Appointment time is not a bookable slot',
                invalid_fields=['appointmentTime'],
            )

    async def create_booking(self, submission: BookingSubmission) -> Booking:
        now = self.clock()
        booking = to_persisted(submission, now, self.policy.zone)
        instant = parse_requested_instant(booking.appointment_time, self.policy.zone)
        self._validate_appointment_instant(instant, now)

        if not self.matcher.is_available(instant, await self._read_bookings()):
            logger.info('Rejected booking for %s: slot already booked', booking.appointment_time)
            raise SlotConflict(appointmentTime=booking.appointment_time)

        stored = await self.queue.submit(booking)
        logger.info('Created booking %s for %s', stored.id, stored.appointment_time)
        return stored

    async def update_booking(self, request: BookingUpdateRequest) -> Booking:
        if request.id is None or not str(request.id).strip():
            raise ValidationError('Missing booking ID', missing_fields=['id'])

        missing = missing_submission_fields(request)
        if missing:
            raise ValidationError(missing_fields=missing)

        now = self.clock()
        instant = parse_requested_instant(request.appointment_value, self.policy.zone)
        self._validate_appointment_instant(instant, now)

        bookings = await self._read_bookings()
        current = find_by_id(bookings, request.id)
        if not self.matcher.is_available(instant, bookings, exclude_id=current.id):
            raise SlotConflict(appointmentTime=to_iso(instant))

        def apply_update() -> Booking:
            bookings = self.store.list()
            existing = find_by_id(bookings, request.id)
            if not self.matcher.is_available(instant, bookings, exclude_id=existing.id):
                raise SlotConflictDuringProcessing(appointmentTime=to_iso(instant))

            updated = to_persisted(request, now, self.policy.zone, booking_id=existing.id).model_copy(
                update={
                    'request_time': existing.request_time,
                    'language': request.language or existing.language or DEFAULT_LANGUAGE,
                }
            )
            if self.store.replace(updated) is None:
                raise NotFound(requestedId=request.id)
            return updated

        updated = await self.queue.run_exclusive(apply_update, label=f'update {current.id}')
        logger.info('Updated booking %s to %s', updated.id, updated.appointment_time)
        return updated

    async def delete_booking(self, booking_id: str | int | float | None) -> Booking:
        if booking_id is None or not str(booking_id).strip():
            raise ValidationError('Missing booking ID', missing_fields=['id'])

        def apply_delete() -> Booking:
            existing = find_by_id(self.store.list(), booking_id)
            removed = self.store.remove(existing.id)
            if removed is None:
                raise NotFound(requestedId=booking_id)
            return removed

        removed = await self.queue.run_exclusive(apply_delete, label=f'delete {booking_id}')
        logger.info('Deleted booking %s', removed.id)
        return removed

    async def cancel_booking(self, request: CancelBookingRequest) -> Booking:
        missing = [
            wire_name
            for wire_name, value in (('datetime', request.requested_at), ('email', request.email))
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError('Datetime and email are required', missing_fields=missing)

        instant = parse_requested_instant(request.requested_at, self.policy.zone)
        email = request.email

        def apply_cancel() -> Booking:
            existing = self.matcher.find_by_instant_and_email(self.store.list(), instant, email)
            removed = self.store.remove(existing.id)
            if removed is None:
                raise NotFound('Appointment not found')
            return removed

        removed = await self.queue.run_exclusive(apply_cancel, label=f'cancel {to_iso(instant)}')
        logger.info('Cancelled booking %s at %s', removed.id, removed.appointment_time)
        return removed
