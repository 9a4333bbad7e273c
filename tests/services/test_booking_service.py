import asyncio
import threading
from datetime import date, datetime, timezone

import pytest
from conftest import FIXED_NOW, StaleFirstReadStore, make_booking

from appointment_ez.core.exceptions import NotFound, SlotConflict, SlotConflictDuringProcessing, ValidationError
from appointment_ez.models.booking import BookingSubmission, BookingUpdateRequest, CancelBookingRequest
from appointment_ez.services.booking_service import BookingService
from appointment_ez.storage.memory_store import MemoryBookingStore


class _SharedFirstReadsStore(MemoryBookingStore):
    """Holds the first reads at a barrier so every early check sees the same empty store."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self._barrier = threading.Barrier(parties, timeout=5)
        self._held = parties
        self._count_lock = threading.Lock()

    def list(self):
        with self._count_lock:
            hold = self._held > 0
            self._held -= 1
        snapshot = super().list()
        if hold:
            self._barrier.wait()
        return snapshot


def _submission(appointment_time: str = '2025-04-21T14:00:00.000Z', **overrides) -> BookingSubmission:
    values = {
        'appointmentTime': appointment_time,
        'name': 'Alice',
        'email': 'alice@example.com',
        'wechatId': 'alice_wx',
        'topic': 'Tax question',
    }
    values.update(overrides)
    return BookingSubmission.model_validate(values)


def _update(booking_id, appointment_time: str, **overrides) -> BookingUpdateRequest:
    values = {
        'id': booking_id,
        'appointmentTime': appointment_time,
        'name': 'Alice B.',
        'email': 'alice@example.com',
        'wechatId': 'alice_wx',
        'topic': 'Tax follow-up',
    }
    values.update(overrides)
    return BookingUpdateRequest.model_validate(values)


def test_booked_slot_is_marked_on_the_day_listing(service: BookingService) -> None:
    asyncio.run(service.create_booking(_submission()))

    slots = asyncio.run(service.list_time_slots(date(2025, 4, 21)))

    assert len(slots) == 14
    assert [slot.time for slot in slots if slot.is_booked] == ['2025-04-21T14:00:00.000Z']


def test_legacy_booking_marks_the_same_slot(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('4/21/2025, 10:00:00 AM'))

    slots = asyncio.run(service.list_time_slots(date(2025, 4, 21)))

    assert [slot.time for slot in slots if slot.is_booked] == ['2025-04-21T14:00:00.000Z']


def test_weekend_listing_is_empty(service: BookingService) -> None:
    assert asyncio.run(service.list_time_slots(date(2025, 4, 19))) == []


def test_listing_filters_past_slots_when_enabled(store: MemoryBookingStore, policy) -> None:
    now = datetime(2025, 4, 21, 18, 45, tzinfo=timezone.utc)  # 14:45 EDT
    service = BookingService(store=store, policy=policy, clock=lambda: now)

    slots = asyncio.run(service.list_time_slots(date(2025, 4, 21)))

    assert [slot.time for slot in slots][:2] == ['2025-04-21T19:00:00.000Z', '2025-04-21T19:30:00.000Z']
    assert len(slots) == 4


def test_bookings_are_listed_by_business_date(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('2025-04-25T01:00:00.000Z', 'late'))
    store.append(make_booking('2025-04-24T13:00:00.000Z', 'early'))

    on_24th = asyncio.run(service.list_bookings(date(2025, 4, 24)))
    on_25th = asyncio.run(service.list_bookings(date(2025, 4, 25)))

    assert [(view.id, view.display_date, view.display_time) for view in on_24th] == [
        ('early', '2025-04-24', '9:00 AM'),
        ('late', '2025-04-24', '9:00 PM'),
    ]
    assert on_25th == []


def test_full_listing_puts_unparseable_rows_last(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('garbage', 'broken'))
    store.append(make_booking('2025-04-22T14:00:00.000Z', 'later'))
    store.append(make_booking('4/21/2025, 10:00:00 AM', 'legacy'))

    views = asyncio.run(service.list_bookings())

    assert [view.id for view in views] == ['legacy', 'later', 'broken']
    assert views[-1].display_time == ''


def test_create_booking_persists_normalized_record(store: MemoryBookingStore, service: BookingService) -> None:
    created = asyncio.run(service.create_booking(_submission('4/21/2025, 10:00:00 AM', language='en')))

    [stored] = store.list()
    assert stored == created
    assert stored.appointment_time == '2025-04-21T14:00:00.000Z'
    assert stored.request_time == '2025-01-01T12:00:00.000Z'
    assert stored.language == 'en'


def test_create_booking_rejects_taken_slot(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('4/21/2025, 10:00:00 AM'))

    with pytest.raises(SlotConflict) as exc_info:
        asyncio.run(service.create_booking(_submission()))

    assert exc_info.value.status_code == 409
    assert len(store.list()) == 1


def test_concurrent_creates_admit_one(policy) -> None:
    store = _SharedFirstReadsStore(parties=2)
    service = BookingService(store=store, policy=policy, clock=lambda: FIXED_NOW, filter_past_times=False)

    async def race():
        return await asyncio.gather(
            service.create_booking(_submission(name='First')),
            service.create_booking(_submission(name='Second')),
            return_exceptions=True,
        )

    results = asyncio.run(race())

    created = [result for result in results if not isinstance(result, BaseException)]
    rejected = [result for result in results if isinstance(result, BaseException)]
    assert len(created) == 1
    assert [type(error) for error in rejected] == [SlotConflictDuringProcessing]
    assert store.list() == created


def test_slot_written_after_the_early_check_is_rejected_in_the_queue(policy) -> None:
    store = StaleFirstReadStore([make_booking('2025-04-21T14:00:00.000Z', 'earlier')])
    service = BookingService(store=store, policy=policy, clock=lambda: FIXED_NOW, filter_past_times=False)

    with pytest.raises(SlotConflictDuringProcessing) as exc_info:
        asyncio.run(service.create_booking(_submission()))

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == 'slot_taken_during_processing'
    assert [booking.id for booking in store.list()] == ['earlier']


@pytest.mark.parametrize(
    'appointment_time',
    [
        '2024-12-31T14:00:00.000Z',  # before the clock
        '2025-04-21T14:15:00.000Z',  # between slots
        '2025-04-21T16:00:00.000Z',  # lunch
        '2025-04-19T14:00:00.000Z',  # Saturday
        '2025-04-25T01:00:00.000Z',  # evening
    ],
)
def test_create_booking_rejects_non_bookable_times(service: BookingService, appointment_time: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(service.create_booking(_submission(appointment_time)))

    assert exc_info.value.invalid_fields == ['appointmentTime']


def test_create_booking_reports_missing_fields(service: BookingService) -> None:
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(service.create_booking(_submission(email='', topic=None)))

    assert exc_info.value.missing_fields == ['email', 'topic']


def test_update_preserves_identity_and_request_time(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('2025-04-21T14:00:00.000Z', '12345', language='en', request_time='2025-03-01T08:00:00.000Z'))

    updated = asyncio.run(service.update_booking(_update(12345, '2025-04-22T15:30:00.000Z')))

    [stored] = store.list()
    assert stored == updated
    assert stored.id == '12345'
    assert stored.request_time == '2025-03-01T08:00:00.000Z'
    assert stored.appointment_time == '2025-04-22T15:30:00.000Z'
    assert stored.name == 'Alice B.'
    assert stored.language == 'en'


def test_update_can_keep_its_own_slot(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('4/21/2025, 10:00:00 AM', 'mine'))

    updated = asyncio.run(service.update_booking(_update('mine', '2025-04-21T14:00:00.000Z', language='en')))

    assert updated.appointment_time == '2025-04-21T14:00:00.000Z'
    assert updated.language == 'en'


def test_update_into_taken_slot_conflicts(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('2025-04-21T14:00:00.000Z', 'a'))
    store.append(make_booking('2025-04-21T15:00:00.000Z', 'b'))

    with pytest.raises(SlotConflict):
        asyncio.run(service.update_booking(_update('b', '2025-04-21T14:00:00.000Z')))

    assert store.list()[1].appointment_time == '2025-04-21T15:00:00.000Z'


def test_update_requires_id_and_fields(service: BookingService) -> None:
    with pytest.raises(ValidationError) as missing_id:
        asyncio.run(service.update_booking(_update(None, '2025-04-21T14:00:00.000Z')))
    with pytest.raises(ValidationError) as missing_name:
        asyncio.run(service.update_booking(_update('a', '2025-04-21T14:00:00.000Z', name='')))

    assert missing_id.value.message == 'Missing booking ID'
    assert missing_name.value.missing_fields == ['name']


def test_update_unknown_id_is_not_found(service: BookingService) -> None:
    with pytest.raises(NotFound) as exc_info:
        asyncio.run(service.update_booking(_update('ghost', '2025-04-21T14:00:00.000Z')))

    assert exc_info.value.details == {'requestedId': 'ghost'}


def test_delete_removes_once(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('2025-04-21T14:00:00.000Z', '12345'))

    removed = asyncio.run(service.delete_booking(12345.0))

    assert removed.id == '12345'
    assert store.list() == []
    with pytest.raises(NotFound):
        asyncio.run(service.delete_booking('12345'))


@pytest.mark.parametrize('booking_id', [None, '', '   '])
def test_delete_requires_id(service: BookingService, booking_id) -> None:
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(service.delete_booking(booking_id))

    assert exc_info.value.message == 'Missing booking ID'


def test_cancel_matches_legacy_booking_by_time_and_email(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('4/21/2025, 10:00:00 AM', 'legacy'))
    store.append(make_booking('2025-04-21T15:00:00.000Z', 'other'))
    request = CancelBookingRequest.model_validate({'datetime': '2025-04-21T14:00:00.000Z', 'email': 'zhang@example.com'})

    removed = asyncio.run(service.cancel_booking(request))

    assert removed.id == 'legacy'
    assert [booking.id for booking in store.list()] == ['other']


def test_cancel_with_wrong_email_is_not_found(store: MemoryBookingStore, service: BookingService) -> None:
    store.append(make_booking('2025-04-21T14:00:00.000Z'))
    request = CancelBookingRequest.model_validate({'datetime': '2025-04-21T14:00:00.000Z', 'email': 'someone@example.com'})

    with pytest.raises(NotFound):
        asyncio.run(service.cancel_booking(request))

    assert len(store.list()) == 1


def test_cancel_requires_datetime_and_email(service: BookingService) -> None:
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(service.cancel_booking(CancelBookingRequest(email='a@example.com')))

    assert exc_info.value.message == 'Datetime and email are required'
    assert exc_info.value.missing_fields == ['datetime']
