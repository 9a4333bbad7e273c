import os
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')
os.environ.setdefault('ADMIN_PASSWORD', 'test-admin-password')

from appointment_ez.auth import jwt_handler  # noqa: E402
from appointment_ez.dependencies import get_booking_service, get_notifier, get_settings_store  # noqa: E402
from appointment_ez.main import app  # noqa: E402
from appointment_ez.models.booking import Booking  # noqa: E402
from appointment_ez.scheduling.slots import BusinessHoursPolicy  # noqa: E402
from appointment_ez.services.booking_service import BookingService  # noqa: E402
from appointment_ez.storage.memory_store import MemoryBookingStore  # noqa: E402
from appointment_ez.storage.settings_store import SettingsStore  # noqa: E402

FIXED_NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_booking(appointment_time: str, booking_id: str = 'booking-1', **overrides) -> Booking:
    values = {
        'id': booking_id,
        'appointment_time': appointment_time,
        'request_time': '2025-01-01T12:00:00.000Z',
        'name': '张三',
        'email': 'zhang@example.com',
        'wechat_id': 'zhang_wx',
        'topic': 'Visa consultation',
        'language': 'zh',
    }
    values.update(overrides)
    return Booking(**values)


@pytest.fixture
def policy() -> BusinessHoursPolicy:
    return BusinessHoursPolicy()


@pytest.fixture
def store() -> MemoryBookingStore:
    return MemoryBookingStore()


@pytest.fixture
def service(store: MemoryBookingStore, policy: BusinessHoursPolicy) -> BookingService:
    return BookingService(store=store, policy=policy, clock=lambda: FIXED_NOW, filter_past_times=False)


class RecordingNotifier:
    def __init__(self, configured: bool = True) -> None:
        self.is_configured = configured
        self.delivers = True
        self.confirmations: list[Booking] = []
        self.cancellations: list[tuple[Booking, str | None, str | None]] = []

    def send_confirmation(self, booking: Booking) -> bool:
        self.confirmations.append(booking)
        return self.is_configured and self.delivers

    def send_cancellation(self, booking: Booking, reason: str | None = None, language: str | None = None) -> bool:
        self.cancellations.append((booking, reason, language))
        return self.is_configured and self.delivers


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def settings_store(tmp_path) -> SettingsStore:
    return SettingsStore(tmp_path / 'settings.json')


@pytest.fixture
def client(service: BookingService, notifier: RecordingNotifier, settings_store: SettingsStore):
    app.dependency_overrides[get_booking_service] = lambda: service
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_settings_store] = lambda: settings_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {'Authorization': f'Bearer {jwt_handler.create_access_token("admin")}'}


class StaleFirstReadStore(MemoryBookingStore):
    """Hides existing rows from the first read, as if they were written just after it."""

    def __init__(self, bookings=()) -> None:
        super().__init__(bookings)
        self.reads = 0

    def list(self) -> list[Booking]:
        self.reads += 1
        if self.reads == 1:
            return []
        return super().list()
