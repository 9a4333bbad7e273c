"""Process-wide collaborators, built once at startup and handed to routes through Depends."""

import logging

from fastapi import Request

from appointment_ez.core import config
from appointment_ez.scheduling.slots import BusinessHoursPolicy
from appointment_ez.services.booking_service import BookingService
from appointment_ez.services.notifications import EmailNotifier
from appointment_ez.storage.csv_store import CsvBookingStore
from appointment_ez.storage.memory_store import MemoryBookingStore
from appointment_ez.storage.settings_store import SettingsStore

logger = logging.getLogger(__name__)


def build_policy() -> BusinessHoursPolicy:
    return BusinessHoursPolicy(
        open_hour=config.BUSINESS_OPEN_HOUR,
        close_hour=config.BUSINESS_CLOSE_HOUR,
        break_start=config.LUNCH_BREAK_START_HOUR,
        break_end=config.LUNCH_BREAK_END_HOUR,
        interval_minutes=config.SLOT_INTERVAL_MINUTES,
        business_time_zone=config.BUSINESS_TIMEZONE,
    )


def build_booking_store():
    if config.BOOKING_STORE.lower() == 'memory':
        logger.warning('Using in-memory booking store; bookings are lost on restart')
        return MemoryBookingStore()
    store = CsvBookingStore(config.BOOKINGS_CSV_PATH)
    store.ensure_file()
    return store


def build_booking_service() -> BookingService:
    return BookingService(
        store=build_booking_store(),
        policy=build_policy(),
        filter_past_times=config.FILTER_PAST_TIME_SLOTS,
    )


def build_notifier(settings_store: SettingsStore) -> EmailNotifier:
    return EmailNotifier(
        settings_store=settings_store,
        business_time_zone=config.BUSINESS_TIMEZONE,
        base_url=config.PUBLIC_BASE_URL,
        username=config.EMAIL_USER,
        password=config.EMAIL_PASSWORD,
        host=config.SMTP_HOST,
        port=config.SMTP_PORT,
    )


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier
