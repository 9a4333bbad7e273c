"""Conversions between wire, persisted and display representations of appointment times.

Stored appointment times are ISO-8601 UTC strings (``2025-04-21T14:00:00.000Z``).
Older rows hold a localized business-local wall time (``4/21/2025, 10:00:00 AM``);
both are accepted on read, only ISO-8601 is ever written.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from appointment_ez.core.exceptions import TimestampParseError, ValidationError
from appointment_ez.models.booking import DEFAULT_LANGUAGE, Booking, BookingSubmission

LEGACY_FORMATS = ('%m/%d/%Y, %I:%M:%S %p', '%m/%d/%Y, %I:%M %p')
WALL_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
REQUIRED_SUBMISSION_FIELDS = (
    ('appointment_value', 'appointmentTime'),
    ('name', 'name'),
    ('email', 'email'),
    ('wechat_id', 'wechatId'),
    ('topic', 'topic'),
)


def new_booking_id() -> str:
    return uuid.uuid4().hex


def to_iso(instant: datetime) -> str:
    """Render an aware instant as UTC ISO-8601 with millisecond precision and a Z suffix."""
    utc_instant = instant.astimezone(timezone.utc)
    return utc_instant.strftime('%Y-%m-%dT%H:%M:%S.') + f'{utc_instant.microsecond // 1000:03d}Z'


def parse_iso_instant(value: str) -> datetime:
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise TimestampParseError(f'Not an ISO-8601 timestamp: {value!r}') from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def local_to_utc(wall_time: datetime, business_tz: ZoneInfo) -> datetime:
    """Attach the zone's own offset for that wall time, then convert to UTC."""
    return wall_time.replace(tzinfo=business_tz).astimezone(timezone.utc)


def parse_legacy_instant(value: str, business_tz: ZoneInfo) -> datetime:
    text = ' '.join(value.strip().split())
    for pattern in LEGACY_FORMATS:
        try:
            wall_time = datetime.strptime(text, pattern)
        except ValueError:
            continue
        return local_to_utc(wall_time, business_tz)
    raise TimestampParseError(f'Not a localized M/D/YYYY timestamp: {value!r}')


def parse_stored_instant(value: str | None, business_tz: ZoneInfo) -> datetime:
    if not value or not value.strip():
        raise TimestampParseError('Empty appointment time')
    if 'T' in value:
        return parse_iso_instant(value)
    return parse_legacy_instant(value, business_tz)


def to_business_time(instant: datetime, business_tz: ZoneInfo) -> datetime:
    return instant.astimezone(business_tz)


def business_date(instant: datetime, business_tz: ZoneInfo) -> date:
    return to_business_time(instant, business_tz).date()


def render(instant: datetime, time_zone_name: str, pattern: str = WALL_TIME_FORMAT) -> str:
    return instant.astimezone(ZoneInfo(time_zone_name)).strftime(pattern)


def parse_wall_time(text: str, business_tz: ZoneInfo, pattern: str = WALL_TIME_FORMAT) -> datetime:
    """Inverse of ``render`` for the business zone: wall-clock text back to a UTC instant."""
    return local_to_utc(datetime.strptime(text, pattern), business_tz)


def render_long_date(instant: datetime, time_zone_name: str) -> str:
    local = instant.astimezone(ZoneInfo(time_zone_name))
    return f'{local:%B} {local.day}, {local.year}'


def render_clock_time(instant: datetime, time_zone_name: str) -> str:
    local = instant.astimezone(ZoneInfo(time_zone_name))
    return f'{local.hour % 12 or 12}:{local:%M} {local:%p}'


def missing_submission_fields(submission: BookingSubmission) -> list[str]:
    missing = []
    for attribute, wire_name in REQUIRED_SUBMISSION_FIELDS:
        value = getattr(submission, attribute)
        if value is None or not str(value).strip():
            missing.append(wire_name)
    return missing


def parse_requested_instant(value: str, business_tz: ZoneInfo) -> datetime:
    try:
        return parse_stored_instant(value, business_tz)
    except TimestampParseError as exc:
        raise ValidationError('Invalid appointment time', invalid_fields=['appointmentTime']) from exc


def to_persisted(
    submission: BookingSubmission,
    now: datetime,
    business_tz: ZoneInfo,
    booking_id: str | None = None,
    id_factory: Callable[[], str] = new_booking_id,
) -> Booking:
    missing = missing_submission_fields(submission)
    if missing:
        raise ValidationError(missing_fields=missing)

    appointment_instant = parse_requested_instant(submission.appointment_value, business_tz)
    return Booking(
        id=booking_id or id_factory(),
        appointment_time=to_iso(appointment_instant),
        request_time=to_iso(now),
        name=submission.name.strip(),
        email=submission.email.strip(),
        wechat_id=submission.wechat_id.strip(),
        topic=submission.topic.strip(),
        language=submission.language or DEFAULT_LANGUAGE,
    )
