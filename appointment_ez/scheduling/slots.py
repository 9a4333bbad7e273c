from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import cached_property
from zoneinfo import ZoneInfo

WEEKEND_DAYS = (5, 6)


@dataclass(frozen=True)
class BusinessHoursPolicy:
    """Office hours, lunch break and slot length, all in business-local wall time."""
    open_hour: int = 9
    close_hour: int = 17
    break_start: int = 12
    break_end: int = 13
    interval_minutes: int = 30
    business_time_zone: str = 'America/New_York'

    @cached_property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.business_time_zone)

    def is_break_minute(self, minute_of_day: int) -> bool:
        return self.break_start * 60 <= minute_of_day < self.break_end * 60

    def slot_minutes(self) -> list[int]:
        """Minutes after local midnight at which a bookable slot starts."""
        minutes = []
        current = self.open_hour * 60
        while current < self.close_hour * 60:
            if not self.is_break_minute(current):
                minutes.append(current)
            current += self.interval_minutes
        return minutes


def is_weekend(slot_date: date) -> bool:
    return slot_date.weekday() in WEEKEND_DAYS


def generate_slots(
    slot_date: date,
    policy: BusinessHoursPolicy,
    now: datetime,
    filter_past_times: bool = True,
) -> list[datetime]:
    """Return the bookable UTC instants for one business-local calendar date, ascending.

    Each slot's UTC offset comes from the zone rules for that exact wall time,
    so the two DST transition days produce correctly shifted instants.
    """
    zone = policy.zone
    if is_weekend(slot_date):
        return []

    if slot_date < now.astimezone(zone).date():
        return []

    slots: list[datetime] = []
    for minute_of_day in policy.slot_minutes():
        hour, minute = divmod(minute_of_day, 60)
        local_start = datetime(slot_date.year, slot_date.month, slot_date.day, hour, minute, tzinfo=zone)
        instant = local_start.astimezone(timezone.utc)
        if filter_past_times and instant <= now:
            continue
        slots.append(instant)

    return slots


def is_slot_start(instant: datetime, policy: BusinessHoursPolicy) -> bool:
    """True when the instant is exactly one of its business-local day's slot starts."""
    local = instant.astimezone(policy.zone)
    if is_weekend(local.date()) or local.second or local.microsecond:
        return False
    return local.hour * 60 + local.minute in policy.slot_minutes()
