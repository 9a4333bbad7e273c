"""Booking schemas shared by the store, the scheduling core and the routes."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

DEFAULT_LANGUAGE = 'zh'
SUPPORTED_LANGUAGES = ('zh', 'en')
RECORD_FIELDS = ('id', 'appointmentTime', 'requestTime', 'name', 'email', 'wechatId', 'topic', 'language')


class Booking(BaseModel):
    """A persisted appointment, one row of the bookings file."""
    id: str
    appointment_time: str
    request_time: str
    name: str
    email: str
    wechat_id: str
    topic: str
    language: str = DEFAULT_LANGUAGE

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_record(cls, record: dict[str, str | None]) -> 'Booking':
        values = {field: (record.get(field) or '') for field in RECORD_FIELDS}
        values['language'] = values['language'] or DEFAULT_LANGUAGE
        return cls.model_validate(values)

    def to_record(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class BookingSubmission(BaseModel):
    requested_at: str | None = Field(default=None, alias='datetime')
    appointment_time: str | None = Field(default=None, alias='appointmentTime')
    name: str | None = None
    email: str | None = None
    wechat_id: str | None = Field(default=None, alias='wechatId')
    topic: str | None = None
    language: Literal['zh', 'en'] | None = None

    class Config:
        populate_by_name = True

    @property
    def appointment_value(self) -> str | None:
        return self.appointment_time or self.requested_at


class BookingUpdateRequest(BookingSubmission):
    id: str | int | None = None


class DeleteBookingRequest(BaseModel):
    id: str | int | float | None = None


class CancelBookingRequest(BaseModel):
    requested_at: str | None = Field(default=None, alias='datetime')
    email: str | None = None
    reason: str | None = None
    language: Literal['zh', 'en'] | None = None

    class Config:
        populate_by_name = True


class TimeSlotResponse(BaseModel):
    time: str
    is_booked: bool

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class TimeSlotListResponse(BaseModel):
    time_slots: list[TimeSlotResponse]

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class BookingView(Booking):
    display_date: str
    display_time: str


class BookingListResponse(BaseModel):
    bookings: list[BookingView]


class BookingResponse(BaseModel):
    success: bool = True
    booking: Booking
    email_sent: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class BookingRemovedResponse(BaseModel):
    success: bool = True
    booking: Booking
