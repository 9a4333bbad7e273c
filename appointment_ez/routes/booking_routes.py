from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from appointment_ez.core.exceptions import ValidationError
from appointment_ez.dependencies import get_booking_service, get_notifier
from appointment_ez.models.booking import (
    BookingRemovedResponse,
    BookingResponse,
    BookingSubmission,
    CancelBookingRequest,
    TimeSlotListResponse,
    TimeSlotResponse,
)
from appointment_ez.services.booking_service import BookingService
from appointment_ez.services.notifications import EmailNotifier

router = APIRouter(tags=['bookings'])


def parse_date_param(value: str | None) -> date:
    if not value or not value.strip():
        raise ValidationError('Missing date', missing_fields=['date'])
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValidationError('Date must be formatted as YYYY-MM-DD', invalid_fields=['date']) from exc


@router.get('/bookings', response_model=TimeSlotListResponse)
async def list_time_slots(
    date_param: str | None = Query(default=None, alias='date'),
    service: BookingService = Depends(get_booking_service),
):
    slots = await service.list_time_slots(parse_date_param(date_param))
    return TimeSlotListResponse(
        time_slots=[TimeSlotResponse(time=slot.time, is_booked=slot.is_booked) for slot in slots],
    )


@router.post('/bookings', response_model=BookingResponse, status_code=status.HTTP_200_OK)
async def create_booking(
    data: BookingSubmission,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    booking = await service.create_booking(data)
    # The mail goes out after the response; emailSent only says whether mail is configured.
    background_tasks.add_task(notifier.send_confirmation, booking)
    return BookingResponse(booking=booking, email_sent=notifier.is_configured)


@router.post('/cancel', response_model=BookingRemovedResponse)
async def cancel_booking(
    data: CancelBookingRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    booking = await service.cancel_booking(data)
    background_tasks.add_task(notifier.send_cancellation, booking, data.reason, data.language)
    return BookingRemovedResponse(booking=booking)
