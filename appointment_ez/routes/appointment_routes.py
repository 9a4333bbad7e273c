import asyncio

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status

from appointment_ez.auth.dependencies import require_admin
from appointment_ez.dependencies import get_booking_service, get_notifier
from appointment_ez.models.booking import (
    BookingListResponse,
    BookingRemovedResponse,
    BookingResponse,
    BookingSubmission,
    BookingUpdateRequest,
    DeleteBookingRequest,
)
from appointment_ez.routes.booking_routes import parse_date_param
from appointment_ez.services.booking_service import BookingService
from appointment_ez.services.notifications import EmailNotifier

router = APIRouter(tags=['appointments'], dependencies=[Depends(require_admin)])


@router.get('', response_model=BookingListResponse)
async def list_appointments(
    date_param: str | None = Query(default=None, alias='date'),
    service: BookingService = Depends(get_booking_service),
):
    on_date = parse_date_param(date_param) if date_param is not None else None
    return BookingListResponse(bookings=await service.list_bookings(on_date))


@router.post('/book', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    data: BookingSubmission,
    service: BookingService = Depends(get_booking_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    booking = await service.create_booking(data)
    # emailSent is the real send result on the admin path.
    email_sent = await asyncio.to_thread(notifier.send_confirmation, booking)
    return BookingResponse(booking=booking, email_sent=email_sent)


@router.put('/update', response_model=BookingResponse)
async def update_appointment(
    data: BookingUpdateRequest,
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.update_booking(data)
    return BookingResponse(booking=booking, email_sent=False)


@router.api_route('/delete', methods=['DELETE', 'POST'], response_model=BookingRemovedResponse)
async def delete_appointment(
    background_tasks: BackgroundTasks,
    data: DeleteBookingRequest | None = Body(default=None),
    service: BookingService = Depends(get_booking_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    booking = await service.delete_booking(data.id if data else None)
    background_tasks.add_task(notifier.send_cancellation, booking)
    return BookingRemovedResponse(booking=booking)
