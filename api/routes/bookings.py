"""
Booking API routes
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_booking_service
from application.dtos.bookings import BookingCancelDTO, BookingCreateDTO, BookingDTO
from application.dtos.payments import CheckoutDTO
from application.services.booking_service import BookingApplicationService
from core.config import settings
from core.i18n import t
from core.response import Response as ApiResponse, success_response

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", summary="Book a test", response_model=ApiResponse[CheckoutDTO])
async def create_booking(
    payload: BookingCreateDTO,
    service: BookingApplicationService = Depends(get_booking_service),
):
    """
    Create a pending booking and open a payment order for it.

    The response carries the checkout options for the payment widget; the
    booking is confirmed once the payment settles.
    """
    checkout = await service.initiate_booking(payload.test_id, payload.subject_id, payload.is_reattempt)
    return success_response(data=checkout, message=t("booking.created"))


@router.get("", summary="List bookings of a subject", response_model=ApiResponse[List[BookingDTO]])
async def list_bookings(
    subject_id: str = Query(..., min_length=1, max_length=64),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: BookingApplicationService = Depends(get_booking_service),
):
    bookings = await service.list_bookings(subject_id, skip=skip, limit=limit)
    return success_response(data=bookings)


@router.get("/{booking_id}", summary="Get a booking", response_model=ApiResponse[BookingDTO])
async def get_booking(
    booking_id: int,
    service: BookingApplicationService = Depends(get_booking_service),
):
    return success_response(data=await service.get_booking(booking_id))


@router.post("/{booking_id}/cancel", summary="Cancel a pending booking", response_model=ApiResponse[BookingDTO])
async def cancel_booking(
    booking_id: int,
    payload: BookingCancelDTO,
    service: BookingApplicationService = Depends(get_booking_service),
):
    booking = await service.cancel_booking(booking_id, payload.subject_id)
    return success_response(data=booking, message=t("booking.cancelled"))
