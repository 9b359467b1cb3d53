# backend/app/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET / - List the caller's bookings as renter or host
    POST / - Reserve an interval on a studio
    GET /{booking_id} - Full booking details
    POST /{booking_id}/confirm - Host confirms a pending, paid booking
    POST /{booking_id}/cancel - Cancel a booking and refund per policy
    POST /{booking_id}/reschedule - Move a booking to a new interval
    POST /{booking_id}/complete - Mark booking as completed
"""

import asyncio
import logging
from typing import Literal, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_booking_service, get_current_principal
from ...core.exceptions import DomainException
from ...models.booking import BookingStatus
from ...principal import UserPrincipal
from ...ratelimit import rate_limit
from ...schemas.booking import (
    BookingCancel,
    BookingComplete,
    BookingCreate,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    CancellationResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# Route class picked per request from method and path
router = APIRouter(tags=["bookings-v1"], dependencies=[Depends(rate_limit())])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    role: Literal["renter", "host"] = Query("renter"),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    current_user: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    try:
        bookings = await asyncio.to_thread(
            booking_service.list_bookings,
            current_user,
            as_host=role == "host",
            status=status_filter,
        )
    except DomainException as e:
        handle_domain_exception(e)
    items = [BookingResponse.model_validate(b) for b in bookings]
    return BookingListResponse(items=items, total=len(items))


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Reserve [start, end) on a studio.

    Returns 409 when the interval overlaps another live booking on the studio.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking,
            current_user,
            booking_data.studio_id,
            booking_data.start,
            booking_data.end,
            booking_data.notes,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, current_user, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str,
    current_user: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.confirm_booking, current_user, booking_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: str,
    cancel_data: Optional[BookingCancel] = Body(None),
    current_user: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> CancellationResponse:
    """
    Cancel a booking.

    The response reports the refund percentage and amount, and whether the
    gateway accepted the refund. A failed refund does not undo the cancellation.
    """
    try:
        result = await asyncio.to_thread(
            booking_service.cancel_booking,
            current_user,
            booking_id,
            cancel_data.reason if cancel_data else None,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CancellationResponse(
        booking=BookingResponse.model_validate(result.booking),
        refund=result.refund.to_payload(),
    )


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: str,
    payload: BookingReschedule,
    current_user: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking,
            current_user,
            booking_id,
            payload.start,
            payload.end,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    payload: Optional[BookingComplete] = Body(None),
    current_user: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.complete_booking,
            booking_id,
            payload.review_submitted if payload else False,
            current_user,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)
