# backend/app/routes/v1/payments.py
"""
Payment recording - API v1

Endpoints:
    POST /bookings/{booking_id} - Attach a settled or authorized payment to a booking

Called by the payment bridge once the provider reports the charge, so the
confirm guard and the cancellation refund have real payment data.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import get_booking_service, require_admin
from ...core.exceptions import DomainException
from ...models.booking import PaymentStatus
from ...principal import UserPrincipal
from ...ratelimit import rate_limit
from ...schemas.booking import BookingResponse, PaymentRecord
from ...services.booking_service import BookingService
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"], dependencies=[Depends(rate_limit())])


@router.post("/bookings/{booking_id}", response_model=BookingResponse)
async def record_booking_payment(
    booking_id: str,
    payment: PaymentRecord,
    _: UserPrincipal = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.record_payment,
            booking_id,
            payment.payment_reference,
            PaymentStatus(payment.payment_status),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)
