# backend/app/routes/v1/admin_refunds.py
"""
Refund reconciliation - API v1 (admin only)

Endpoints:
    GET /failed - Cancelled bookings whose refund failed or never completed
    POST /{booking_id}/retry - Re-attempt the refund at the gateway
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends

from ...api.dependencies import get_booking_service, require_admin
from ...core.exceptions import DomainException
from ...principal import UserPrincipal
from ...ratelimit import rate_limit
from ...schemas.booking import FailedRefundResponse, RefundInfo
from ...services.booking_service import BookingService
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-refunds-v1"], dependencies=[Depends(rate_limit())])


@router.get("/failed", response_model=List[FailedRefundResponse])
async def list_failed_refunds(
    _: UserPrincipal = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[FailedRefundResponse]:
    bookings = await asyncio.to_thread(booking_service.list_failed_refunds)
    return [
        FailedRefundResponse(
            booking_id=b.id,
            booking_number=b.booking_number,
            refund_amount=b.refund_amount,
            refund_status=b.refund_status,
            refund_error=b.refund_error,
            cancelled_at=b.cancelled_at,
        )
        for b in bookings
    ]


@router.post("/{booking_id}/retry", response_model=RefundInfo)
async def retry_refund(
    booking_id: str,
    admin: UserPrincipal = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> RefundInfo:
    try:
        result = await asyncio.to_thread(booking_service.retry_refund, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    logger.info(
        "refund_retry",
        extra={"booking_id": booking_id, "admin_id": admin.id, "issued": result.issued},
    )
    return RefundInfo.model_validate(result.to_payload())
