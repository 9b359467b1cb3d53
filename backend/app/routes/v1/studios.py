# backend/app/routes/v1/studios.py
"""
Studio availability routes - API v1

Endpoints:
    GET /{studio_id}/availability - Per-day slot layout for a date range (cached)
    POST /{studio_id}/availability - Check whether one interval can be booked
"""

import asyncio
from datetime import date
import logging

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_availability_service
from ...core.exceptions import DomainException
from ...ratelimit import RouteClass, rate_limit
from ...schemas.availability import (
    AvailabilityResponse,
    SlotCheckRequest,
    SlotCheckResponse,
)
from ...services.availability_service import AvailabilityService
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["studios-v1"])


@router.get(
    "/{studio_id}/availability",
    response_model=AvailabilityResponse,
    dependencies=[Depends(rate_limit(RouteClass.READ))],
)
async def get_studio_availability(
    studio_id: str,
    start_date: date = Query(..., description="First day, studio-local"),
    end_date: date = Query(..., description="Last day (inclusive), studio-local"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        payload = await asyncio.to_thread(
            availability_service.get_availability, studio_id, start_date, end_date
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AvailabilityResponse.model_validate(payload)


@router.post(
    "/{studio_id}/availability",
    response_model=SlotCheckResponse,
    dependencies=[Depends(rate_limit(RouteClass.READ))],
)
async def check_studio_slot(
    studio_id: str,
    body: SlotCheckRequest,
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> SlotCheckResponse:
    """Whether [start, end) is free right now; ``reason`` explains a refusal."""
    try:
        result = await asyncio.to_thread(
            availability_service.check_slot, studio_id, body.start, body.end
        )
    except DomainException as e:
        handle_domain_exception(e)
    return SlotCheckResponse(available=result.available, reason=result.reason)
