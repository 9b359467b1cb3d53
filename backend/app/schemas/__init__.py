# backend/app/schemas/__init__.py
"""
Pydantic schemas for the reservation API.
"""

from .availability import (
    AvailabilityResponse,
    BookedInterval,
    DayAvailability,
    SlotCheckRequest,
    SlotCheckResponse,
    SlotResponse,
    StudioSummary,
)
from .booking import (
    BookingCancel,
    BookingComplete,
    BookingCreate,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    CancellationResponse,
    FailedRefundResponse,
    PaymentRecord,
    RefundInfo,
)
from .main_responses import HealthResponse

__all__ = [
    "AvailabilityResponse",
    "BookedInterval",
    "BookingCancel",
    "BookingComplete",
    "BookingCreate",
    "BookingListResponse",
    "BookingReschedule",
    "BookingResponse",
    "CancellationResponse",
    "DayAvailability",
    "FailedRefundResponse",
    "HealthResponse",
    "PaymentRecord",
    "RefundInfo",
    "SlotCheckRequest",
    "SlotCheckResponse",
    "SlotResponse",
    "StudioSummary",
]
