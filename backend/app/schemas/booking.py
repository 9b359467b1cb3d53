# backend/app/schemas/booking.py
"""
Booking schemas for the studio reservation core.

Request bodies carry timezone-aware instants; a naive datetime is rejected at
the edge. Responses expose the economics snapshot and lifecycle timestamps.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AwareDatetime, ConfigDict, Field, field_validator

from ..core.constants import MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from ..models.booking import BookingStatus, PaymentStatus, RefundStatus
from .base import Money, StandardizedModel, StrictRequestModel


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class BookingCreate(StrictRequestModel):
    """Reserve the half-open interval [start, end) on a studio."""

    studio_id: str = Field(..., description="Studio to book")
    start: AwareDatetime = Field(..., description="Start instant (inclusive)")
    end: AwareDatetime = Field(..., description="End instant (exclusive)")
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class BookingCancel(StrictRequestModel):
    """Schema for cancelling a booking."""

    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class BookingReschedule(StrictRequestModel):
    start: AwareDatetime
    end: AwareDatetime


class BookingComplete(StrictRequestModel):
    review_submitted: bool = Field(
        False, description="Completes the booking before its end when a review exists"
    )


class PaymentRecord(StrictRequestModel):
    """Payment settled or authorized by the payment provider."""

    payment_reference: str = Field(..., min_length=1, max_length=255)
    payment_status: Literal["paid", "authorized"] = "paid"


class BookingResponse(StandardizedModel):
    """Complete booking record as seen by its renter or host."""

    id: str
    booking_number: str
    studio_id: str
    renter_id: str
    host_id: str

    start_at: datetime
    end_at: datetime
    original_start_at: Optional[datetime] = None
    original_end_at: Optional[datetime] = None

    status: BookingStatus
    payment_status: PaymentStatus

    total_hours: int
    subtotal: Money
    service_fee: Money
    total_amount: Money
    host_payout: Money

    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    refund_status: Optional[RefundStatus] = None
    refund_percent: Optional[int] = None
    refund_amount: Optional[Money] = None

    created_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class RefundInfo(StandardizedModel):
    percentage: int
    amount: Money
    issued: bool
    status: RefundStatus
    error: Optional[str] = None


class CancellationResponse(StandardizedModel):
    booking: BookingResponse
    refund: RefundInfo


class BookingListResponse(StandardizedModel):
    items: List[BookingResponse]
    total: int


class FailedRefundResponse(StandardizedModel):
    booking_id: str
    booking_number: str
    refund_amount: Optional[Money] = None
    refund_status: Optional[RefundStatus] = None
    refund_error: Optional[str] = None
    cancelled_at: Optional[datetime] = None
