# backend/app/models/booking.py
"""
Booking model for the studio reservation core.

A booking holds one half-open interval [start_at, end_at) on a studio, the
economics computed when it was created, and the lifecycle metadata written by
the booking state machine. Bookings are never deleted; cancellation is a
terminal status.

On PostgreSQL the table carries an exclusion constraint so two non-cancelled
bookings on the same studio can never overlap, whatever the application does.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship, validates
import ulid

from ..database import Base
from .base_enum import create_safe_enum
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    REFUNDED = "refunded"


class RefundStatus(str, Enum):
    """Outcome of the gateway refund attached to a cancellation."""

    NOT_APPLICABLE = "not_applicable"
    PENDING = "pending"
    ISSUED = "issued"
    FAILED = "failed"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_number = Column(String(20), nullable=False, index=True)

    studio_id = Column(String(26), ForeignKey("studios.id"), nullable=False)
    renter_id = Column(String(26), nullable=False, index=True)
    host_id = Column(String(26), nullable=False, index=True)

    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False)

    status = Column(
        create_safe_enum(BookingStatus, "booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status = Column(
        create_safe_enum(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_reference = Column(String(255), nullable=True)

    # Economics snapshot, computed once at creation
    total_hours = Column(Integer, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    service_fee = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    host_payout = Column(Numeric(10, 2), nullable=False)

    # Set on the first reschedule only
    original_start_at = Column(UTCDateTime(), nullable=True)
    original_end_at = Column(UTCDateTime(), nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(26), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    refund_status = Column(
        create_safe_enum(RefundStatus, "refund_status"),
        nullable=True,
    )
    refund_percent = Column(Integer, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_error = Column(Text, nullable=True)

    notes = Column(Text, nullable=True)
    confirmed_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=_now_utc)

    studio = relationship("Studio", lazy="joined")

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="check_booking_interval"),
        CheckConstraint("total_hours > 0", name="check_booking_hours_positive"),
        CheckConstraint("subtotal >= 0", name="check_booking_subtotal_non_negative"),
        CheckConstraint("service_fee >= 0", name="check_booking_fee_non_negative"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint("host_payout >= 0", name="check_booking_payout_non_negative"),
        CheckConstraint(
            "refund_percent IS NULL OR refund_percent IN (0, 50, 100)",
            name="check_booking_refund_percent",
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("status", BookingStatus.PENDING)
        kwargs.setdefault("payment_status", PaymentStatus.PENDING)
        super().__init__(**kwargs)

    @validates("status")
    def _coerce_status(self, key: str, value: Any) -> BookingStatus:
        return BookingStatus(value)

    @validates("payment_status")
    def _coerce_payment_status(self, key: str, value: Any) -> PaymentStatus:
        return PaymentStatus(value)

    @validates("refund_status")
    def _coerce_refund_status(self, key: str, value: Any) -> Any:
        return None if value is None else RefundStatus(value)

    def __repr__(self) -> str:
        return (
            f"<Booking {self.booking_number} studio={self.studio_id} "
            f"{self.start_at}-{self.end_at} {self.status}>"
        )

    @property
    def is_terminal(self) -> bool:
        return BookingStatus(self.status).is_terminal

    @property
    def is_paid(self) -> bool:
        return self.payment_status in (PaymentStatus.PAID, PaymentStatus.AUTHORIZED)

    def can_be_modified_by(self, user_id: str) -> bool:
        return user_id in (self.renter_id, self.host_id)


Index("ix_bookings_studio_interval", Booking.studio_id, Booking.start_at, Booking.end_at)
Index("ix_bookings_status_end", Booking.status, Booking.end_at)


# Exclusion constraint: no two live bookings on a studio may overlap.
event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "ALTER TABLE bookings ADD CONSTRAINT bookings_no_overlap "
        "EXCLUDE USING gist ("
        "studio_id WITH =, "
        "tstzrange(start_at, end_at, '[)') WITH &&"
        ") WHERE (status <> 'cancelled')"
    ).execute_if(dialect="postgresql"),
)

BOOKING_OVERLAP_CONSTRAINT = "bookings_no_overlap"
