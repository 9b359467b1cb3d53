"""Centralized pricing calculations for bookings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Union

from app.core.config import settings
from app.utils.time_helpers import billable_hours, validate_interval

CENT = Decimal("0.01")

Number = Union[Decimal, int, str]


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, halves away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BookingEconomics:
    """Amounts computed once when a booking is created."""

    total_hours: int
    subtotal: Decimal
    service_fee: Decimal
    total_amount: Decimal
    host_payout: Decimal

    def to_payload(self) -> Dict[str, Any]:
        return {
            "total_hours": self.total_hours,
            "subtotal": str(self.subtotal),
            "service_fee": str(self.service_fee),
            "total_amount": str(self.total_amount),
            "host_payout": str(self.host_payout),
        }


def calculate_booking(
    price_per_hour: Number,
    start: datetime,
    end: datetime,
    fee_rate: Optional[Decimal] = None,
) -> BookingEconomics:
    """
    Price an interval at an hourly rate.

    Hours are billed by ceiling. Each monetary output is rounded from the exact
    figures independently, so ``total_amount`` is round(subtotal + fee) rather
    than the sum of two rounded values.
    """
    validate_interval(start, end)
    rate = Decimal(str(price_per_hour))
    fee = settings.platform_fee_rate if fee_rate is None else Decimal(str(fee_rate))

    hours = billable_hours(start, end)
    subtotal = rate * hours
    service_fee = subtotal * fee

    return BookingEconomics(
        total_hours=hours,
        subtotal=quantize_money(subtotal),
        service_fee=quantize_money(service_fee),
        total_amount=quantize_money(subtotal + service_fee),
        host_payout=quantize_money(subtotal * (Decimal("1") - fee)),
    )
