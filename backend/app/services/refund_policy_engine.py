"""Refund policy evaluation for booking cancellations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Tuple, Union

from app.core.constants import (
    FLEXIBLE_FULL_REFUND_HOURS,
    MODERATE_FULL_REFUND_HOURS,
    MODERATE_HALF_REFUND_HOURS,
    STRICT_FULL_REFUND_HOURS,
    STRICT_HALF_REFUND_HOURS,
)
from app.models.studio import CancellationPolicy
from app.services.pricing_service import quantize_money
from app.utils.time_helpers import duration_hours

# (minimum hours before start, percent) checked in order; first match wins
_TIERS: Dict[CancellationPolicy, List[Tuple[float, int]]] = {
    CancellationPolicy.FLEXIBLE: [(FLEXIBLE_FULL_REFUND_HOURS, 100), (float("-inf"), 50)],
    CancellationPolicy.MODERATE: [
        (MODERATE_FULL_REFUND_HOURS, 100),
        (MODERATE_HALF_REFUND_HOURS, 50),
        (float("-inf"), 0),
    ],
    CancellationPolicy.STRICT: [
        (STRICT_FULL_REFUND_HOURS, 100),
        (STRICT_HALF_REFUND_HOURS, 50),
        (float("-inf"), 0),
    ],
}


@dataclass(frozen=True)
class RefundDecision:
    policy: CancellationPolicy
    hours_until_start: float
    percent: int
    amount: Decimal

    def to_payload(self) -> Dict[str, object]:
        return {
            "policy": self.policy.value,
            "hours_until_start": round(self.hours_until_start, 2),
            "percent": self.percent,
            "amount": str(self.amount),
        }


def refund_percent(policy: Union[CancellationPolicy, str], hours_until_start: float) -> int:
    """
    Percentage of the total refunded for a cancellation.

    flexible: 100 at 24h or more, otherwise 50.
    moderate: 100 at 120h, 50 at 24h, otherwise 0.
    strict:   100 at 168h, 50 at 48h, otherwise 0.
    """
    for threshold, percent in _TIERS[CancellationPolicy(policy)]:
        if hours_until_start >= threshold:
            return percent
    return 0


def refund_amount(total_amount: Decimal, percent: int) -> Decimal:
    return quantize_money(Decimal(total_amount) * percent / Decimal(100))


class RefundPolicyEngine:
    """Decides the refund owed when a booking is cancelled at a given instant."""

    def evaluate(
        self,
        policy: Union[CancellationPolicy, str],
        start_at: datetime,
        total_amount: Decimal,
        now: datetime,
    ) -> RefundDecision:
        hours = duration_hours(now, start_at)
        percent = refund_percent(policy, hours)
        return RefundDecision(
            policy=CancellationPolicy(policy),
            hours_until_start=hours,
            percent=percent,
            amount=refund_amount(total_amount, percent),
        )
