from datetime import timedelta
from decimal import Decimal

import pytest

from app.models.studio import CancellationPolicy
from app.services.refund_policy_engine import RefundPolicyEngine, refund_amount, refund_percent

from ..support import T0


@pytest.mark.parametrize(
    "policy,hours,expected",
    [
        ("flexible", 100, 100),
        ("flexible", 24, 100),
        ("flexible", 23.99, 50),
        ("flexible", 0, 50),
        ("moderate", 120, 100),
        ("moderate", 119.99, 50),
        ("moderate", 24, 50),
        ("moderate", 23.99, 0),
        ("strict", 168, 100),
        ("strict", 167.99, 50),
        ("strict", 72, 50),
        ("strict", 48, 50),
        ("strict", 47.99, 0),
    ],
)
def test_refund_percent_tiers(policy, hours, expected):
    assert refund_percent(policy, hours) == expected


def test_refund_percent_after_start():
    assert refund_percent(CancellationPolicy.FLEXIBLE, -5) == 50
    assert refund_percent(CancellationPolicy.MODERATE, -5) == 0
    assert refund_percent(CancellationPolicy.STRICT, -5) == 0


@pytest.mark.parametrize("policy", list(CancellationPolicy))
def test_more_notice_never_refunds_less(policy):
    # quarter-hour steps from 10h after start to two weeks out
    percents = [refund_percent(policy, quarter / 4) for quarter in range(-40, 4 * 24 * 14 + 1)]

    assert all(a <= b for a, b in zip(percents, percents[1:]))
    assert percents[-1] == 100


def test_unknown_policy_raises():
    with pytest.raises(ValueError):
        refund_percent("lenient", 200)


def test_refund_amount_is_rounded_to_cents():
    assert refund_amount(Decimal("115.00"), 50) == Decimal("57.50")
    assert refund_amount(Decimal("115.00"), 100) == Decimal("115.00")
    assert refund_amount(Decimal("115.00"), 0) == Decimal("0.00")
    assert refund_amount(Decimal("0.15"), 50) == Decimal("0.08")


def test_engine_evaluates_from_now():
    decision = RefundPolicyEngine().evaluate(
        CancellationPolicy.STRICT,
        start_at=T0 + timedelta(hours=72),
        total_amount=Decimal("115.00"),
        now=T0,
    )

    assert decision.policy == CancellationPolicy.STRICT
    assert decision.hours_until_start == pytest.approx(72)
    assert decision.percent == 50
    assert decision.amount == Decimal("57.50")
    assert decision.to_payload() == {
        "policy": "strict",
        "hours_until_start": 72.0,
        "percent": 50,
        "amount": "57.50",
    }
