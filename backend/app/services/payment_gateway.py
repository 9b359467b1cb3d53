"""
Payment gateway used for cancellation refunds.

Refunds go through Stripe with a bounded network timeout. Every failure,
including a missing configuration, surfaces as DependencyFailureException so
the booking service can record it for reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, Optional, Protocol

from pydantic import SecretStr
import stripe

from ..core.config import settings
from ..core.exceptions import DependencyFailureException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundOutcome:
    refund_id: str
    amount: Decimal
    status: str


class PaymentGateway(Protocol):
    def refund_payment(
        self,
        payment_reference: str,
        amount: Decimal,
        idempotency_key: Optional[str] = None,
    ) -> RefundOutcome:
        ...


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentGateway:
    def __init__(
        self,
        secret_key: Optional[SecretStr] = None,
        timeout_s: Optional[int] = None,
    ):
        key = secret_key if secret_key is not None else settings.stripe_secret_key
        self.stripe_configured = False
        if key is not None and key.get_secret_value():
            stripe.api_key = key.get_secret_value()
            # Sane network timeout and one retry so a slow gateway never blocks a request
            stripe.default_http_client = stripe.RequestsClient(
                timeout=timeout_s or settings.payment_timeout_s
            )
            stripe.max_network_retries = 1
            self.stripe_configured = True
            logger.info("Stripe payment gateway configured")
        else:
            logger.warning("Stripe secret key not configured - refunds will be reported as failed")

    def refund_payment(
        self,
        payment_reference: str,
        amount: Decimal,
        idempotency_key: Optional[str] = None,
    ) -> RefundOutcome:
        if not self.stripe_configured:
            raise DependencyFailureException(
                "Payment gateway is not configured", code="gateway_not_configured"
            )

        params: Dict[str, Any] = {"amount": to_minor_units(amount)}
        if payment_reference.startswith("ch_"):
            params["charge"] = payment_reference
        else:
            params["payment_intent"] = payment_reference

        try:
            refund = stripe.Refund.create(idempotency_key=idempotency_key, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe error refunding {payment_reference}: {str(e)}")
            raise DependencyFailureException(
                f"Refund failed: {str(e)}",
                code="PAYMENT_GATEWAY_ERROR",
                details={"payment_reference": payment_reference},
            ) from e

        return RefundOutcome(
            refund_id=str(refund.id),
            amount=Decimal(int(refund.amount)) / 100,
            status=str(getattr(refund, "status", None) or "pending"),
        )
