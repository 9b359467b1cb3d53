# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Shared, process-wide collaborators (clock, response cache, payment gateway,
notification sink) live on ``app.state`` and are created by the lifespan;
services themselves are built per request around the request's session.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...core.clock import Clock, system_clock
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.cache_service import ResponseCache
from ...services.notification_service import (
    LoggingNotificationSink,
    NotificationService,
    NotificationSink,
)
from ...services.payment_gateway import PaymentGateway, StripePaymentGateway
from .database import get_db

logger = logging.getLogger(__name__)


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", None) or system_clock


def get_response_cache(request: Request) -> Optional[ResponseCache]:
    return getattr(request.app.state, "response_cache", None)


def get_payment_gateway(request: Request) -> PaymentGateway:
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        gateway = StripePaymentGateway()
        request.app.state.payment_gateway = gateway
    return gateway


def get_notification_sink(request: Request) -> NotificationSink:
    return getattr(request.app.state, "notification_sink", None) or LoggingNotificationSink()


def get_notification_service(
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
    clock: Clock = Depends(get_clock),
) -> NotificationService:
    return NotificationService(db, sink=sink, clock=clock)


def get_availability_service(
    db: Session = Depends(get_db),
    cache: Optional[ResponseCache] = Depends(get_response_cache),
    clock: Clock = Depends(get_clock),
) -> AvailabilityService:
    """Get AvailabilityService instance with proper dependencies."""
    return AvailabilityService(db, cache=cache, clock=clock)


def get_booking_service(
    db: Session = Depends(get_db),
    cache: Optional[ResponseCache] = Depends(get_response_cache),
    clock: Clock = Depends(get_clock),
    notification_service: NotificationService = Depends(get_notification_service),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingService:
    """
    Get booking service instance.

    Returns:
        BookingService sharing the request session with its notification outbox
    """
    return BookingService(
        db,
        cache=cache,
        clock=clock,
        notification_service=notification_service,
        payment_gateway=payment_gateway,
    )
