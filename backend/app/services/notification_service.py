# backend/app/services/notification_service.py
"""
Best-effort notifications for booking events.

Booking transitions call ``enqueue`` inside their own transaction, so the
notification is recorded atomically with the state change. Delivery to the
sink happens later, in ``dispatch_pending`` run by the outbox task, with
retries and backoff; a sink failure is logged and retried, never raised to
the booking caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
import logging
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..models.booking import Booking
from ..models.notification_outbox import NotificationOutbox
from ..monitoring.prometheus_metrics import PrometheusMetrics
from ..repositories.notification_outbox_repository import NotificationOutboxRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_RESCHEDULED = "booking_rescheduled"
    BOOKING_COMPLETED = "booking_completed"
    REFUND_FAILED = "refund_failed"


@dataclass(frozen=True)
class Notification:
    user_id: str
    notification_type: str
    title: str
    message: str
    link: Optional[str] = None


class NotificationSink(Protocol):
    def notify(self, notification: Notification) -> None:
        """Deliver one notification; raise on failure so it is retried."""
        ...


class LoggingNotificationSink:
    """Sink that records deliveries in the application log."""

    def notify(self, notification: Notification) -> None:
        logger.info(
            "notification_delivered",
            extra={
                "user_id": notification.user_id,
                "notification_type": notification.notification_type,
                "title": notification.title,
                "link": notification.link,
            },
        )


def booking_link(booking: Booking) -> str:
    return f"/bookings/{booking.id}"


class NotificationService(BaseService):
    """Outbox enqueue and delivery with retry."""

    def __init__(
        self,
        db: Session,
        sink: Optional[NotificationSink] = None,
        clock: Optional[Clock] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[int] = None,
        claim_lease_seconds: Optional[int] = None,
    ):
        super().__init__(db, clock=clock)
        self.sink = sink or LoggingNotificationSink()
        self.repository = NotificationOutboxRepository(db)
        self.max_attempts = max_attempts or settings.notification_max_attempts
        self.backoff_seconds = backoff_seconds or settings.notification_retry_backoff_s
        self.claim_lease_seconds = claim_lease_seconds or settings.notification_claim_lease_s

    def enqueue(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> NotificationOutbox:
        """Record a notification in the caller's transaction."""
        return self.repository.enqueue(
            user_id=user_id,
            notification_type=NotificationType(notification_type).value,
            title=title,
            message=message,
            link=link,
            next_attempt_at=self.clock.now(),
        )

    def _next_backoff(self, attempt_number: int) -> int:
        """Exponential backoff for the given attempt (1-indexed)."""
        return int(self.backoff_seconds * (2 ** max(0, attempt_number - 1)))

    @BaseService.measure_operation("dispatch_notifications")
    def dispatch_pending(self, limit: int = 200) -> int:
        """
        Deliver due outbox rows. Returns how many were delivered.

        Due rows are leased first and the lease is committed before any
        delivery, so a concurrent dispatcher finds them not yet due. Each
        delivery is then committed on its own so one bad delivery does not
        hold back the rest. A dispatcher that dies mid-batch leaves its rows
        to be retried once the lease runs out.
        """
        now = self.clock.now()
        lease_until = now + timedelta(seconds=self.claim_lease_seconds)
        candidates = self.repository.fetch_pending(now, limit)
        rows: List[NotificationOutbox] = [
            row for row in candidates if self.repository.claim(row, lease_until)
        ]
        self.db.commit()

        delivered = 0
        for row in rows:
            if self._deliver(row):
                delivered += 1
        if rows:
            self.logger.info("Dispatched %s of %s outbox notifications", delivered, len(rows))
        return delivered

    def _deliver(self, row: NotificationOutbox) -> bool:
        attempt_number = row.attempt_count + 1
        PrometheusMetrics.record_notification_attempt(row.notification_type)
        notification = Notification(
            user_id=row.user_id,
            notification_type=row.notification_type,
            title=row.title,
            message=row.message,
            link=row.link,
        )
        try:
            self.sink.notify(notification)
        except Exception as exc:
            if attempt_number >= self.max_attempts:
                row.mark_failed(attempt_number, str(exc))
                PrometheusMetrics.record_notification_outcome(row.notification_type, "failed")
                self.logger.error(
                    "Outbox notification %s failed permanently after %s attempts",
                    row.id,
                    attempt_number,
                )
            else:
                backoff = self._next_backoff(attempt_number)
                row.mark_pending(
                    self.clock.now() + timedelta(seconds=backoff), attempt_number, str(exc)
                )
                self.logger.warning(
                    "Error delivering outbox notification %s; retrying in %ss",
                    row.id,
                    backoff,
                )
            self.db.commit()
            return False

        row.mark_sent(attempt_number)
        self.db.commit()
        PrometheusMetrics.record_notification_outcome(row.notification_type, "sent")
        return True
