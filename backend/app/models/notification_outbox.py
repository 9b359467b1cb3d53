# backend/app/models/notification_outbox.py
"""
Notification outbox.

Booking transitions enqueue a row here inside their own transaction; a
dispatcher delivers rows to the notification sink afterwards and retries
failures with backoff, so a flaky sink never blocks or reverses a transition.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Integer, String, Text
import ulid

from app.database import Base

from .types import UTCDateTime


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for default factories."""
    return datetime.now(timezone.utc)


class NotificationOutboxStatus(str, Enum):
    """Lifecycle states for an outbox entry."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationOutbox(Base):
    """Notification waiting to be handed to the sink."""

    __tablename__ = "notification_outbox"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), nullable=False, index=True)
    notification_type = Column(String(50), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    status = Column(
        String(20), nullable=False, default=NotificationOutboxStatus.PENDING.value, index=True
    )
    attempt_count = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(UTCDateTime(), nullable=True, index=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=False, default=_now_utc, onupdate=_now_utc)

    def mark_pending(self, next_attempt_at: datetime, attempt_count: int, error: str) -> None:
        """Schedule another delivery attempt."""
        self.status = NotificationOutboxStatus.PENDING.value
        self.attempt_count = attempt_count
        self.next_attempt_at = next_attempt_at
        self.last_error = error[:1000]

    def mark_sent(self, attempt_count: int) -> None:
        self.status = NotificationOutboxStatus.SENT.value
        self.attempt_count = attempt_count
        self.next_attempt_at = None

    def mark_failed(self, attempt_count: int, error: str | None = None) -> None:
        """Give up on the entry after the last allowed attempt."""
        self.status = NotificationOutboxStatus.FAILED.value
        self.attempt_count = attempt_count
        self.next_attempt_at = None
        if error:
            self.last_error = error[:1000]
