# backend/app/repositories/notification_outbox_repository.py
"""
Repository for notification outbox operations.

Implements transactional enqueue, the pending fetch used by the
dispatcher (skipping rows locked by another worker on PostgreSQL) and the
lease that keeps two dispatchers from delivering the same row.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Optional, cast

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.database import get_dialect_name
from app.models.notification_outbox import NotificationOutbox, NotificationOutboxStatus

logger = logging.getLogger(__name__)


class NotificationOutboxRepository:
    """Data access helpers for notification outbox rows."""

    def __init__(self, db: Session):
        self.db = db
        self._dialect = get_dialect_name(db).lower()

    def enqueue(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        link: Optional[str],
        next_attempt_at: datetime,
    ) -> NotificationOutbox:
        """Add a PENDING row to the current transaction."""
        row = NotificationOutbox(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            link=link,
            status=NotificationOutboxStatus.PENDING.value,
            attempt_count=0,
            next_attempt_at=next_attempt_at,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def fetch_pending(self, now: datetime, limit: int = 200) -> list[NotificationOutbox]:
        """Return pending rows eligible for delivery ordered by attempt time."""
        stmt: Select[Any] = (
            select(NotificationOutbox)
            .where(NotificationOutbox.status == NotificationOutboxStatus.PENDING.value)
            .where(NotificationOutbox.next_attempt_at <= now)
            .order_by(NotificationOutbox.next_attempt_at.asc(), NotificationOutbox.id.asc())
            .limit(limit)
        )
        if self._dialect == "postgresql":
            stmt = stmt.with_for_update(skip_locked=True)

        result = self.db.execute(stmt)
        return cast(list[NotificationOutbox], result.scalars().all())

    def claim(self, row: NotificationOutbox, lease_until: datetime) -> bool:
        """
        Lease a fetched row to this dispatcher until ``lease_until``.

        The update only matches while the row still holds the attempt time it
        was fetched with, so a row already leased by another worker is skipped.
        """
        result = self.db.execute(
            update(NotificationOutbox)
            .where(NotificationOutbox.id == row.id)
            .where(NotificationOutbox.status == NotificationOutboxStatus.PENDING.value)
            .where(NotificationOutbox.next_attempt_at == row.next_attempt_at)
            .values(next_attempt_at=lease_until)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        set_committed_value(row, "next_attempt_at", lease_until)
        return True
