# backend/app/repositories/booking_repository.py
"""
Booking Repository for the studio reservation core.

Implements all data access operations for booking management:
- Booking creation, exposing integrity errors for conflict handling
- Half-open interval conflict queries per studio
- The per-studio reservation lock used around check-and-insert
- Listing by studio range, participant, refund state and completion due
"""

from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Any, Iterator, List, Optional, cast

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.booking_lock import studio_lock_sync
from ..core.constants import DEFAULT_QUERY_LIMIT
from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus, RefundStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    @contextmanager
    def studio_reservation_lock(self, studio_id: str) -> Iterator[None]:
        """
        Hold the studio's reservation lock for a conflict-check-and-write.

        Callers must commit before leaving the block so the next holder sees
        the new row. On PostgreSQL a transaction-scoped advisory lock is taken
        as well, which serializes writers across processes.
        """
        with studio_lock_sync(studio_id):
            self.acquire_advisory_lock(studio_id)
            yield

    def acquire_advisory_lock(self, studio_id: str) -> None:
        if self.dialect_name != "postgresql":
            return
        try:
            self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"studio:{studio_id}"},
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error taking advisory lock for studio {studio_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock studio: {str(e)}")

    def find_conflict(
        self,
        studio_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> Optional[Booking]:
        """
        First non-cancelled booking overlapping [start_at, end_at), if any.

        Touching intervals do not overlap: a booking ending at 10:00 leaves a
        10:00 start free.
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.studio_id == studio_id,
                Booking.status != BookingStatus.CANCELLED,
                Booking.start_at < end_at,
                Booking.end_at > start_at,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return cast(Optional[Booking], query.order_by(Booking.start_at).first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking time conflict: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}")

    def has_conflict(
        self,
        studio_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return self.find_conflict(studio_id, start_at, end_at, exclude_booking_id) is not None

    def list_for_studio(
        self,
        studio_id: str,
        range_start: datetime,
        range_end: datetime,
        include_cancelled: bool = False,
    ) -> List[Booking]:
        """Bookings on the studio that intersect [range_start, range_end), by start."""
        query = self.db.query(Booking).filter(
            Booking.studio_id == studio_id,
            Booking.start_at < range_end,
            Booking.end_at > range_start,
        )
        if not include_cancelled:
            query = query.filter(Booking.status != BookingStatus.CANCELLED)
        return self._execute_query(query.order_by(Booking.start_at))

    def list_for_user(
        self,
        user_id: str,
        as_host: bool = False,
        status: Optional[BookingStatus] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Booking]:
        column = Booking.host_id if as_host else Booking.renter_id
        query = self.db.query(Booking).filter(column == user_id)
        if status is not None:
            query = query.filter(Booking.status == status)
        return self._execute_query(query.order_by(Booking.start_at.desc()).limit(limit))

    def list_failed_refunds(self, limit: int = DEFAULT_QUERY_LIMIT) -> List[Booking]:
        query = (
            self.db.query(Booking)
            .filter(
                Booking.status == BookingStatus.CANCELLED,
                Booking.refund_status.in_([RefundStatus.FAILED, RefundStatus.PENDING]),
            )
            .order_by(Booking.cancelled_at.asc())
            .limit(limit)
        )
        return self._execute_query(query)

    def list_due_for_completion(
        self, now: datetime, limit: int = DEFAULT_QUERY_LIMIT
    ) -> List[Booking]:
        """Confirmed bookings whose end has passed."""
        query = (
            self.db.query(Booking)
            .filter(Booking.status == BookingStatus.CONFIRMED, Booking.end_at <= now)
            .order_by(Booking.end_at.asc())
            .limit(limit)
        )
        return self._execute_query(query)
