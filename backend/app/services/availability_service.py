# backend/app/services/availability_service.py
"""
Availability Service for the studio reservation core.

Lays out each studio day as one-hour slots between the opening and closing
hour in the studio's own timezone, marks which slots are free, and answers
point queries about a candidate interval. Conflict detection uses the same
half-open overlap rule as the booking write path.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.constants import MAX_AVAILABILITY_RANGE_DAYS
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import get_studio_timezone, local_hour_to_utc
from ..models.booking import Booking, BookingStatus
from ..models.studio import Studio
from ..repositories.booking_repository import BookingRepository
from ..repositories.studio_repository import StudioRepository
from ..utils.time_helpers import iter_days, overlaps, validate_interval
from .base import BaseService
from .cache_service import CacheTTL, ResponseCache, build_cache_key

logger = logging.getLogger(__name__)

PAST_SLOT_REASON = "Cannot book in the past"
CONFLICT_REASON = "Time slot conflicts with existing booking"


class TimeSlot(NamedTuple):
    start: datetime
    end: datetime
    available: bool


class DaySlots(NamedTuple):
    day: date
    slots: Tuple[TimeSlot, ...]


@dataclass(frozen=True)
class SlotCheck:
    available: bool
    reason: Optional[str] = None


class AvailabilityCalendar:
    """
    Lazy day-by-day slot layout for an inclusive date range.

    Iterating computes one day at a time, so callers can stop early. Every
    iteration starts again from the first day.
    """

    def __init__(
        self,
        studio: Studio,
        start_date: date,
        end_date: date,
        bookings: Sequence[Booking],
        now: datetime,
        open_hour: int,
        close_hour: int,
    ):
        self.studio = studio
        self.start_date = start_date
        self.end_date = end_date
        self.now = now
        self.open_hour = open_hour
        self.close_hour = close_hour
        self._tz = get_studio_timezone(studio.timezone)
        self._busy = [
            (b.start_at, b.end_at) for b in bookings if b.status != BookingStatus.CANCELLED
        ]

    def __len__(self) -> int:
        return max(0, (self.end_date - self.start_date).days + 1)

    def __iter__(self) -> Iterator[DaySlots]:
        for day in iter_days(self.start_date, self.end_date):
            yield self._day(day)

    def _day(self, day: date) -> DaySlots:
        slots = []
        for hour in range(self.open_hour, self.close_hour):
            start = local_hour_to_utc(day, hour, self._tz)
            end = local_hour_to_utc(day, hour + 1, self._tz)
            available = start >= self.now and not any(
                overlaps(start, end, busy_start, busy_end) for busy_start, busy_end in self._busy
            )
            slots.append(TimeSlot(start=start, end=end, available=available))
        return DaySlots(day=day, slots=tuple(slots))


def generate_availability(
    studio: Studio,
    start_date: date,
    end_date: date,
    bookings: Sequence[Booking],
    now: datetime,
    open_hour: Optional[int] = None,
    close_hour: Optional[int] = None,
) -> AvailabilityCalendar:
    return AvailabilityCalendar(
        studio,
        start_date,
        end_date,
        bookings,
        now,
        settings.day_open_hour if open_hour is None else open_hour,
        settings.day_close_hour if close_hour is None else close_hour,
    )


def availability_cache_prefix(studio_id: str) -> str:
    return f"availability:{studio_id}"


class AvailabilityService(BaseService):
    def __init__(
        self,
        db: Session,
        cache: Optional[ResponseCache] = None,
        clock: Optional[Clock] = None,
        studio_repository: Optional[StudioRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
    ):
        super().__init__(db, cache=cache, clock=clock)
        self.studio_repository = studio_repository or StudioRepository(db)
        self.booking_repository = booking_repository or BookingRepository(db)

    def _get_studio(self, studio_id: str) -> Studio:
        studio = self.studio_repository.get_by_id(studio_id)
        if not studio:
            raise NotFoundException("Studio not found", code="STUDIO_NOT_FOUND")
        return studio

    @staticmethod
    def _validate_range(start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise ValidationException(
                "end_date must not be before start_date",
                code="INVALID_DATE_RANGE",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        if (end_date - start_date).days + 1 > MAX_AVAILABILITY_RANGE_DAYS:
            raise ValidationException(
                f"Date range cannot exceed {MAX_AVAILABILITY_RANGE_DAYS} days",
                code="INVALID_DATE_RANGE",
                details={"max_days": MAX_AVAILABILITY_RANGE_DAYS},
            )

    @BaseService.measure_operation("build_availability")
    def build_calendar(
        self, studio_id: str, start_date: date, end_date: date
    ) -> Tuple[Studio, List[Booking], AvailabilityCalendar]:
        self._validate_range(start_date, end_date)
        studio = self._get_studio(studio_id)
        tz = get_studio_timezone(studio.timezone)
        bookings = self.booking_repository.list_for_studio(
            studio.id,
            local_hour_to_utc(start_date, 0, tz),
            local_hour_to_utc(end_date, 24, tz),
        )
        calendar = generate_availability(studio, start_date, end_date, bookings, self.clock.now())
        return studio, bookings, calendar

    @BaseService.measure_operation("get_availability")
    def get_availability(self, studio_id: str, start_date: date, end_date: date) -> Dict[str, Any]:
        """
        Availability payload for a studio and date range.

        Includes a studio summary, the booked intervals and the per-day slots.
        Served from the response cache when possible.
        """
        cache_key = build_cache_key(
            availability_cache_prefix(studio_id),
            {"start_date": start_date, "end_date": end_date},
        )
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return dict(cached)

        studio, bookings, calendar = self.build_calendar(studio_id, start_date, end_date)
        payload = {
            "studio": {
                "id": studio.id,
                "title": studio.title,
                "hourly_rate": str(studio.hourly_rate),
                "minimum_hours": studio.minimum_hours,
                "maximum_hours": studio.maximum_hours,
                "timezone": studio.timezone,
            },
            "bookings": [
                {
                    "start": b.start_at.isoformat(),
                    "end": b.end_at.isoformat(),
                    "status": BookingStatus(b.status).value,
                }
                for b in bookings
            ],
            "days": [
                {
                    "date": day.day.isoformat(),
                    "slots": [
                        {
                            "start": slot.start.isoformat(),
                            "end": slot.end.isoformat(),
                            "available": slot.available,
                        }
                        for slot in day.slots
                    ],
                }
                for day in calendar
            ],
        }
        if self.cache is not None:
            self.cache.set(cache_key, payload, CacheTTL.SHORT)
        return payload

    def has_conflict(
        self,
        studio_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        validate_interval(start, end)
        return self.booking_repository.has_conflict(studio_id, start, end, exclude_booking_id)

    @BaseService.measure_operation("check_slot")
    def check_slot(self, studio_id: str, start: datetime, end: datetime) -> SlotCheck:
        """Whether [start, end) could be booked right now, with the reason if not."""
        validate_interval(start, end)
        studio = self._get_studio(studio_id)
        if start < self.clock.now():
            return SlotCheck(available=False, reason=PAST_SLOT_REASON)
        if self.booking_repository.has_conflict(studio.id, start, end):
            return SlotCheck(available=False, reason=CONFLICT_REASON)
        return SlotCheck(available=True)
