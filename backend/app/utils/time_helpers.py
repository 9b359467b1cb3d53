"""Half-open interval arithmetic shared by pricing, availability and conflicts."""

from __future__ import annotations

from datetime import date, datetime, timedelta
import math
from typing import Iterator

from app.core.exceptions import ValidationException

SECONDS_PER_HOUR = 3600


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """
    True iff [a_start, a_end) and [b_start, b_end) share an instant.

    Touching intervals (a_end == b_start) do not overlap, so back-to-back
    bookings are allowed.
    """
    return a_start < b_end and b_start < a_end


def duration_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_HOUR


def billable_hours(start: datetime, end: datetime) -> int:
    """Whole hours billed for the interval; a partial hour bills as a full one."""
    seconds = (end - start).total_seconds()
    # integer ceiling avoids float noise on exact hours
    return -(-int(math.ceil(seconds)) // SECONDS_PER_HOUR)


def validate_interval(start: datetime, end: datetime) -> None:
    """Reject naive datetimes and non-positive durations."""
    if start.tzinfo is None or end.tzinfo is None:
        raise ValidationException(
            "Start and end must include a timezone offset",
            code="INVALID_INTERVAL",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )
    if end <= start:
        raise ValidationException(
            "End time must be after start time",
            code="INVALID_INTERVAL",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    """Every calendar day in the inclusive range."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)
