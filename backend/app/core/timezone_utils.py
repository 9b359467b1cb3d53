"""
Timezone utilities for studio-local day layout.

Studios store an IANA zone name; bookings are stored in UTC. Local wall-clock
hours are resolved through pytz so DST transitions land on the right instant.
"""

from datetime import date, datetime, time, timedelta

import pytz

from app.core.exceptions import ValidationException


def get_studio_timezone(name: str) -> pytz.BaseTzInfo:
    """Resolve a studio's timezone name, rejecting unknown zones."""
    try:
        return pytz.timezone(name or "UTC")
    except pytz.UnknownTimeZoneError as exc:
        raise ValidationException(
            f"Unknown timezone: {name}", code="INVALID_TIMEZONE", details={"timezone": name}
        ) from exc


def local_hour_to_utc(day: date, hour: int, tz: pytz.BaseTzInfo) -> datetime:
    """
    UTC instant of ``hour``:00 on ``day`` in ``tz``.

    Hour 24 means midnight at the start of the following day.
    """
    if hour == 24:
        day, hour = day + timedelta(days=1), 0
    naive = datetime.combine(day, time(hour=hour))
    # is_dst=False picks standard time for ambiguous and nonexistent wall times
    return tz.normalize(tz.localize(naive, is_dst=False)).astimezone(pytz.UTC)


def to_studio_local(dt: datetime, tz: pytz.BaseTzInfo) -> datetime:
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(tz)
