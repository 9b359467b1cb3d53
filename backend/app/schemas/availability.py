"""Availability schemas: per-day slot layout and single-slot checks."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import AwareDatetime, Field

from .base import Money, StandardizedModel, StrictRequestModel


class SlotResponse(StandardizedModel):
    start: datetime
    end: datetime
    available: bool


class DayAvailability(StandardizedModel):
    day: date = Field(..., alias="date")
    slots: List[SlotResponse]


class StudioSummary(StandardizedModel):
    id: str
    title: str
    hourly_rate: Money
    minimum_hours: int
    maximum_hours: Optional[int] = None
    timezone: str


class BookedInterval(StandardizedModel):
    start: datetime
    end: datetime
    status: str


class AvailabilityResponse(StandardizedModel):
    studio: StudioSummary
    bookings: List[BookedInterval]
    days: List[DayAvailability]


class SlotCheckRequest(StrictRequestModel):
    start: AwareDatetime
    end: AwareDatetime


class SlotCheckResponse(StandardizedModel):
    available: bool
    reason: Optional[str] = None
