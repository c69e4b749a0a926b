"""Slot, availability and schedule models for the HTTP layer."""

from datetime import date
from typing import Optional

from pydantic import Field

from workjunction.schemas.customer_schema import CamelModel


class SlotsResponse(CamelModel):
    worker_id: str
    date: date
    slots: list[str] = Field(default_factory=list)


class DaySlotsResponse(CamelModel):
    date: date
    day_name: str
    slots: list[str] = Field(default_factory=list)


class WeeklySlotsResponse(CamelModel):
    worker_id: str
    start: date
    days: list[DaySlotsResponse] = Field(default_factory=list)


class AvailabilityCheckRequest(CamelModel):
    booking_date: str
    booking_time: str


class AvailabilityCheckResponse(CamelModel):
    """Dry-run guard result; ``reason`` is set only when not available."""
    available: bool
    reason: Optional[str] = None
    message: str = ""


class TimeRangeModel(CamelModel):
    start: str
    end: str


class TimetableRequest(CamelModel):
    timetable: dict[str, list[TimeRangeModel]]


class NonAvailabilityRequest(CamelModel):
    start_date: str
    end_date: str
    reason: str = ""


class NonAvailabilityResponse(CamelModel):
    id: Optional[int] = None
    start_date: date
    end_date: date
    reason: str = ""


class AvailabilityStatusRequest(CamelModel):
    status: str


class WorkerAvailabilityResponse(CamelModel):
    worker_id: str
    availability_status: str
    timetable: dict[str, list[TimeRangeModel]]
    non_availability: list[NonAvailabilityResponse] = Field(default_factory=list)
