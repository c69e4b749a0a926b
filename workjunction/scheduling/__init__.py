from workjunction.scheduling.availability_guard import AvailabilityGuard, GuardResult, WorkerProfile
from workjunction.scheduling.slot_calendar import (
    NonAvailability,
    TimeRange,
    Timetable,
    free_slots,
    weekly_slots,
)

__all__ = [
    "AvailabilityGuard",
    "GuardResult",
    "WorkerProfile",
    "NonAvailability",
    "TimeRange",
    "Timetable",
    "free_slots",
    "weekly_slots",
]
