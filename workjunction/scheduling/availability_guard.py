"""
Availability guard: decides whether a worker can be booked for a slot.

The guard is read-only and advisory. It gives callers an early,
readable rejection; the storage uniqueness constraint on live bookings
remains the actual protection against double-booking.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from workjunction.errors import RejectionReason
from workjunction.scheduling.slot_calendar import (
    NonAvailability,
    Timetable,
    booked_times,
    offered_slots,
)
from workjunction.utils import normalize_time

logger = logging.getLogger(__name__)

VERIFICATION_APPROVED = "APPROVED"
STATUS_AVAILABLE = "available"


@dataclass(frozen=True)
class WorkerProfile:
    """Everything the guard needs to know about a worker."""

    id: str
    timetable: Timetable = field(default_factory=Timetable)
    non_availability: tuple[NonAvailability, ...] = ()
    verification_status: str = VERIFICATION_APPROVED
    availability_status: str = STATUS_AVAILABLE
    is_suspended: bool = False
    suspended_until: Optional[datetime] = None
    agent_id: Optional[str] = None

    def is_currently_suspended(self, now: Optional[datetime] = None) -> bool:
        if not self.is_suspended:
            return False
        if self.suspended_until is None:
            return True
        now = now or datetime.now(timezone.utc)
        until = self.suspended_until
        if until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        return now < until


@dataclass(frozen=True)
class GuardResult:
    """Outcome of a single availability check."""

    passed: bool
    reason: Optional[RejectionReason] = None
    message: str = ""

    @classmethod
    def ok(cls) -> "GuardResult":
        return cls(passed=True, message="Worker is available for this time slot")

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str) -> "GuardResult":
        return cls(passed=False, reason=reason, message=message)


class AvailabilityGuard:
    """Three ordered checks, short-circuiting on the first failure."""

    def __init__(self, slot_minutes: int) -> None:
        self.slot_minutes = slot_minutes

    def check_worker(self, worker: WorkerProfile, now: Optional[datetime] = None) -> GuardResult:
        if worker.verification_status != VERIFICATION_APPROVED:
            return GuardResult.rejected(
                RejectionReason.WORKER_UNAVAILABLE,
                f"Worker is not verified (status: {worker.verification_status})",
            )
        if worker.is_currently_suspended(now):
            return GuardResult.rejected(
                RejectionReason.WORKER_UNAVAILABLE, "Worker is currently suspended"
            )
        if worker.availability_status != STATUS_AVAILABLE:
            return GuardResult.rejected(
                RejectionReason.WORKER_UNAVAILABLE,
                f"Worker is currently {worker.availability_status}",
            )
        return GuardResult.ok()

    def check_offered(self, worker: WorkerProfile, day: date, time: str) -> GuardResult:
        offered = offered_slots(worker.timetable, worker.non_availability, day, self.slot_minutes)
        if time not in offered:
            reason = next((n.reason for n in worker.non_availability if n.covers(day)), None)
            message = reason or f"Worker does not offer a slot at {time} on {day.isoformat()}"
            return GuardResult.rejected(RejectionReason.SLOT_NOT_OFFERED, message)
        return GuardResult.ok()

    def check_free(self, day: date, time: str, existing_bookings: Iterable[Any]) -> GuardResult:
        if time in booked_times(existing_bookings, day):
            return GuardResult.rejected(
                RejectionReason.SLOT_TAKEN, "This time slot is already booked"
            )
        return GuardResult.ok()

    def can_book(
        self,
        worker: WorkerProfile,
        day: date,
        time: str,
        existing_bookings: Iterable[Any],
        now: Optional[datetime] = None,
    ) -> GuardResult:
        """
        Decide whether ``worker`` may be booked at ``day``/``time``.

        Args:
            existing_bookings: The worker's bookings on ``day``; cancelled
                and declined ones are ignored.
        """
        try:
            time = normalize_time(time)
        except ValueError:
            return GuardResult.rejected(
                RejectionReason.SLOT_NOT_OFFERED, f"'{time}' is not a valid slot time"
            )

        checks = (
            lambda: self.check_worker(worker, now),
            lambda: self.check_offered(worker, day, time),
            lambda: self.check_free(day, time, existing_bookings),
        )
        for check in checks:
            result = check()
            if not result.passed:
                logger.debug(
                    "Worker %s not bookable at %s %s: %s",
                    worker.id, day.isoformat(), time, result.reason.value,
                )
                return result
        return GuardResult.ok()
