"""Worker schedule management and slot lookups backed by the store."""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional, Union

from workjunction.config import BookingConfig, settings
from workjunction.errors import ValidationError
from workjunction.lifecycle.access_policy import AccessPolicy, enforce
from workjunction.logging_context import get_request_logger
from workjunction.scheduling.availability_guard import AvailabilityGuard, GuardResult
from workjunction.scheduling import slot_calendar
from workjunction.scheduling.slot_calendar import DaySlots, NonAvailability, Timetable
from workjunction.schemas.customer_schema import Actor
from workjunction.store.repository import BookingRepository, WorkerRepository
from workjunction.utils import parse_date

logger = get_request_logger(__name__)

AVAILABILITY_STATUSES = ("available", "busy", "off-duty")


def as_date(value: Union[str, date], field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} '{value}' doesn't look right, expected YYYY-MM-DD") from None


class WorkerSchedule:
    def __init__(
        self,
        workers: WorkerRepository,
        bookings: BookingRepository,
        config: Optional[BookingConfig] = None,
        policy: Optional[AccessPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.workers = workers
        self.bookings = bookings
        self.config = config or settings.booking
        self.policy = policy or AccessPolicy()
        self.guard = AvailabilityGuard(self.config.slot_minutes)
        self._now = clock or (lambda: datetime.now(timezone.utc))

    def _authorise(self, actor: Actor, worker_id: str) -> None:
        worker = self.workers.require(worker_id)
        enforce(self.policy.check_schedule(actor, worker.id, worker.agent_id))

    def _reject_past(self, day: date, field_name: str) -> None:
        if day < self._now().date():
            raise ValidationError(f"{field_name} {day.isoformat()} is in the past")

    # Reads

    def get_availability(self, worker_id: str) -> dict[str, Any]:
        profile = self.workers.get_profile(worker_id)
        return {
            "worker_id": profile.id,
            "availability_status": profile.availability_status,
            "timetable": profile.timetable.to_dict(),
            "non_availability": list(profile.non_availability),
        }

    def free_slots(self, worker_id: str, day: Union[str, date]) -> list[str]:
        day = as_date(day, "date")
        self._reject_past(day, "date")
        profile = self.workers.get_profile(worker_id)
        return slot_calendar.free_slots(
            profile.timetable,
            profile.non_availability,
            self.bookings.for_worker_on(worker_id, day),
            day,
            self.config.slot_minutes,
        )

    def weekly_slots(
        self, worker_id: str, start: Union[str, date], days: Optional[int] = None
    ) -> list[DaySlots]:
        start = as_date(start, "start")
        self._reject_past(start, "start")
        if days is None:
            days = self.config.weekly_slot_days
        if not 1 <= days <= 31:
            raise ValidationError(f"days must be between 1 and 31, got {days}")
        profile = self.workers.get_profile(worker_id)
        end = start + timedelta(days=days - 1)
        return slot_calendar.weekly_slots(
            profile.timetable,
            profile.non_availability,
            self.bookings.for_worker_between(worker_id, start, end),
            start,
            self.config.slot_minutes,
            days=days,
        )

    def check(self, worker_id: str, day: Union[str, date], time: str) -> GuardResult:
        """Read-only dry run of the booking guard for one slot."""
        day = as_date(day, "date")
        profile = self.workers.get_profile(worker_id)
        return self.guard.can_book(
            profile, day, time, self.bookings.for_worker_on(worker_id, day), self._now()
        )

    # Writes

    def update_timetable(
        self, worker_id: str, actor: Actor, timetable: Union[Timetable, Mapping[str, Any]]
    ) -> Timetable:
        if not isinstance(timetable, Timetable):
            timetable = Timetable.from_dict(timetable)
        self._authorise(actor, worker_id)
        self.workers.set_timetable(worker_id, timetable)
        logger.info("Timetable updated for worker %s by %s", worker_id, actor.id)
        return timetable

    def add_non_availability(
        self,
        worker_id: str,
        actor: Actor,
        start_date: Union[str, date],
        end_date: Union[str, date],
        reason: str = "",
    ) -> NonAvailability:
        """
        Block out a date range for a worker.

        Raises:
            ValidationError: Reversed or past range, or overlap with an existing entry.
        """
        start = as_date(start_date, "startDate")
        end = as_date(end_date, "endDate")
        if start > end:
            raise ValidationError("startDate must be on or before endDate")
        if start < self._now().date():
            raise ValidationError("Non-availability cannot start in the past")
        entry = NonAvailability(start, end, (reason or "").strip())

        self._authorise(actor, worker_id)
        for existing in self.workers.get_profile(worker_id).non_availability:
            if existing.overlaps(entry):
                raise ValidationError(
                    f"Overlaps existing non-availability {existing.start_date.isoformat()}"
                    f" to {existing.end_date.isoformat()}"
                )

        row = self.workers.add_non_availability(worker_id, entry)
        logger.info(
            "Worker %s unavailable %s..%s (entry %s)",
            worker_id, start.isoformat(), end.isoformat(), row.id,
        )
        return NonAvailability(row.start_date, row.end_date, row.reason or "", row.id)

    def remove_non_availability(self, worker_id: str, actor: Actor, entry_id: int) -> None:
        self._authorise(actor, worker_id)
        self.workers.remove_non_availability(worker_id, entry_id)
        logger.info("Non-availability %s removed for worker %s", entry_id, worker_id)

    def set_availability_status(self, worker_id: str, actor: Actor, status: str) -> str:
        normalised = (status or "").strip().lower().replace("_", "-").replace(" ", "-")
        if normalised not in AVAILABILITY_STATUSES:
            raise ValidationError(
                f"Unknown availability status '{status}'. Use one of: {list(AVAILABILITY_STATUSES)}"
            )
        self._authorise(actor, worker_id)
        self.workers.set_availability_status(worker_id, normalised)
        logger.info("Worker %s is now %s", worker_id, normalised)
        return normalised
