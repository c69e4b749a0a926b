"""
Repository layer over the SQLAlchemy session.

Isolates queries and writes from the lifecycle logic. Writes go through
``_write`` which retries transient storage failures after rolling the
session back; every write is keyed by primary key so replaying it is safe.
"""

import logging
import time
from datetime import date
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from workjunction.config import settings
from workjunction.errors import NotFound, SlotConflict, StoreUnavailable
from workjunction.lifecycle.state_machine import BookingStatus
from workjunction.scheduling.availability_guard import WorkerProfile
from workjunction.scheduling.slot_calendar import NonAvailability, Timetable
from workjunction.store.models import (
    LIVE_SLOT_INDEX,
    Booking,
    ServiceAgent,
    Worker,
    WorkerNonAvailability,
    WorkerService,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_live_slot_violation(error: IntegrityError) -> bool:
    """Recognise a uniqueness failure on the live-slot index across backends."""
    text = str(error.orig)
    if LIVE_SLOT_INDEX in text:
        return True
    # SQLite names the columns rather than the index
    return "UNIQUE" in text.upper() and "bookings.booking_time" in text


class _Repository:
    def __init__(
        self,
        session: Session,
        retry_attempts: Optional[int] = None,
        retry_backoff_sec: Optional[float] = None,
    ) -> None:
        self.session = session
        self.retry_attempts = retry_attempts or settings.store.retry_attempts
        self.retry_backoff_sec = (
            settings.store.retry_backoff_sec if retry_backoff_sec is None else retry_backoff_sec
        )

    def _write(self, description: str, operation: Callable[[], T]) -> T:
        """Run ``operation`` and commit, retrying on transient storage errors.

        Raises:
            StoreUnavailable: When every attempt failed with an OperationalError.
            IntegrityError: Constraint failures are never retried.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                result = operation()
                self.session.commit()
                return result
            except OperationalError as e:
                self.session.rollback()
                if attempt >= self.retry_attempts:
                    logger.error("%s failed after %d attempts: %s", description, attempt, e)
                    raise StoreUnavailable(f"Storage unavailable while trying to {description}") from e
                wait = self.retry_backoff_sec * attempt
                logger.warning(
                    "%s hit a transient storage error (attempt %d/%d), retrying in %.2fs: %s",
                    description, attempt, self.retry_attempts, wait, e,
                )
                time.sleep(wait)
            except Exception:
                self.session.rollback()
                raise


class BookingRepository(_Repository):
    """Reads and writes for the bookings table."""

    def get(self, booking_id: str) -> Optional[Booking]:
        return self.session.get(Booking, booking_id, populate_existing=True)

    def require(self, booking_id: str) -> Booking:
        booking = self.get(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    def for_worker_on(self, worker_id: str, day: date) -> list[Booking]:
        stmt = select(Booking).where(Booking.worker_id == worker_id, Booking.booking_date == day)
        return list(self.session.scalars(stmt))

    def for_worker_between(self, worker_id: str, start: date, end: date) -> list[Booking]:
        stmt = select(Booking).where(
            Booking.worker_id == worker_id,
            Booking.booking_date >= start,
            Booking.booking_date <= end,
        )
        return list(self.session.scalars(stmt))

    def list_by(
        self,
        customer_id: Optional[str] = None,
        worker_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """Page through bookings, newest appointment first. Returns (rows, total)."""
        stmt = select(Booking)
        if customer_id is not None:
            stmt = stmt.where(Booking.customer_id == customer_id)
        if worker_id is not None:
            stmt = stmt.where(Booking.worker_id == worker_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = (
            stmt.order_by(Booking.booking_date.desc(), Booking.booking_time.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.session.scalars(stmt)), total

    def insert(self, values: dict[str, Any]) -> Booking:
        """Insert a new booking.

        Raises:
            SlotConflict: If another live booking already holds the slot.
        """
        def _add() -> Booking:
            booking = Booking(**values)
            self.session.add(booking)
            self.session.flush()
            return booking

        try:
            booking = self._write(f"insert booking {values.get('id')}", _add)
        except IntegrityError as e:
            if _is_live_slot_violation(e):
                logger.info(
                    "Slot conflict on insert: worker=%s date=%s time=%s",
                    values.get("worker_id"), values.get("booking_date"), values.get("booking_time"),
                )
                raise SlotConflict() from e
            raise
        return booking

    def update_if_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        changes: dict[str, Any],
        also_matching: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Compare-and-set update: applies ``changes`` only while status is ``expected``.

        ``also_matching`` adds column conditions to the same write; a ``None``
        value means the column must still be NULL.
        """
        conditions = [Booking.id == booking_id, Booking.status == expected]
        for name, value in (also_matching or {}).items():
            column = getattr(Booking, name)
            conditions.append(column.is_(None) if value is None else column == value)

        def _update() -> int:
            stmt = (
                update(Booking)
                .where(*conditions)
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
            return self.session.execute(stmt).rowcount

        try:
            rowcount = self._write(f"update booking {booking_id}", _update)
        except IntegrityError as e:
            if _is_live_slot_violation(e):
                raise SlotConflict() from e
            raise
        return rowcount == 1

    def update(self, booking_id: str, changes: dict[str, Any]) -> Booking:
        def _update() -> Booking:
            booking = self.require(booking_id)
            for key, value in changes.items():
                setattr(booking, key, value)
            return booking

        return self._write(f"update booking {booking_id}", _update)


class WorkerRepository(_Repository):
    """Reads and writes for workers, their services and schedules."""

    def get(self, worker_id: str) -> Optional[Worker]:
        return self.session.get(Worker, worker_id, populate_existing=True)

    def require(self, worker_id: str) -> Worker:
        worker = self.get(worker_id)
        if worker is None:
            raise NotFound(f"Worker {worker_id} not found")
        return worker

    def get_profile(self, worker_id: str) -> WorkerProfile:
        return to_profile(self.require(worker_id))

    def get_service(self, service_id: str) -> Optional[WorkerService]:
        return self.session.get(WorkerService, service_id)

    def get_agent(self, agent_id: str) -> Optional[ServiceAgent]:
        return self.session.get(ServiceAgent, agent_id)

    def set_timetable(self, worker_id: str, timetable: Timetable) -> Worker:
        def _set() -> Worker:
            worker = self.require(worker_id)
            worker.timetable = timetable.to_dict()
            return worker

        return self._write(f"update timetable of worker {worker_id}", _set)

    def add_non_availability(self, worker_id: str, entry: NonAvailability) -> WorkerNonAvailability:
        def _add() -> WorkerNonAvailability:
            worker = self.require(worker_id)
            row = WorkerNonAvailability(
                start_date=entry.start_date,
                end_date=entry.end_date,
                reason=entry.reason,
            )
            worker.non_availability.append(row)
            self.session.flush()
            return row

        return self._write(f"add non-availability for worker {worker_id}", _add)

    def remove_non_availability(self, worker_id: str, entry_id: int) -> None:
        def _remove() -> None:
            worker = self.require(worker_id)
            row = next((r for r in worker.non_availability if r.id == entry_id), None)
            if row is None:
                raise NotFound(f"Non-availability entry {entry_id} not found for worker {worker_id}")
            worker.non_availability.remove(row)

        self._write(f"remove non-availability {entry_id}", _remove)

    def set_availability_status(self, worker_id: str, status: str) -> Worker:
        def _set() -> Worker:
            worker = self.require(worker_id)
            worker.availability_status = status
            return worker

        return self._write(f"update availability status of worker {worker_id}", _set)


def to_profile(worker: Worker) -> WorkerProfile:
    """Convert a stored worker into the value object the guard understands."""
    return WorkerProfile(
        id=worker.id,
        timetable=Timetable.from_dict(worker.timetable or {}),
        non_availability=tuple(
            NonAvailability(
                start_date=row.start_date,
                end_date=row.end_date,
                reason=row.reason or "",
                id=row.id,
            )
            for row in worker.non_availability
        ),
        verification_status=worker.verification_status,
        availability_status=worker.availability_status,
        is_suspended=bool(worker.is_suspended),
        suspended_until=worker.suspended_until,
        agent_id=worker.agent_id,
    )
