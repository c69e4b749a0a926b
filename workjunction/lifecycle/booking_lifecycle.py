"""
Booking lifecycle: creation, status transitions, cancellation and reviews.

Bookings are created in PENDING after the availability guard agrees, and
only ever change through ``transition``. Each status write is a
compare-and-set on the status the decision was based on, so two
concurrent requests cannot both move the same booking.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from workjunction.config import BookingConfig, settings
from workjunction.errors import (
    BookingRejected,
    IllegalTransition,
    NotFound,
    RejectionReason,
    SlotConflict,
    ValidationError,
    WorkerUnavailable,
)
from workjunction.lifecycle.access_policy import AccessPolicy, BookingParties, enforce
from workjunction.lifecycle.state_machine import BookingStateMachine, BookingStatus, parse_status
from workjunction.logging_context import get_request_logger
from workjunction.scheduling.availability_guard import AvailabilityGuard, GuardResult
from workjunction.schemas.customer_schema import Actor, CustomerDetails
from workjunction.store.models import Booking
from workjunction.store.repository import BookingRepository, WorkerRepository, to_profile
from workjunction.utils import normalize_time, parse_date

logger = get_request_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MAX_PAGE_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rejection_from(result: GuardResult) -> BookingRejected:
    """Map a failed guard result onto the matching typed error."""
    if result.reason == RejectionReason.WORKER_UNAVAILABLE:
        return WorkerUnavailable(result.message)
    if result.reason == RejectionReason.SLOT_TAKEN:
        return SlotConflict(result.message)
    return BookingRejected(result.reason, result.message)


def coerce_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Date '{value}' doesn't look right, expected YYYY-MM-DD") from None


def coerce_time(value: str) -> str:
    try:
        return normalize_time(value)
    except (AttributeError, ValueError):
        raise ValidationError(f"Time '{value}' doesn't look right, expected HH:MM") from None


def parse_customer_details(details: Union[CustomerDetails, Mapping[str, Any]]) -> CustomerDetails:
    if isinstance(details, CustomerDetails):
        return details
    try:
        return CustomerDetails.model_validate(dict(details or {}))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid customer details: {problems}") from None


class BookingLifecycle:
    """Owns booking creation and the status graph for one request's session."""

    def __init__(
        self,
        bookings: BookingRepository,
        workers: WorkerRepository,
        config: Optional[BookingConfig] = None,
        policy: Optional[AccessPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.bookings = bookings
        self.workers = workers
        self.config = config or settings.booking
        self.guard = AvailabilityGuard(self.config.slot_minutes)
        self.policy = policy or AccessPolicy()
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        """Current time from the injected clock (UTC by default)."""
        return self._clock()

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    def create(
        self,
        customer_id: str,
        worker_id: str,
        worker_service_id: str,
        booking_date: Union[str, date],
        booking_time: str,
        customer_details: Union[CustomerDetails, Mapping[str, Any]],
    ) -> Booking:
        """
        Reserve a slot for a customer.

        Raises:
            ValidationError: Malformed input, past date, foreign or inactive service.
            NotFound: Unknown worker or worker service.
            WorkerUnavailable: Worker is suspended, unverified, busy or off duty.
            BookingRejected: SLOT_NOT_OFFERED when the timetable has no such slot.
            SlotConflict: The slot is held, whether seen by the guard or by the
                storage constraint during a concurrent insert.
        """
        if not customer_id or not str(customer_id).strip():
            raise ValidationError("customerId is required")
        day = coerce_date(booking_date)
        time = coerce_time(booking_time)
        now = self.now()
        if day < now.date():
            raise ValidationError(f"Cannot book a past date ({day.isoformat()})")
        details = parse_customer_details(customer_details)

        worker = self.workers.require(worker_id)
        service = self.workers.get_service(worker_service_id)
        if service is None:
            raise NotFound(f"Worker service {worker_service_id} not found")
        if service.worker_id != worker.id:
            raise ValidationError(f"Service {worker_service_id} is not offered by worker {worker_id}")
        if not service.is_active:
            raise ValidationError(f"Service {worker_service_id} is not active")

        result = self.guard.can_book(
            to_profile(worker), day, time, self.bookings.for_worker_on(worker_id, day), now
        )
        if not result.passed:
            logger.info(
                "Booking rejected for worker %s at %s %s: %s",
                worker_id, day.isoformat(), time, result.reason.value,
            )
            raise rejection_from(result)

        amount = round(service.price * (1 + self.config.tax_rate), 2)
        booking = self.bookings.insert({
            "id": str(uuid.uuid4()),
            "customer_id": str(customer_id),
            "worker_id": worker.id,
            "worker_service_id": service.id,
            "booking_date": day,
            "booking_time": time,
            "status": BookingStatus.PENDING,
            "price": service.price,
            "customer_name": details.name,
            "customer_phone": details.phone,
            "customer_email": details.email,
            "address": details.address,
            "pincode": details.pincode,
            "notes": details.notes,
            "payment_amount": amount,
            "payment_status": "PENDING",
            "requested_at": now,
        })
        logger.info(
            "Booking %s created: customer=%s worker=%s on %s at %s",
            booking.id, customer_id, worker.id, day.isoformat(), time,
        )
        return booking

    # ------------------------------------------------------------------ #
    # Status changes
    # ------------------------------------------------------------------ #

    def parties(self, booking: Booking) -> BookingParties:
        agent_id = booking.worker.agent_id if booking.worker is not None else None
        return BookingParties(
            customer_id=booking.customer_id, worker_id=booking.worker_id, agent_id=agent_id
        )

    def transition(
        self,
        booking_id: str,
        actor: Actor,
        new_status: Union[str, BookingStatus],
        remarks: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking along the status graph.

        Raises:
            NotFound: Unknown booking.
            ValidationError: Unknown status name.
            IllegalTransition: The edge is not in the graph.
            PermissionDenied: The actor may not make this move.
        """
        return self._apply_transition(booking_id, new_status, remarks, actor=actor, check_actor=True)

    def complete_after_payment(self, booking_id: str) -> Booking:
        """Close a PAYMENT_PENDING booking once its payment is recorded."""
        return self._apply_transition(
            booking_id, BookingStatus.COMPLETED, "Payment received", actor=None, check_actor=False
        )

    def _apply_transition(
        self,
        booking_id: str,
        new_status: Union[str, BookingStatus],
        remarks: Optional[str],
        actor: Optional[Actor],
        check_actor: bool,
    ) -> Booking:
        target = parse_status(new_status)
        booking = self.bookings.require(booking_id)
        current = BookingStatus(booking.status)
        sm = BookingStateMachine(current)
        edge = sm.transition(target)
        if check_actor:
            enforce(self.policy.check_transition(actor, self.parties(booking), target))

        remarks = remarks.strip() if remarks and remarks.strip() else None
        now = self.now()
        changes: dict[str, Any] = {"status": target, edge.timeline_field: now}
        if remarks is not None:
            changes["remarks"] = remarks
        if target == BookingStatus.CANCELLED:
            changes["cancellation_reason"] = remarks
        elif target == BookingStatus.DECLINED:
            changes["decline_reason"] = remarks
        elif target == BookingStatus.PAYMENT_PENDING and booking.started_at is None:
            changes["started_at"] = now

        if not self.bookings.update_if_status(booking_id, current, changes):
            latest = BookingStatus(self.bookings.require(booking_id).status)
            logger.info(
                "Booking %s changed concurrently: expected %s, found %s",
                booking_id, current.value, latest.value,
            )
            raise IllegalTransition(
                latest, target, BookingStateMachine(latest).get_valid_targets()
            )

        logger.info(
            "Booking %s: %s -> %s by %s",
            booking_id, current.value, target.value, actor.id if actor else "system",
        )
        return self.bookings.require(booking_id)

    def cancel(self, booking_id: str, actor: Actor, reason: Optional[str]) -> Booking:
        """Cancel a PENDING or ACCEPTED booking; a non-blank reason is mandatory."""
        if reason is None or not reason.strip():
            raise ValidationError("A cancellation reason is required")
        return self.transition(booking_id, actor, BookingStatus.CANCELLED, reason)

    def start_service(self, booking_id: str, actor: Actor) -> Booking:
        """Stamp the moment the worker begins an accepted job. Not a status change."""
        booking = self.bookings.require(booking_id)
        enforce(self.policy.check_start_service(actor, self.parties(booking)))
        if booking.status != BookingStatus.ACCEPTED:
            raise BookingRejected(
                RejectionReason.BOOKING_NOT_READY,
                f"Only accepted bookings can be started (status: {BookingStatus(booking.status).value})",
            )
        if booking.started_at is not None:
            raise ValidationError("Service already started")

        if not self.bookings.update_if_status(
            booking_id,
            BookingStatus.ACCEPTED,
            {"started_at": self.now()},
            also_matching={"started_at": None},
        ):
            if self.bookings.require(booking_id).started_at is not None:
                raise ValidationError("Service already started")
            raise BookingRejected(
                RejectionReason.BOOKING_NOT_READY, "Booking changed before the service could start"
            )
        logger.info("Booking %s: service started by %s", booking_id, actor.id)
        return self.bookings.require(booking_id)

    # ------------------------------------------------------------------ #
    # Reviews and queries
    # ------------------------------------------------------------------ #

    def add_review(
        self, booking_id: str, actor: Actor, rating: int, comment: Optional[str] = None
    ) -> Booking:
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
        booking = self.bookings.require(booking_id)
        enforce(self.policy.check_review(actor, self.parties(booking)))
        if booking.status != BookingStatus.COMPLETED:
            raise BookingRejected(
                RejectionReason.BOOKING_NOT_COMPLETED, "Only completed bookings can be reviewed"
            )
        if booking.review_rating is not None:
            raise ValidationError("Review already submitted for this booking")

        comment = comment.strip() if comment and comment.strip() else None
        updated = self.bookings.update(booking_id, {
            "review_rating": rating,
            "review_comment": comment,
            "reviewed_at": self.now(),
        })
        logger.info("Booking %s reviewed: %d/5", booking_id, rating)
        return updated

    def get(self, booking_id: str) -> Booking:
        return self.bookings.require(booking_id)

    def _list(
        self,
        status: Optional[Union[str, BookingStatus]],
        page: int,
        limit: Optional[int],
        **owner: str,
    ) -> tuple[list[Booking], int]:
        if limit is None:
            limit = self.config.default_page_size
        if page < 1:
            raise ValidationError(f"page must be >= 1, got {page}")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}")
        parsed = parse_status(status) if status else None
        return self.bookings.list_by(status=parsed, page=page, limit=limit, **owner)

    def list_for_customer(
        self,
        customer_id: str,
        status: Optional[Union[str, BookingStatus]] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Booking], int]:
        return self._list(status, page, limit, customer_id=customer_id)

    def list_for_worker(
        self,
        worker_id: str,
        status: Optional[Union[str, BookingStatus]] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Booking], int]:
        self.workers.require(worker_id)
        return self._list(status, page, limit, worker_id=worker_id)
