"""
Error taxonomy for the booking core.

Every error carries a machine-readable code from ``RejectionReason`` and a
human-readable message. The HTTP layer maps each class to a status code;
nothing in the core swallows these.
"""

from enum import Enum
from typing import Any, Optional


class RejectionReason(str, Enum):
    """Closed set of reason codes surfaced to callers."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    WORKER_UNAVAILABLE = "WORKER_UNAVAILABLE"
    SLOT_NOT_OFFERED = "SLOT_NOT_OFFERED"
    SLOT_TAKEN = "SLOT_TAKEN"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    BOOKING_NOT_READY = "BOOKING_NOT_READY"
    BOOKING_NOT_COMPLETED = "BOOKING_NOT_COMPLETED"
    PAYMENT_ALREADY_RECORDED = "PAYMENT_ALREADY_RECORDED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class WorkJunctionError(Exception):
    """Base class for all errors raised by the booking core."""

    code: RejectionReason = RejectionReason.VALIDATION_FAILED

    def __init__(self, message: str, code: Optional[RejectionReason] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "code": self.code.value, "message": self.message}


class ValidationError(WorkJunctionError):
    """Missing or malformed input. Caller error, never retried."""

    code = RejectionReason.VALIDATION_FAILED


class Unauthenticated(WorkJunctionError):
    """The request did not identify its actor."""

    code = RejectionReason.UNAUTHENTICATED


class NotFound(WorkJunctionError):
    """Unknown booking, worker, service or schedule entry."""

    code = RejectionReason.NOT_FOUND


class PermissionDenied(WorkJunctionError):
    """The actor is not allowed to perform the requested operation."""

    code = RejectionReason.FORBIDDEN


class BookingRejected(WorkJunctionError):
    """A business rule refused the request; ``code`` names the rule."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message, code=reason)

    @property
    def reason(self) -> RejectionReason:
        return self.code


class WorkerUnavailable(BookingRejected):
    """The worker is suspended, unverified, busy or off duty."""

    def __init__(self, message: str) -> None:
        super().__init__(RejectionReason.WORKER_UNAVAILABLE, message)


class SlotConflict(BookingRejected):
    """The slot is held by another live booking.

    Raised both by the advisory availability check and when the storage
    uniqueness constraint catches a concurrent insert, so callers see a
    single SLOT_TAKEN outcome either way.
    """

    def __init__(self, message: str = "This time slot is already booked") -> None:
        super().__init__(RejectionReason.SLOT_TAKEN, message)


class IllegalTransition(WorkJunctionError):
    """Requested status is not reachable from the current status."""

    code = RejectionReason.ILLEGAL_TRANSITION

    def __init__(self, current: Any, requested: Any, valid: Optional[list] = None) -> None:
        self.current = current
        self.requested = requested
        self.valid = list(valid or [])
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        valid_values = [getattr(v, "value", v) for v in self.valid]
        super().__init__(
            f"No valid transition from '{current_value}' to '{requested_value}'. "
            f"Valid targets: {valid_values}"
        )

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["currentStatus"] = getattr(self.current, "value", self.current)
        body["requestedStatus"] = getattr(self.requested, "value", self.requested)
        return body


class StoreUnavailable(WorkJunctionError):
    """Storage stayed unreachable after the configured retries."""

    code = RejectionReason.STORE_UNAVAILABLE
