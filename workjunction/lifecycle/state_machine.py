"""
Finite state machine for booking status.

Defines the closed set of booking statuses and the explicit transitions
between them. Every status change in the system goes through
``BookingStateMachine.transition`` so the graph below stays authoritative.

    PENDING -> ACCEPTED -> PAYMENT_PENDING -> COMPLETED
    PENDING -> DECLINED
    PENDING | ACCEPTED -> CANCELLED

Usage:
    sm = BookingStateMachine(BookingStatus.PENDING)
    sm.transition(BookingStatus.ACCEPTED)
    assert sm.current_status == BookingStatus.ACCEPTED
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from workjunction.errors import IllegalTransition, ValidationError

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """All possible states in a booking lifecycle."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DECLINED = "DECLINED"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.DECLINED}
)

# Bookings in these states release their slot.
RELEASED_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.DECLINED})


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    timeline_field: str


def parse_status(value: Union[str, BookingStatus]) -> BookingStatus:
    """Map any casing of a status name onto the canonical enum.

    Raises:
        ValidationError: If the value is not a known status.
    """
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(str(value).strip().upper())
    except ValueError:
        valid = [s.value for s in BookingStatus]
        raise ValidationError(f"Unknown booking status {value!r}. Valid: {valid}") from None


def is_slot_holding(status: Union[str, BookingStatus]) -> bool:
    """Check whether a booking in this status still occupies its slot."""
    return parse_status(status) not in RELEASED_STATUSES


class BookingStateMachine:
    """
    Status guard for a single booking.

    Every transition must be explicitly defined. Requests for any other
    move, including moves out of a terminal status, are rejected with
    ``IllegalTransition`` carrying the current and requested status.
    """

    TRANSITIONS: list[Transition] = [
        # --- Worker response ---
        Transition(BookingStatus.PENDING, BookingStatus.ACCEPTED, "accepted_at"),
        Transition(BookingStatus.PENDING, BookingStatus.DECLINED, "declined_at"),

        # --- Service delivery ---
        Transition(BookingStatus.ACCEPTED, BookingStatus.PAYMENT_PENDING, "finished_at"),
        Transition(BookingStatus.PAYMENT_PENDING, BookingStatus.COMPLETED, "completed_at"),

        # --- Cancellation ---
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, "cancelled_at"),
        Transition(BookingStatus.ACCEPTED, BookingStatus.CANCELLED, "cancelled_at"),
    ]

    def __init__(self, status: Union[str, BookingStatus] = BookingStatus.PENDING) -> None:
        self._current_status = parse_status(status)
        self._history: list[BookingStatus] = [self._current_status]

    @property
    def current_status(self) -> BookingStatus:
        return self._current_status

    @classmethod
    def find_transition(
        cls, from_status: BookingStatus, to_status: BookingStatus
    ) -> Optional[Transition]:
        for t in cls.TRANSITIONS:
            if t.from_status == from_status and t.to_status == to_status:
                return t
        return None

    def transition(self, requested: Union[str, BookingStatus]) -> Transition:
        """
        Move to ``requested`` if the graph allows it.

        Returns:
            The matching Transition, which names the timeline field to stamp.

        Raises:
            ValidationError: If ``requested`` is not a known status.
            IllegalTransition: If no edge leads from the current status.
        """
        target = parse_status(requested)
        t = self.find_transition(self._current_status, target)
        if t is None:
            raise IllegalTransition(self._current_status, target, self.get_valid_targets())

        old_status = self._current_status
        self._current_status = target
        self._history.append(target)
        logger.debug("Status transition: %s -> %s", old_status.value, target.value)
        return t

    def get_valid_targets(self) -> list[BookingStatus]:
        """Return all statuses reachable from the current one."""
        return [t.to_status for t in self.TRANSITIONS if t.from_status == self._current_status]

    def get_history(self) -> list[BookingStatus]:
        return list(self._history)

    def is_terminal(self) -> bool:
        return self._current_status in TERMINAL_STATUSES
