"""
Actor authorisation for booking and schedule operations.

Each check answers one question about who may do what and returns a
PolicyResult; ``enforce`` turns a failed result into PermissionDenied.

1. Customers act on their own bookings (cancel, pay, review).
2. Workers act on bookings assigned to them and on their own schedule.
3. Service agents act on behalf of the workers they administer.
4. Admins may do everything except review on a customer's behalf.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from workjunction.errors import PermissionDenied
from workjunction.lifecycle.state_machine import BookingStatus
from workjunction.schemas.customer_schema import Actor, ActorRole

logger = logging.getLogger(__name__)


@dataclass
class PolicyResult:
    """Outcome of a single authorisation check."""
    passed: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class BookingParties:
    """Who is attached to a booking."""
    customer_id: str
    worker_id: str
    agent_id: Optional[str] = None


def enforce(result: PolicyResult) -> None:
    if not result.passed:
        raise PermissionDenied(result.message or "Not allowed")


class AccessPolicy:
    """Role and ownership rules for every mutating operation."""

    WORKER_SIDE_TARGETS = frozenset({
        BookingStatus.ACCEPTED,
        BookingStatus.DECLINED,
        BookingStatus.PAYMENT_PENDING,
        BookingStatus.COMPLETED,
    })

    def _acts_for_worker(self, actor: Actor, worker_id: str, agent_id: Optional[str]) -> bool:
        if actor.is_admin:
            return True
        if actor.role == ActorRole.WORKER:
            return actor.id == worker_id
        if actor.role == ActorRole.SERVICE_AGENT:
            return agent_id is not None and actor.id == agent_id
        return False

    def _is_customer(self, actor: Actor, parties: BookingParties) -> bool:
        return actor.role == ActorRole.CUSTOMER and actor.id == parties.customer_id

    def check_transition(
        self, actor: Actor, parties: BookingParties, target: BookingStatus
    ) -> PolicyResult:
        if target == BookingStatus.CANCELLED:
            if self._is_customer(actor, parties) or self._acts_for_worker(
                actor, parties.worker_id, parties.agent_id
            ):
                return PolicyResult(passed=True)
            return PolicyResult(
                passed=False,
                message="Only the booking's customer, worker, agent or an admin can cancel it",
            )

        if target in self.WORKER_SIDE_TARGETS:
            if self._acts_for_worker(actor, parties.worker_id, parties.agent_id):
                return PolicyResult(passed=True)
            return PolicyResult(
                passed=False,
                message=f"Only the assigned worker, their agent or an admin can set {target.value}",
            )

        return PolicyResult(passed=False, message=f"No actor may set {target.value} directly")

    def check_create(self, actor: Actor, customer_id: str) -> PolicyResult:
        if actor.is_admin or (actor.role == ActorRole.CUSTOMER and actor.id == customer_id):
            return PolicyResult(passed=True)
        return PolicyResult(passed=False, message="Customers can only create bookings for themselves")

    def check_start_service(self, actor: Actor, parties: BookingParties) -> PolicyResult:
        if self._acts_for_worker(actor, parties.worker_id, parties.agent_id):
            return PolicyResult(passed=True)
        return PolicyResult(passed=False, message="Only the assigned worker can start the service")

    def check_review(self, actor: Actor, parties: BookingParties) -> PolicyResult:
        if self._is_customer(actor, parties):
            return PolicyResult(passed=True)
        return PolicyResult(passed=False, message="Only the booking's customer can review it")

    def check_payment(self, actor: Optional[Actor], parties: BookingParties) -> PolicyResult:
        # No actor means a trusted internal caller such as a payment webhook
        if actor is None:
            return PolicyResult(passed=True)
        if self._is_customer(actor, parties) or self._acts_for_worker(
            actor, parties.worker_id, parties.agent_id
        ):
            return PolicyResult(passed=True)
        return PolicyResult(passed=False, message="Not allowed to record payment for this booking")

    def check_schedule(
        self, actor: Actor, worker_id: str, agent_id: Optional[str]
    ) -> PolicyResult:
        if self._acts_for_worker(actor, worker_id, agent_id):
            return PolicyResult(passed=True)
        logger.info("Actor %s (%s) denied schedule change for worker %s",
                    actor.id, actor.role.value, worker_id)
        return PolicyResult(
            passed=False,
            message="Only the worker, their agent or an admin can change this schedule",
        )
