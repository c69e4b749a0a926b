"""
Payment recording for bookings.

A payment can be recorded once the worker has accepted the job. Recording
it against a PAYMENT_PENDING booking closes the booking through the
lifecycle, so the COMPLETED edge and its timestamp are applied the same
way as any other transition.
"""

import math
from enum import Enum
from typing import Any, Optional, Union

from workjunction.errors import BookingRejected, RejectionReason, ValidationError
from workjunction.lifecycle.access_policy import enforce
from workjunction.lifecycle.booking_lifecycle import BookingLifecycle
from workjunction.lifecycle.state_machine import BookingStatus
from workjunction.logging_context import get_request_logger
from workjunction.schemas.customer_schema import Actor
from workjunction.store.models import Booking

logger = get_request_logger(__name__)

AMOUNT_TOLERANCE = 0.005


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    CASH = "CASH"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


PAYABLE_STATUSES = frozenset({
    BookingStatus.ACCEPTED,
    BookingStatus.PAYMENT_PENDING,
    BookingStatus.COMPLETED,
})


def parse_method(value: Union[str, PaymentMethod]) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    key = str(value or "").strip().upper().replace(" ", "_").replace("-", "_")
    try:
        return PaymentMethod(key)
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Unknown payment method '{value}'. Use one of: {allowed}") from None


def parse_amount(value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError("Payment amount must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Payment amount '{value}' is not a number") from None
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    return round(amount, 2)


class PaymentRecorder:
    """Records and reports the payment attached to a booking."""

    def __init__(self, lifecycle: BookingLifecycle) -> None:
        self.lifecycle = lifecycle
        self.bookings = lifecycle.bookings

    def record_payment(
        self,
        booking_id: str,
        method: Union[str, PaymentMethod],
        amount: Any,
        actor: Optional[Actor] = None,
        transaction_id: Optional[str] = None,
    ) -> Booking:
        """
        Mark a booking's payment as received.

        Repeating an identical call is a no-op on the payment record. A call
        with a different method or amount after the payment is completed is
        refused with PAYMENT_ALREADY_RECORDED.

        Raises:
            ValidationError: Unknown method or non-positive amount.
            NotFound: Unknown booking.
            PermissionDenied: Actor is neither party to the booking nor acting for the worker.
            BookingRejected: BOOKING_NOT_READY before acceptance or after release,
                PAYMENT_ALREADY_RECORDED on a conflicting repeat.
        """
        method = parse_method(method)
        amount = parse_amount(amount)
        booking = self.bookings.require(booking_id)
        enforce(self.lifecycle.policy.check_payment(actor, self.lifecycle.parties(booking)))

        status = BookingStatus(booking.status)
        if status not in PAYABLE_STATUSES:
            raise BookingRejected(
                RejectionReason.BOOKING_NOT_READY,
                f"Payment cannot be recorded for a {status.value} booking",
            )

        if booking.payment_status == PaymentStatus.COMPLETED.value:
            return self._confirm_repeat(booking, method, amount)

        changes = {
            "payment_method": method.value,
            "payment_amount": amount,
            "payment_status": PaymentStatus.COMPLETED.value,
            "transaction_id": transaction_id,
            "paid_at": self.lifecycle.now(),
        }
        recorded = self.bookings.update_if_status(
            booking_id, status, changes, also_matching={"payment_status": booking.payment_status}
        )
        if not recorded:
            latest = self.bookings.require(booking_id)
            if (
                latest.payment_status == PaymentStatus.COMPLETED.value
                and BookingStatus(latest.status) in PAYABLE_STATUSES
            ):
                logger.info("Booking %s was paid by a concurrent request", booking_id)
                return self._confirm_repeat(latest, method, amount)
            raise BookingRejected(
                RejectionReason.BOOKING_NOT_READY,
                f"Booking {booking_id} changed while the payment was being recorded",
            )
        logger.info(
            "Payment recorded for booking %s: %.2f via %s", booking_id, amount, method.value
        )

        if status == BookingStatus.PAYMENT_PENDING:
            return self.lifecycle.complete_after_payment(booking_id)
        return self.bookings.require(booking_id)

    def _confirm_repeat(self, booking: Booking, method: PaymentMethod, amount: float) -> Booking:
        """Accept an identical repeat of a completed payment; refuse anything else."""
        same = (
            booking.payment_method == method.value
            and booking.payment_amount is not None
            and abs(booking.payment_amount - amount) < AMOUNT_TOLERANCE
        )
        if not same:
            raise BookingRejected(
                RejectionReason.PAYMENT_ALREADY_RECORDED,
                f"Payment already recorded for booking {booking.id}",
            )
        logger.info("Payment for booking %s already recorded, nothing to do", booking.id)
        if booking.status == BookingStatus.PAYMENT_PENDING:
            return self.lifecycle.complete_after_payment(booking.id)
        return booking

    def payment_status(self, booking_id: str) -> dict[str, Any]:
        booking = self.bookings.require(booking_id)
        return {
            "booking_id": booking.id,
            "booking_status": BookingStatus(booking.status).value,
            "payment_status": booking.payment_status or PaymentStatus.PENDING.value,
            "payment_method": booking.payment_method,
            "payment_amount": booking.payment_amount,
            "transaction_id": booking.transaction_id,
            "paid_at": booking.paid_at,
        }
