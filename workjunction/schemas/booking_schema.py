"""Booking request and response models for the HTTP layer."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import Field

from workjunction.schemas.customer_schema import CamelModel


class CreateBookingRequest(CamelModel):
    """Body of ``POST /v1/bookings``. Contact details are validated by the lifecycle."""
    customer_id: str
    worker_id: str
    worker_service_id: str
    booking_date: str
    booking_time: str
    customer_details: dict[str, Any] = Field(default_factory=dict)


class StatusUpdateRequest(CamelModel):
    status: str
    remarks: Optional[str] = None


class CancelRequest(CamelModel):
    reason: Optional[str] = None


class PaymentRequest(CamelModel):
    payment_method: str
    amount: float
    transaction_id: Optional[str] = None


class ReviewRequest(CamelModel):
    rating: int
    comment: Optional[str] = None


class ContactDetails(CamelModel):
    """Stored contact details; already normalised, so no re-validation."""
    name: str
    phone: str
    address: str
    pincode: str
    email: Optional[str] = None
    notes: Optional[str] = None


class PaymentInfo(CamelModel):
    amount: float
    method: Optional[str] = None
    status: str = "PENDING"
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None


class Timeline(CamelModel):
    requested_at: datetime
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None


class ReviewInfo(CamelModel):
    rating: int
    comment: Optional[str] = None
    reviewed_at: Optional[datetime] = None


class BookingResponse(CamelModel):
    """A booking as returned by every booking endpoint."""
    id: str
    customer_id: str
    worker_id: str
    worker_service_id: str
    booking_date: date
    booking_time: str
    status: str
    price: float
    customer_details: ContactDetails
    payment: PaymentInfo
    timeline: Timeline
    remarks: Optional[str] = None
    cancellation_reason: Optional[str] = None
    decline_reason: Optional[str] = None
    review: Optional[ReviewInfo] = None

    @classmethod
    def from_booking(cls, booking: Any) -> "BookingResponse":
        review = None
        if booking.review_rating is not None:
            review = ReviewInfo(
                rating=booking.review_rating,
                comment=booking.review_comment,
                reviewed_at=booking.reviewed_at,
            )
        return cls(
            id=booking.id,
            customer_id=booking.customer_id,
            worker_id=booking.worker_id,
            worker_service_id=booking.worker_service_id,
            booking_date=booking.booking_date,
            booking_time=booking.booking_time,
            status=getattr(booking.status, "value", booking.status),
            price=booking.price,
            customer_details=ContactDetails(
                name=booking.customer_name,
                phone=booking.customer_phone,
                address=booking.address,
                pincode=booking.pincode,
                email=booking.customer_email,
                notes=booking.notes,
            ),
            payment=PaymentInfo(
                amount=booking.payment_amount,
                method=booking.payment_method,
                status=booking.payment_status or "PENDING",
                transaction_id=booking.transaction_id,
                paid_at=booking.paid_at,
            ),
            timeline=Timeline(
                requested_at=booking.requested_at,
                accepted_at=booking.accepted_at,
                started_at=booking.started_at,
                finished_at=booking.finished_at,
                completed_at=booking.completed_at,
                cancelled_at=booking.cancelled_at,
                declined_at=booking.declined_at,
            ),
            remarks=booking.remarks,
            cancellation_reason=booking.cancellation_reason,
            decline_reason=booking.decline_reason,
            review=review,
        )


class BookingPage(CamelModel):
    bookings: list[BookingResponse] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
    pages: int = 0

    @classmethod
    def build(cls, rows: list[Any], total: int, page: int, limit: int) -> "BookingPage":
        return cls(
            bookings=[BookingResponse.from_booking(b) for b in rows],
            total=total,
            page=page,
            limit=limit,
            pages=(total + limit - 1) // limit,
        )


class PaymentStatusResponse(CamelModel):
    booking_id: str
    booking_status: str
    payment_status: str
    payment_method: Optional[str] = None
    payment_amount: Optional[float] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
