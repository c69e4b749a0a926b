"""
Bookings API endpoints.

POST  /v1/bookings                       - create a booking (PENDING)
GET   /v1/bookings/{id}                  - fetch one booking
GET   /v1/customers/{id}/bookings        - a customer's bookings
PATCH /v1/bookings/{id}/status           - move along the status graph
PATCH /v1/bookings/{id}/cancel           - cancel with a reason
POST  /v1/bookings/{id}/start            - stamp service start
PATCH /v1/bookings/{id}/payment          - record payment
GET   /v1/bookings/{id}/payment          - payment status
POST  /v1/bookings/{id}/review           - review a completed booking
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from workjunction.api.deps import get_actor, get_lifecycle, get_payments
from workjunction.lifecycle.access_policy import enforce
from workjunction.lifecycle.booking_lifecycle import BookingLifecycle
from workjunction.lifecycle.payment_recorder import PaymentRecorder
from workjunction.schemas.booking_schema import (
    BookingPage,
    BookingResponse,
    CancelRequest,
    CreateBookingRequest,
    PaymentRequest,
    PaymentStatusResponse,
    ReviewRequest,
    StatusUpdateRequest,
)
from workjunction.schemas.customer_schema import Actor

router = APIRouter(prefix="/v1", tags=["bookings"])


@router.post("/bookings", response_model=BookingResponse, status_code=201)
def create_booking(
    body: CreateBookingRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    enforce(lifecycle.policy.check_create(actor, body.customer_id))
    booking = lifecycle.create(
        customer_id=body.customer_id,
        worker_id=body.worker_id,
        worker_service_id=body.worker_service_id,
        booking_date=body.booking_date,
        booking_time=body.booking_time,
        customer_details=body.customer_details,
    )
    return BookingResponse.from_booking(booking)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return BookingResponse.from_booking(lifecycle.get(booking_id))


@router.get("/customers/{customer_id}/bookings", response_model=BookingPage)
def list_customer_bookings(
    customer_id: str,
    status: Optional[str] = None,
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    if limit is None:
        limit = lifecycle.config.default_page_size
    rows, total = lifecycle.list_for_customer(customer_id, status=status, page=page, limit=limit)
    return BookingPage.build(rows, total, page, limit)


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: str,
    body: StatusUpdateRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    booking = lifecycle.transition(booking_id, actor, body.status, body.remarks)
    return BookingResponse.from_booking(booking)


@router.patch("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    body: CancelRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return BookingResponse.from_booking(lifecycle.cancel(booking_id, actor, body.reason))


@router.post("/bookings/{booking_id}/start", response_model=BookingResponse)
def start_service(
    booking_id: str,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return BookingResponse.from_booking(lifecycle.start_service(booking_id, actor))


@router.patch("/bookings/{booking_id}/payment", response_model=BookingResponse)
def record_payment(
    booking_id: str,
    body: PaymentRequest,
    actor: Actor = Depends(get_actor),
    payments: PaymentRecorder = Depends(get_payments),
):
    booking = payments.record_payment(
        booking_id,
        body.payment_method,
        body.amount,
        actor=actor,
        transaction_id=body.transaction_id,
    )
    return BookingResponse.from_booking(booking)


@router.get("/bookings/{booking_id}/payment", response_model=PaymentStatusResponse)
def get_payment_status(booking_id: str, payments: PaymentRecorder = Depends(get_payments)):
    return PaymentStatusResponse(**payments.payment_status(booking_id))


@router.post("/bookings/{booking_id}/review", response_model=BookingResponse)
def add_review(
    booking_id: str,
    body: ReviewRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    booking = lifecycle.add_review(booking_id, actor, body.rating, body.comment)
    return BookingResponse.from_booking(booking)
