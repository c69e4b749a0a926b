"""
Worker API endpoints: slots, availability and schedule management.

GET    /v1/workers/{id}/slots?date=              - free slots on one date
GET    /v1/workers/{id}/slots/week?start=&days=  - free slots over a window
POST   /v1/workers/{id}/availability/check       - dry-run booking guard
GET    /v1/workers/{id}/availability             - timetable and leave
PUT    /v1/workers/{id}/timetable                - replace weekly timetable
POST   /v1/workers/{id}/non-availability         - add leave
DELETE /v1/workers/{id}/non-availability/{entry} - remove leave
PATCH  /v1/workers/{id}/availability-status      - available / busy / off-duty
GET    /v1/workers/{id}/bookings                 - a worker's bookings
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from workjunction.api.deps import get_actor, get_lifecycle, get_schedule
from workjunction.lifecycle.booking_lifecycle import BookingLifecycle
from workjunction.scheduling.worker_schedule import WorkerSchedule, as_date
from workjunction.schemas.booking_schema import BookingPage
from workjunction.schemas.customer_schema import Actor
from workjunction.schemas.schedule_schema import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    AvailabilityStatusRequest,
    DaySlotsResponse,
    NonAvailabilityRequest,
    NonAvailabilityResponse,
    SlotsResponse,
    TimetableRequest,
    WeeklySlotsResponse,
    WorkerAvailabilityResponse,
)

router = APIRouter(prefix="/v1/workers", tags=["workers"])


def _availability_response(data: dict) -> WorkerAvailabilityResponse:
    return WorkerAvailabilityResponse(
        worker_id=data["worker_id"],
        availability_status=data["availability_status"],
        timetable=data["timetable"],
        non_availability=[
            NonAvailabilityResponse(
                id=entry.id, start_date=entry.start_date, end_date=entry.end_date, reason=entry.reason
            )
            for entry in data["non_availability"]
        ],
    )


@router.get("/{worker_id}/slots", response_model=SlotsResponse)
def get_free_slots(
    worker_id: str,
    target_date: str = Query(..., alias="date"),
    schedule: WorkerSchedule = Depends(get_schedule),
):
    day = as_date(target_date, "date")
    return SlotsResponse(worker_id=worker_id, date=day, slots=schedule.free_slots(worker_id, day))


@router.get("/{worker_id}/slots/week", response_model=WeeklySlotsResponse)
def get_weekly_slots(
    worker_id: str,
    start: str,
    days: Optional[int] = Query(None),
    schedule: WorkerSchedule = Depends(get_schedule),
):
    week = schedule.weekly_slots(worker_id, start, days)
    return WeeklySlotsResponse(
        worker_id=worker_id,
        start=week[0].date,
        days=[DaySlotsResponse(date=d.date, day_name=d.day_name, slots=d.slots) for d in week],
    )


@router.post("/{worker_id}/availability/check", response_model=AvailabilityCheckResponse)
def check_availability(
    worker_id: str,
    body: AvailabilityCheckRequest,
    schedule: WorkerSchedule = Depends(get_schedule),
):
    result = schedule.check(worker_id, body.booking_date, body.booking_time)
    return AvailabilityCheckResponse(
        available=result.passed,
        reason=result.reason.value if result.reason else None,
        message=result.message,
    )


@router.get("/{worker_id}/availability", response_model=WorkerAvailabilityResponse)
def get_availability(worker_id: str, schedule: WorkerSchedule = Depends(get_schedule)):
    return _availability_response(schedule.get_availability(worker_id))


@router.put("/{worker_id}/timetable", response_model=WorkerAvailabilityResponse)
def update_timetable(
    worker_id: str,
    body: TimetableRequest,
    actor: Actor = Depends(get_actor),
    schedule: WorkerSchedule = Depends(get_schedule),
):
    raw = {day: [r.model_dump() for r in ranges] for day, ranges in body.timetable.items()}
    schedule.update_timetable(worker_id, actor, raw)
    return _availability_response(schedule.get_availability(worker_id))


@router.post(
    "/{worker_id}/non-availability", response_model=NonAvailabilityResponse, status_code=201
)
def add_non_availability(
    worker_id: str,
    body: NonAvailabilityRequest,
    actor: Actor = Depends(get_actor),
    schedule: WorkerSchedule = Depends(get_schedule),
):
    entry = schedule.add_non_availability(
        worker_id, actor, body.start_date, body.end_date, body.reason
    )
    return NonAvailabilityResponse(
        id=entry.id, start_date=entry.start_date, end_date=entry.end_date, reason=entry.reason
    )


@router.delete("/{worker_id}/non-availability/{entry_id}", status_code=204)
def remove_non_availability(
    worker_id: str,
    entry_id: int,
    actor: Actor = Depends(get_actor),
    schedule: WorkerSchedule = Depends(get_schedule),
):
    schedule.remove_non_availability(worker_id, actor, entry_id)


@router.patch("/{worker_id}/availability-status", response_model=WorkerAvailabilityResponse)
def set_availability_status(
    worker_id: str,
    body: AvailabilityStatusRequest,
    actor: Actor = Depends(get_actor),
    schedule: WorkerSchedule = Depends(get_schedule),
):
    schedule.set_availability_status(worker_id, actor, body.status)
    return _availability_response(schedule.get_availability(worker_id))


@router.get("/{worker_id}/bookings", response_model=BookingPage)
def list_worker_bookings(
    worker_id: str,
    status: Optional[str] = None,
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    if limit is None:
        limit = lifecycle.config.default_page_size
    rows, total = lifecycle.list_for_worker(worker_id, status=status, page=page, limit=limit)
    return BookingPage.build(rows, total, page, limit)
