"""FastAPI dependencies: actor identity and per-request services."""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from workjunction.config import AppConfig
from workjunction.errors import Unauthenticated
from workjunction.lifecycle.booking_lifecycle import BookingLifecycle
from workjunction.lifecycle.payment_recorder import PaymentRecorder
from workjunction.scheduling.worker_schedule import WorkerSchedule
from workjunction.schemas.customer_schema import Actor, ActorRole
from workjunction.store.database import get_db
from workjunction.store.repository import BookingRepository, WorkerRepository


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    if not x_actor_id or not x_actor_id.strip():
        raise Unauthenticated("Missing X-Actor-Id header")
    role = (x_actor_role or "").strip().upper().replace("-", "_")
    try:
        return Actor(id=x_actor_id.strip(), role=ActorRole(role))
    except ValueError:
        raise Unauthenticated(
            f"X-Actor-Role must be one of {[r.value for r in ActorRole]}"
        ) from None


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_repositories(
    db: Session = Depends(get_db), config: AppConfig = Depends(get_config)
) -> tuple[BookingRepository, WorkerRepository]:
    store = config.store
    return (
        BookingRepository(db, store.retry_attempts, store.retry_backoff_sec),
        WorkerRepository(db, store.retry_attempts, store.retry_backoff_sec),
    )


def get_lifecycle(
    request: Request,
    repos: tuple[BookingRepository, WorkerRepository] = Depends(get_repositories),
    config: AppConfig = Depends(get_config),
) -> BookingLifecycle:
    bookings, workers = repos
    return BookingLifecycle(
        bookings, workers, config=config.booking, clock=getattr(request.app.state, "clock", None)
    )


def get_payments(lifecycle: BookingLifecycle = Depends(get_lifecycle)) -> PaymentRecorder:
    return PaymentRecorder(lifecycle)


def get_schedule(
    request: Request,
    repos: tuple[BookingRepository, WorkerRepository] = Depends(get_repositories),
    config: AppConfig = Depends(get_config),
) -> WorkerSchedule:
    bookings, workers = repos
    return WorkerSchedule(
        workers, bookings, config=config.booking, clock=getattr(request.app.state, "clock", None)
    )
