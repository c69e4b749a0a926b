"""Shared test fixtures and helpers."""

from datetime import date, timedelta
from typing import Optional

import pytest

from workjunction.config import AppConfig, BookingConfig, ServerConfig, StoreConfig
from workjunction.lifecycle.booking_lifecycle import BookingLifecycle
from workjunction.lifecycle.payment_recorder import PaymentRecorder
from workjunction.scheduling.worker_schedule import WorkerSchedule
from workjunction.schemas.customer_schema import Actor, ActorRole
from workjunction.store.database import build_engine, build_session_factory, init_db
from workjunction.store.models import ServiceAgent, Worker, WorkerService
from workjunction.store.repository import BookingRepository, WorkerRepository

MONDAY_MORNING = {"Monday": [{"start": "09:00", "end": "12:00"}]}

CUSTOMER_DETAILS = {
    "name": "asha rao",
    "phone": "98765 43210",
    "address": "12 MG Road, Indiranagar",
    "pincode": "560038",
    "email": "Asha@Example.com",
}


def next_monday(weeks_ahead: int = 0) -> date:
    """A Monday strictly after today."""
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) + 7 * weeks_ahead)


def make_config(database_url: str = "sqlite://") -> AppConfig:
    return AppConfig(
        store=StoreConfig(
            database_url=database_url, echo=False, retry_attempts=3, retry_backoff_sec=0.0
        ),
        booking=BookingConfig(
            slot_minutes=60, weekly_slot_days=7, tax_rate=0.18, default_page_size=10
        ),
        server=ServerConfig(host="127.0.0.1", port=8000),
        log_level="INFO",
        app_name="workjunction-test",
    )


def seed_marketplace(session) -> None:
    """One agent, two approved workers, and their services."""
    session.add(ServiceAgent(id="agent-1", name="Koramangala Agents", areas=["Koramangala"]))
    session.add_all([
        Worker(
            id="worker-1",
            name="Ravi Kumar",
            phone="9000000001",
            agent_id="agent-1",
            verification_status="APPROVED",
            availability_status="available",
            timetable=MONDAY_MORNING,
        ),
        Worker(
            id="worker-2",
            name="Meena Iyer",
            phone="9000000002",
            verification_status="APPROVED",
            availability_status="available",
            timetable=MONDAY_MORNING,
        ),
    ])
    session.add_all([
        WorkerService(id="svc-1", worker_id="worker-1", service_name="Plumbing", price=500.0),
        WorkerService(
            id="svc-off", worker_id="worker-1", service_name="Painting", price=800.0, is_active=False
        ),
        WorkerService(id="svc-2", worker_id="worker-2", service_name="Electrical", price=300.0),
    ])
    session.commit()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", echo=False)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = build_session_factory(engine)()
    seed_marketplace(session)
    yield session
    session.close()


@pytest.fixture
def booking_repo(session):
    return BookingRepository(session, retry_attempts=3, retry_backoff_sec=0.0)


@pytest.fixture
def worker_repo(session):
    return WorkerRepository(session, retry_attempts=3, retry_backoff_sec=0.0)


@pytest.fixture
def lifecycle(booking_repo, worker_repo, config):
    return BookingLifecycle(booking_repo, worker_repo, config=config.booking)


@pytest.fixture
def payments(lifecycle):
    return PaymentRecorder(lifecycle)


@pytest.fixture
def schedule(worker_repo, booking_repo, config):
    return WorkerSchedule(worker_repo, booking_repo, config=config.booking)


@pytest.fixture
def customer():
    return Actor(id="cust-1", role=ActorRole.CUSTOMER)


@pytest.fixture
def other_customer():
    return Actor(id="cust-2", role=ActorRole.CUSTOMER)


@pytest.fixture
def worker_actor():
    return Actor(id="worker-1", role=ActorRole.WORKER)


@pytest.fixture
def agent_actor():
    return Actor(id="agent-1", role=ActorRole.SERVICE_AGENT)


@pytest.fixture
def admin():
    return Actor(id="admin-1", role=ActorRole.ADMIN)


def make_booking(
    lifecycle: BookingLifecycle,
    time: str = "09:00",
    day: Optional[date] = None,
    customer_id: str = "cust-1",
    worker_id: str = "worker-1",
    service_id: str = "svc-1",
):
    """Create a PENDING booking on the seeded worker's Monday timetable."""
    return lifecycle.create(
        customer_id=customer_id,
        worker_id=worker_id,
        worker_service_id=service_id,
        booking_date=day or next_monday(),
        booking_time=time,
        customer_details=CUSTOMER_DETAILS,
    )
