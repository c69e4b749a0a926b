"""Concurrent requests against a file-backed database."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import select

from workjunction.errors import BookingRejected, RejectionReason, SlotConflict
from workjunction.lifecycle.booking_lifecycle import BookingLifecycle
from workjunction.lifecycle.payment_recorder import PaymentRecorder
from workjunction.lifecycle.state_machine import BookingStatus
from workjunction.schemas.customer_schema import Actor, ActorRole
from workjunction.store.database import build_engine, build_session_factory, init_db
from workjunction.store.models import Booking
from workjunction.store.repository import BookingRepository, WorkerRepository

from tests.conftest import make_booking, make_config, seed_marketplace

ATTEMPTS = 8


@pytest.fixture
def race_db(tmp_path):
    config = make_config(f"sqlite:///{tmp_path / 'race.db'}")
    engine = build_engine(config.store.database_url, echo=False)
    init_db(engine)
    factory = build_session_factory(engine)
    with factory() as session:
        seed_marketplace(session)
    yield config, factory
    engine.dispose()


def lifecycle_for(session, config) -> BookingLifecycle:
    return BookingLifecycle(
        BookingRepository(session, retry_attempts=5, retry_backoff_sec=0.01),
        WorkerRepository(session, retry_attempts=5, retry_backoff_sec=0.01),
        config=config.booking,
    )


class TestDoubleBooking:
    def test_only_one_concurrent_create_wins(self, race_db):
        config, factory = race_db
        barrier = threading.Barrier(ATTEMPTS)

        def attempt(n: int) -> str:
            with factory() as session:
                lifecycle = lifecycle_for(session, config)
                barrier.wait()
                try:
                    make_booking(lifecycle, time="10:00", customer_id=f"cust-{n}")
                except SlotConflict:
                    return "conflict"
                return "booked"

        with ThreadPoolExecutor(max_workers=ATTEMPTS) as pool:
            outcomes = list(pool.map(attempt, range(ATTEMPTS)))

        assert outcomes.count("booked") == 1
        assert outcomes.count("conflict") == ATTEMPTS - 1

        with factory() as session:
            live = session.scalars(
                select(Booking).where(Booking.status == BookingStatus.PENDING)
            ).all()
        assert len(live) == 1
        assert live[0].booking_time == "10:00"


class TestInterleavedPayments:
    @pytest.fixture
    def accepted_id(self, race_db):
        config, factory = race_db
        with factory() as session:
            lifecycle = lifecycle_for(session, config)
            booking = make_booking(lifecycle)
            lifecycle.transition(
                booking.id, Actor(id="worker-1", role=ActorRole.WORKER), "ACCEPTED"
            )
            return booking.id

    def _record_between_read_and_write(self, race_db, booking_id, monkeypatch, first, second):
        """Run ``second`` to completion after ``first`` has read the booking but before it writes."""
        config, factory = race_db
        with factory() as session_a, factory() as session_b:
            recorder_a = PaymentRecorder(lifecycle_for(session_a, config))
            recorder_b = PaymentRecorder(lifecycle_for(session_b, config))
            write = recorder_a.bookings.update_if_status

            def pay_elsewhere_first(*args, **kwargs):
                recorder_b.record_payment(booking_id, *second)
                return write(*args, **kwargs)

            monkeypatch.setattr(recorder_a.bookings, "update_if_status", pay_elsewhere_first)
            return recorder_a.record_payment(booking_id, *first)

    def test_conflicting_payment_refused(self, race_db, accepted_id, monkeypatch):
        with pytest.raises(BookingRejected) as exc_info:
            self._record_between_read_and_write(
                race_db, accepted_id, monkeypatch, ("CASH", 999.0), ("UPI", 590.0)
            )
        assert exc_info.value.reason == RejectionReason.PAYMENT_ALREADY_RECORDED

        _, factory = race_db
        with factory() as session:
            stored = session.get(Booking, accepted_id)
        assert stored.payment_method == "UPI"
        assert stored.payment_amount == pytest.approx(590.0)

    def test_identical_payment_is_a_repeat(self, race_db, accepted_id, monkeypatch):
        booking = self._record_between_read_and_write(
            race_db, accepted_id, monkeypatch, ("UPI", 590.0), ("UPI", 590.0)
        )
        assert booking.payment_status == "COMPLETED"
        assert booking.payment_method == "UPI"
        assert booking.status == BookingStatus.ACCEPTED
