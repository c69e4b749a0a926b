"""Tests for the HTTP API, including error translation."""

import pytest
from fastapi.testclient import TestClient

from workjunction.api.app import create_app, status_for
from workjunction.errors import (
    IllegalTransition,
    SlotConflict,
    StoreUnavailable,
    Unauthenticated,
    WorkerUnavailable,
)

from tests.conftest import CUSTOMER_DETAILS, make_config, next_monday


def headers(actor_id: str, role: str) -> dict[str, str]:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


CUSTOMER = headers("cust-1", "CUSTOMER")
WORKER = headers("worker-1", "WORKER")


@pytest.fixture
def client(engine, session):
    app = create_app(engine=engine, config=make_config())
    with TestClient(app) as client:
        yield client


def booking_body(time: str = "09:00", customer_id: str = "cust-1") -> dict:
    return {
        "customerId": customer_id,
        "workerId": "worker-1",
        "workerServiceId": "svc-1",
        "bookingDate": next_monday().isoformat(),
        "bookingTime": time,
        "customerDetails": CUSTOMER_DETAILS,
    }


def create(client, time: str = "09:00") -> dict:
    response = client.post("/v1/bookings", json=booking_body(time), headers=CUSTOMER)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": True}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-Id": "REQ-fixed001"})
        assert response.headers["X-Request-Id"] == "REQ-fixed001"

    def test_request_id_generated(self, client):
        assert client.get("/health").headers["X-Request-Id"].startswith("REQ-")


class TestSlots:
    def test_free_slots(self, client):
        day = next_monday().isoformat()
        response = client.get("/v1/workers/worker-1/slots", params={"date": day})
        assert response.status_code == 200
        assert response.json() == {
            "workerId": "worker-1",
            "date": day,
            "slots": ["09:00", "10:00", "11:00"],
        }

    def test_booked_slot_hidden(self, client):
        create(client, "10:00")
        response = client.get(
            "/v1/workers/worker-1/slots", params={"date": next_monday().isoformat()}
        )
        assert response.json()["slots"] == ["09:00", "11:00"]

    def test_weekly_slots(self, client):
        response = client.get("/v1/workers/worker-1/slots/week", params={"start": next_monday().isoformat()})
        body = response.json()
        assert response.status_code == 200
        assert len(body["days"]) == 7
        assert body["days"][0]["dayName"] == "Monday"
        assert body["days"][1]["slots"] == []

    def test_bad_date(self, client):
        response = client.get("/v1/workers/worker-1/slots", params={"date": "tomorrow"})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    def test_past_date(self, client):
        response = client.get("/v1/workers/worker-1/slots", params={"date": "2024-01-01"})
        assert response.status_code == 400
        assert "in the past" in response.json()["message"]

    def test_weekly_past_start(self, client):
        response = client.get("/v1/workers/worker-1/slots/week", params={"start": "2024-01-01"})
        assert response.status_code == 400

    def test_weekly_zero_days(self, client):
        params = {"start": next_monday().isoformat(), "days": 0}
        response = client.get("/v1/workers/worker-1/slots/week", params=params)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    def test_unknown_worker(self, client):
        response = client.get("/v1/workers/nobody/slots", params={"date": next_monday().isoformat()})
        assert response.status_code == 404
        assert response.json() == {
            "success": False, "code": "NOT_FOUND", "message": "Worker nobody not found",
        }

    def test_availability_check(self, client):
        create(client, "09:00")
        body = {"bookingDate": next_monday().isoformat(), "bookingTime": "09:00"}
        response = client.post("/v1/workers/worker-1/availability/check", json=body)
        assert response.json()["available"] is False
        assert response.json()["reason"] == "SLOT_TAKEN"


class TestCreateBooking:
    def test_created(self, client):
        body = create(client)
        assert body["status"] == "PENDING"
        assert body["bookingTime"] == "09:00"
        assert body["customerDetails"]["name"] == "Asha Rao"
        assert body["payment"]["amount"] == pytest.approx(590.0)
        assert body["payment"]["status"] == "PENDING"
        assert body["timeline"]["requestedAt"] is not None
        assert body["review"] is None

    def test_missing_actor(self, client):
        response = client.post("/v1/bookings", json=booking_body())
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_unknown_role(self, client):
        response = client.post(
            "/v1/bookings", json=booking_body(), headers=headers("cust-1", "janitor")
        )
        assert response.status_code == 401

    def test_booking_for_someone_else(self, client):
        response = client.post(
            "/v1/bookings", json=booking_body(customer_id="cust-2"), headers=CUSTOMER
        )
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_double_booking(self, client):
        create(client)
        response = client.post("/v1/bookings", json=booking_body(), headers=CUSTOMER)
        assert response.status_code == 409
        assert response.json()["code"] == "SLOT_TAKEN"

    def test_unoffered_slot(self, client):
        response = client.post("/v1/bookings", json=booking_body("16:00"), headers=CUSTOMER)
        assert response.status_code == 409
        assert response.json()["code"] == "SLOT_NOT_OFFERED"

    def test_past_date(self, client):
        body = dict(booking_body(), bookingDate="2020-01-06")
        response = client.post("/v1/bookings", json=body, headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    def test_malformed_body(self, client):
        response = client.post("/v1/bookings", json={"customerId": "cust-1"}, headers=CUSTOMER)
        assert response.status_code == 422
        assert response.json()["success"] is False
        assert response.json()["code"] == "VALIDATION_FAILED"

    def test_busy_worker(self, client):
        client.patch(
            "/v1/workers/worker-1/availability-status", json={"status": "busy"}, headers=WORKER
        )
        response = client.post("/v1/bookings", json=booking_body(), headers=CUSTOMER)
        assert response.status_code == 409
        assert response.json()["code"] == "WORKER_UNAVAILABLE"


class TestBookingFlow:
    def test_full_lifecycle(self, client):
        booking_id = create(client)["id"]

        accepted = client.patch(
            f"/v1/bookings/{booking_id}/status", json={"status": "accepted"}, headers=WORKER
        )
        assert accepted.status_code == 200
        assert accepted.json()["timeline"]["acceptedAt"] is not None

        started = client.post(f"/v1/bookings/{booking_id}/start", headers=WORKER)
        assert started.json()["timeline"]["startedAt"] is not None

        finished = client.patch(
            f"/v1/bookings/{booking_id}/status",
            json={"status": "PAYMENT_PENDING", "remarks": "Tap replaced"},
            headers=WORKER,
        )
        assert finished.json()["status"] == "PAYMENT_PENDING"
        assert finished.json()["remarks"] == "Tap replaced"

        paid = client.patch(
            f"/v1/bookings/{booking_id}/payment",
            json={"paymentMethod": "UPI", "amount": 590.0, "transactionId": "UPI-77"},
            headers=CUSTOMER,
        )
        assert paid.status_code == 200
        assert paid.json()["status"] == "COMPLETED"
        assert paid.json()["payment"]["status"] == "COMPLETED"

        payment = client.get(f"/v1/bookings/{booking_id}/payment").json()
        assert payment["paymentStatus"] == "COMPLETED"
        assert payment["transactionId"] == "UPI-77"

        reviewed = client.post(
            f"/v1/bookings/{booking_id}/review",
            json={"rating": 5, "comment": "Quick and tidy"},
            headers=CUSTOMER,
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["review"]["rating"] == 5

    def test_illegal_transition_body(self, client):
        booking_id = create(client)["id"]
        response = client.patch(
            f"/v1/bookings/{booking_id}/status", json={"status": "COMPLETED"}, headers=WORKER
        )
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "ILLEGAL_TRANSITION"
        assert body["currentStatus"] == "PENDING"
        assert body["requestedStatus"] == "COMPLETED"

    def test_cancel_needs_reason(self, client):
        booking_id = create(client)["id"]
        response = client.patch(f"/v1/bookings/{booking_id}/cancel", json={}, headers=CUSTOMER)
        assert response.status_code == 400

    def test_cancel(self, client):
        booking_id = create(client)["id"]
        response = client.patch(
            f"/v1/bookings/{booking_id}/cancel", json={"reason": "Fixed it myself"}, headers=CUSTOMER
        )
        assert response.status_code == 200
        assert response.json()["cancellationReason"] == "Fixed it myself"

    def test_customer_cannot_accept(self, client):
        booking_id = create(client)["id"]
        response = client.patch(
            f"/v1/bookings/{booking_id}/status", json={"status": "ACCEPTED"}, headers=CUSTOMER
        )
        assert response.status_code == 403

    def test_unknown_booking(self, client):
        response = client.get("/v1/bookings/missing")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_payment_before_acceptance(self, client):
        booking_id = create(client)["id"]
        response = client.patch(
            f"/v1/bookings/{booking_id}/payment",
            json={"paymentMethod": "CASH", "amount": 590.0},
            headers=CUSTOMER,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "BOOKING_NOT_READY"


class TestListings:
    def test_customer_bookings(self, client):
        first = create(client, "09:00")
        create(client, "10:00")
        response = client.get("/v1/customers/cust-1/bookings", params={"limit": 1})
        body = response.json()
        assert body["total"] == 2
        assert body["pages"] == 2
        assert len(body["bookings"]) == 1
        assert body["bookings"][0]["id"] != first["id"]

    def test_worker_bookings_by_status(self, client):
        booking_id = create(client)["id"]
        create(client, "11:00")
        client.patch(f"/v1/bookings/{booking_id}/status", json={"status": "ACCEPTED"}, headers=WORKER)
        body = client.get("/v1/workers/worker-1/bookings", params={"status": "ACCEPTED"}).json()
        assert body["total"] == 1
        assert body["bookings"][0]["id"] == booking_id

    def test_bad_status_filter(self, client):
        response = client.get("/v1/workers/worker-1/bookings", params={"status": "LOST"})
        assert response.status_code == 400

    @pytest.mark.parametrize("path", [
        "/v1/customers/cust-1/bookings",
        "/v1/workers/worker-1/bookings",
    ])
    def test_zero_limit(self, client, path):
        response = client.get(path, params={"limit": 0})
        assert response.status_code == 400
        assert "limit" in response.json()["message"]


class TestScheduleEndpoints:
    def test_timetable_round_trip(self, client):
        response = client.put(
            "/v1/workers/worker-1/timetable",
            json={"timetable": {"friday": [{"start": "10:00", "end": "12:00"}]}},
            headers=WORKER,
        )
        assert response.status_code == 200
        timetable = response.json()["timetable"]
        assert timetable["Friday"] == [{"start": "10:00", "end": "12:00"}]
        assert timetable["Monday"] == []

    def test_timetable_requires_owner(self, client):
        response = client.put(
            "/v1/workers/worker-1/timetable",
            json={"timetable": {"Monday": [{"start": "10:00", "end": "12:00"}]}},
            headers=headers("worker-2", "WORKER"),
        )
        assert response.status_code == 403

    def test_non_availability_add_and_remove(self, client):
        day = next_monday().isoformat()
        created = client.post(
            "/v1/workers/worker-1/non-availability",
            json={"startDate": day, "endDate": day, "reason": "Festival"},
            headers=WORKER,
        )
        assert created.status_code == 201
        entry_id = created.json()["id"]

        slots = client.get("/v1/workers/worker-1/slots", params={"date": day}).json()
        assert slots["slots"] == []
        listed = client.get("/v1/workers/worker-1/availability").json()
        assert listed["nonAvailability"][0]["reason"] == "Festival"

        removed = client.delete(
            f"/v1/workers/worker-1/non-availability/{entry_id}", headers=WORKER
        )
        assert removed.status_code == 204
        slots = client.get("/v1/workers/worker-1/slots", params={"date": day}).json()
        assert slots["slots"] == ["09:00", "10:00", "11:00"]

    def test_availability_status(self, client):
        response = client.patch(
            "/v1/workers/worker-1/availability-status",
            json={"status": "off-duty"},
            headers=headers("agent-1", "SERVICE_AGENT"),
        )
        assert response.status_code == 200
        assert response.json()["availabilityStatus"] == "off-duty"


class TestErrorMapping:
    @pytest.mark.parametrize("error,status", [
        (Unauthenticated("x"), 401),
        (SlotConflict(), 409),
        (WorkerUnavailable("x"), 409),
        (IllegalTransition("PENDING", "COMPLETED"), 409),
        (StoreUnavailable("x"), 503),
    ])
    def test_status_codes(self, error, status):
        assert status_for(error) == status
