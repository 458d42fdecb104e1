import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from barberbook.db import get_session, init_db
from barberbook.main import app

MONDAY = "2030-01-07"
TUESDAY = "2030-01-08"
SUNDAY = "2030-01-13"

WEEK = {str(day): {"open": "09:00", "close": "18:00"} for day in range(6)}


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email, role, password="password123"):
    resp = client.post("/users", json={"email": email, "password": password, "role": role})
    assert resp.status_code == 201, resp.text
    resp = client.post("/auth/login", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def shop(client):
    """A shop with one 30 minute service and a barber working 09:00-17:00 Mon-Fri."""
    staff = register(client, "staff@example.com", "staff")
    barber = register(client, "barber@example.com", "barber")
    alice = register(client, "alice@example.com", "client")
    bob = register(client, "bob@example.com", "client")

    resp = client.post(
        "/shops",
        json={"name": "Fade Street", "business_hours": WEEK, "cancellation_cutoff_hours": 48},
        headers=staff,
    )
    assert resp.status_code == 201, resp.text
    shop_id = resp.json()["id"]

    resp = client.post(
        f"/shops/{shop_id}/services",
        json={"name": "haircut", "category": "hair", "duration_minutes": 30},
        headers=staff,
    )
    assert resp.status_code == 201, resp.text
    service_id = resp.json()["id"]

    resp = client.post(f"/shops/{shop_id}/barbers", json={"email": "barber@example.com"}, headers=staff)
    assert resp.status_code == 201, resp.text
    barber_id = resp.json()["id"]

    resp = client.put(
        "/barbers/me/schedule",
        json={"working_days": [0, 1, 2, 3, 4], "day_start": "09:00", "day_end": "17:00"},
        headers=barber,
    )
    assert resp.status_code == 200, resp.text

    return {
        "shop_id": shop_id,
        "service_id": service_id,
        "barber_id": barber_id,
        "staff": staff,
        "barber": barber,
        "alice": alice,
        "bob": bob,
    }


def book(client, shop, who, on_date=MONDAY, start="10:00"):
    return client.post(
        "/appointments",
        json={
            "shop_id": shop["shop_id"],
            "barber_id": shop["barber_id"],
            "service_id": shop["service_id"],
            "date": on_date,
            "start_time": start,
        },
        headers=shop[who],
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_me_reports_barber_profile(client, shop):
    me = client.get("/me", headers=shop["barber"]).json()
    assert me["role"] == "barber"
    assert me["barber_id"] == shop["barber_id"]


def test_login_with_wrong_password(client):
    register(client, "carol@example.com", "client")
    resp = client.post("/auth/login", data={"username": "carol@example.com", "password": "wrong-password"})
    assert resp.status_code == 401


def test_duplicate_email(client):
    register(client, "dave@example.com", "client")
    resp = client.post("/users", json={"email": "Dave@example.com ", "password": "password123", "role": "client"})
    assert resp.status_code == 409


def test_only_staff_create_shops(client, shop):
    resp = client.post(
        "/shops",
        json={"name": "Rogue", "business_hours": WEEK, "cancellation_cutoff_hours": 24},
        headers=shop["alice"],
    )
    assert resp.status_code == 403


def test_barber_availability_follows_schedule(client, shop):
    resp = client.get(
        f"/barbers/{shop['barber_id']}/availability",
        params={"service_id": shop["service_id"], "date": MONDAY},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["reason"] is None
    assert body["available_starts"][0] == "09:00"
    assert body["available_starts"][-1] == "16:30"


def test_booking_flow(client, shop):
    resp = book(client, shop, "alice")
    assert resp.status_code == 201, resp.text
    appt = resp.json()
    assert appt["status"] == "pending"
    assert (appt["start_time"], appt["end_time"]) == ("10:00", "10:30")

    # slot is gone
    body = client.get(
        f"/shops/{shop['shop_id']}/availability",
        params={"service_id": shop["service_id"], "date": MONDAY, "barber_id": shop["barber_id"]},
    ).json()
    assert "10:00" not in body["available_starts"]
    assert "09:30" in body["available_starts"]
    assert "10:30" in body["available_starts"]

    resp = book(client, shop, "bob")
    assert resp.status_code == 409
    assert resp.json()["code"] == "slot_unavailable"

    resp = client.post(f"/appointments/{appt['id']}/confirm", headers=shop["alice"])
    assert resp.status_code == 403
    assert resp.json()["code"] == "not_authorized"

    resp = client.post(f"/appointments/{appt['id']}/confirm", headers=shop["barber"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "confirmed"

    resp = client.post(f"/appointments/{appt['id']}/confirm", headers=shop["barber"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_state_transition"

    resp = client.post(f"/appointments/{appt['id']}/cancel", headers=shop["alice"])
    assert resp.status_code == 200
    cancelled = resp.json()
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancelled_by"] == "customer"
    assert cancelled["cancellation_reason"] == "customer_request"

    # slot is open again
    assert book(client, shop, "bob").status_code == 201


def test_outside_hours_and_unknown_action(client, shop):
    resp = book(client, shop, "alice", start="17:00")
    assert resp.status_code == 409
    assert resp.json()["code"] == "out_of_hours"

    created = book(client, shop, "alice").json()
    resp = client.post(f"/appointments/{created['id']}/teleport", headers=shop["barber"])
    assert resp.status_code == 404


def test_bad_start_time_is_rejected(client, shop):
    resp = book(client, shop, "alice", start="25:00")
    assert resp.status_code == 422


def test_barber_cancel_needs_reason(client, shop):
    created = book(client, shop, "alice").json()

    resp = client.post(f"/appointments/{created['id']}/cancel", headers=shop["barber"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "policy_violation"

    resp = client.post(
        f"/appointments/{created['id']}/cancel",
        json={"reason": "barber_unavailable", "notes": "flu"},
        headers=shop["barber"],
    )
    assert resp.status_code == 200
    assert resp.json()["cancellation_reason"] == "barber_unavailable"


def test_reschedule(client, shop):
    first = book(client, shop, "alice", start="11:00").json()
    book(client, shop, "bob", start="11:30")

    resp = client.patch(
        f"/appointments/{first['id']}/reschedule",
        json={"date": MONDAY, "start_time": "11:30"},
        headers=shop["alice"],
    )
    assert resp.status_code == 409

    resp = client.patch(
        f"/appointments/{first['id']}/reschedule",
        json={"date": TUESDAY, "start_time": "14:00"},
        headers=shop["bob"],
    )
    assert resp.status_code == 403

    resp = client.patch(
        f"/appointments/{first['id']}/reschedule",
        json={"date": TUESDAY, "start_time": "14:00"},
        headers=shop["alice"],
    )
    assert resp.status_code == 200
    assert resp.json()["date"] == TUESDAY
    assert resp.json()["start_time"] == "14:00"


def test_viewing_appointments(client, shop):
    created = book(client, shop, "alice").json()

    assert client.get(f"/appointments/{created['id']}", headers=shop["alice"]).status_code == 200
    assert client.get(f"/appointments/{created['id']}", headers=shop["bob"]).status_code == 403
    assert client.get(f"/appointments/{created['id']}", headers=shop["barber"]).status_code == 200
    assert client.get("/appointments/999", headers=shop["alice"]).status_code == 404

    mine = client.get("/clients/me/appointments", headers=shop["alice"]).json()
    assert [a["id"] for a in mine] == [created["id"]]

    day = client.get("/barbers/me/appointments", params={"on_date": MONDAY}, headers=shop["barber"]).json()
    assert [a["start_time"] for a in day] == ["10:00"]

    resp = client.get(
        "/barbers/me/appointments", params={"on_date": MONDAY, "status": "bogus"}, headers=shop["barber"],
    )
    assert resp.status_code == 422


def test_leave_and_closed_days(client, shop):
    resp = client.post(
        "/barbers/me/leave",
        json={"start_date": TUESDAY, "end_date": TUESDAY, "reason": "dentist"},
        headers=shop["barber"],
    )
    assert resp.status_code == 201, resp.text
    leave = resp.json()
    assert leave["approved"] is False

    params = {"service_id": shop["service_id"], "barber_id": shop["barber_id"]}
    pending = client.get(f"/shops/{shop['shop_id']}/availability", params={**params, "date": TUESDAY}).json()
    assert pending["reason"] is None

    approve = f"/barbers/{shop['barber_id']}/leave/{leave['id']}/approve"
    assert client.post(approve, headers=shop["barber"]).status_code == 403
    resp = client.post(approve, headers=shop["staff"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["approved"] is True

    on_leave = client.get(f"/shops/{shop['shop_id']}/availability", params={**params, "date": TUESDAY}).json()
    assert on_leave["reason"] == "provider on leave"
    assert on_leave["slots"] == []

    closed = client.get(f"/shops/{shop['shop_id']}/availability", params={**params, "date": SUNDAY}).json()
    assert closed["reason"] == "shop closed"
    assert closed["slots"] == []

    resp = book(client, shop, "alice", on_date=TUESDAY)
    assert resp.status_code == 409
    assert resp.json()["code"] == "provider_on_leave"


def test_lunch_break_block(client, shop):
    resp = client.put(
        "/barbers/me/blocks",
        json={"date": MONDAY, "start_time": "12:00", "kind": "lunch_break"},
        headers=shop["barber"],
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["end_time"] == "12:30"

    body = client.get(
        f"/barbers/{shop['barber_id']}/availability",
        params={"service_id": shop["service_id"], "date": MONDAY},
    ).json()
    assert "12:00" not in body["available_starts"]
    assert "12:30" in body["available_starts"]

    resp = client.put(
        "/barbers/me/blocks",
        json={"date": MONDAY, "start_time": "12:15", "kind": "lunch_break"},
        headers=shop["barber"],
    )
    assert resp.status_code == 409


def test_stats(client, shop):
    first = book(client, shop, "alice", start="10:00").json()
    book(client, shop, "bob", start="11:00")
    client.post(f"/appointments/{first['id']}/cancel", headers=shop["alice"])

    resp = client.get(
        f"/barbers/{shop['barber_id']}/stats",
        params={"start_date": MONDAY, "end_date": MONDAY},
        headers=shop["barber"],
    )
    assert resp.status_code == 200
    counts = resp.json()["counts"]
    assert counts["total"] == 2
    assert counts["cancelled"] == 1
    assert counts["pending"] == 1

    resp = client.get(
        f"/barbers/{shop['barber_id']}/stats",
        params={"start_date": MONDAY, "end_date": MONDAY},
        headers=shop["alice"],
    )
    assert resp.status_code == 403


def test_leave_over_booked_appointment_is_refused(client, shop):
    created = book(client, shop, "alice").json()

    leave = {"start_date": MONDAY, "end_date": MONDAY, "reason": "wedding"}
    resp = client.post("/barbers/me/leave", json=leave, headers=shop["barber"])
    assert resp.status_code == 409
    assert client.get(f"/appointments/{created['id']}", headers=shop["alice"]).json()["status"] == "pending"

    client.post(f"/appointments/{created['id']}/cancel", headers=shop["alice"])
    resp = client.post("/barbers/me/leave", json=leave, headers=shop["barber"])
    assert resp.status_code == 201, resp.text


def test_leave_approval_rechecks_bookings(client, shop):
    resp = client.post(
        "/barbers/me/leave",
        json={"start_date": TUESDAY, "end_date": TUESDAY},
        headers=shop["barber"],
    )
    leave_id = resp.json()["id"]

    # still bookable until approved
    assert book(client, shop, "alice", on_date=TUESDAY).status_code == 201

    resp = client.post(f"/barbers/{shop['barber_id']}/leave/{leave_id}/approve", headers=shop["staff"])
    assert resp.status_code == 409

    resp = client.post(f"/barbers/{shop['barber_id']}/leave/999/approve", headers=shop["staff"])
    assert resp.status_code == 404


def test_schedule_change_that_strands_bookings(client, shop):
    book(client, shop, "alice", start="16:00")

    narrower = {"working_days": [0, 1, 2, 3, 4], "day_start": "09:00", "day_end": "12:00"}
    resp = client.put("/barbers/me/schedule", json=narrower, headers=shop["barber"])
    assert resp.status_code == 409

    no_mondays = {"working_days": [1, 2, 3, 4], "day_start": "09:00", "day_end": "17:00"}
    resp = client.put("/barbers/me/schedule", json=no_mondays, headers=shop["barber"])
    assert resp.status_code == 409

    schedule = client.get("/barbers/me/schedule", headers=shop["barber"]).json()
    assert schedule["day_end"] == "17:00:00"

    wider = {"working_days": [0, 1, 2, 3, 4, 5], "day_start": "09:00", "day_end": "18:00"}
    resp = client.put("/barbers/me/schedule", json=wider, headers=shop["barber"])
    assert resp.status_code == 200, resp.text


def test_block_start_must_be_on_the_quarter_hour(client, shop):
    resp = client.put(
        "/barbers/me/blocks",
        json={"date": MONDAY, "start_time": "12:10", "kind": "lunch_break"},
        headers=shop["barber"],
    )
    assert resp.status_code == 422

    body = client.get(
        f"/barbers/{shop['barber_id']}/availability",
        params={"service_id": shop["service_id"], "date": MONDAY},
    ).json()
    assert all(start.endswith((":00", ":30")) for start in body["available_starts"])


def test_block_over_booked_appointment(client, shop):
    book(client, shop, "alice", start="12:00")
    resp = client.put(
        "/barbers/me/blocks",
        json={"date": MONDAY, "start_time": "12:15", "kind": "lunch_break"},
        headers=shop["barber"],
    )
    assert resp.status_code == 409

    resp = client.put(
        "/barbers/me/blocks",
        json={"date": MONDAY, "start_time": "09:00", "kind": "day_off"},
        headers=shop["barber"],
    )
    assert resp.status_code == 409


def test_barber_not_taking_bookings(client, shop):
    resp = client.patch("/barbers/me", json={"is_available": False}, headers=shop["barber"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_available"] is False

    resp = book(client, shop, "alice")
    assert resp.status_code == 409
    assert resp.json()["code"] == "slot_unavailable"

    body = client.get(
        f"/barbers/{shop['barber_id']}/availability",
        params={"service_id": shop["service_id"], "date": MONDAY},
    ).json()
    assert body["reason"] == "provider not taking bookings"
    assert body["slots"] == []

    assert client.patch("/barbers/me", json={"is_available": True}, headers=shop["alice"]).status_code == 403


def test_auto_confirm(client, shop):
    resp = client.patch("/barbers/me", json={"auto_confirm": True}, headers=shop["barber"])
    assert resp.json()["auto_confirm"] is True
    assert resp.json()["is_available"] is True

    resp = book(client, shop, "alice")
    assert resp.status_code == 201, resp.text
    assert resp.json()["status"] == "confirmed"


def test_barber_offered_services(client, shop):
    resp = client.post(
        f"/shops/{shop['shop_id']}/services",
        json={"name": "beard trim", "category": "beard", "duration_minutes": 15},
        headers=shop["staff"],
    )
    beard_id = resp.json()["id"]

    resp = client.put("/barbers/me/services", json={"service_ids": [beard_id]}, headers=shop["barber"])
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"service_ids": [beard_id]}

    resp = book(client, shop, "alice")
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"

    body = client.get(
        f"/barbers/{shop['barber_id']}/availability",
        params={"service_id": shop["service_id"], "date": MONDAY},
    ).json()
    assert body["reason"] == "service not offered by provider"

    resp = client.put("/barbers/me/services", json={"service_ids": [999]}, headers=shop["barber"])
    assert resp.status_code == 422

    # an empty list goes back to every service of the shop
    client.put("/barbers/me/services", json={"service_ids": []}, headers=shop["barber"])
    assert book(client, shop, "alice").status_code == 201


def test_retired_service(client, shop):
    url = f"/shops/{shop['shop_id']}/services/{shop['service_id']}"
    assert client.patch(url, json={"is_active": False}, headers=shop["alice"]).status_code == 403

    resp = client.patch(url, json={"is_active": False}, headers=shop["staff"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_active"] is False

    assert book(client, shop, "alice").status_code == 422
    resp = client.get(
        f"/shops/{shop['shop_id']}/availability",
        params={"service_id": shop["service_id"], "date": MONDAY},
    )
    assert resp.status_code == 422

    client.patch(url, json={"is_active": True}, headers=shop["staff"])
    assert book(client, shop, "alice").status_code == 201


def test_service_from_another_shop_is_refused(client, shop):
    resp = client.post(
        "/shops",
        json={"name": "Across Town", "business_hours": WEEK, "cancellation_cutoff_hours": 24},
        headers=shop["staff"],
    )
    other_shop = resp.json()["id"]
    resp = client.post(
        f"/shops/{other_shop}/services",
        json={"name": "haircut", "duration_minutes": 30},
        headers=shop["staff"],
    )
    foreign_service = resp.json()["id"]

    resp = client.post(
        "/appointments",
        json={
            "shop_id": shop["shop_id"],
            "barber_id": shop["barber_id"],
            "service_id": foreign_service,
            "date": MONDAY,
            "start_time": "10:00",
        },
        headers=shop["alice"],
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"
