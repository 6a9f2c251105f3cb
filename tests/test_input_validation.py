"""Malformed numbers and flags in request bodies come back as 400s, never 500s."""
from datetime import datetime, timedelta

import pytest

from wfm_api.extensions import db
from wfm_api.models.pto import PTOPolicy
from wfm_api.models.shift import Shift, ShiftSwap
from wfm_api.models.time_entry import TimeEntry
from wfm_api.models.timesheet import Timesheet

from conftest import auth_headers


def _message(r):
    return r.get_json()["error"]["message"]


@pytest.fixture
def admin(make_member):
    return make_member("admin")


@pytest.fixture
def worker(make_member):
    return make_member("employee")


def test_clock_in_ids(client, worker, location):
    h = auth_headers(worker)
    r = client.post("/api/v1/time-clock/clock-in", json={"shift_id": "abc", "location_id": location.id}, headers=h)
    assert r.status_code == 400
    assert _message(r) == "shift_id must be an integer"

    r = client.post("/api/v1/time-clock/clock-in", json={"location_id": "x1"}, headers=h)
    assert r.status_code == 400
    assert _message(r) == "location_id must be an integer"
    assert TimeEntry.query.count() == 0


def test_swap_target_id(client, make_member, make_shift, worker, location):
    start = datetime.utcnow().replace(microsecond=0) + timedelta(days=3)
    mine = make_shift(worker, start, start + timedelta(hours=8), location=location)
    r = client.post("/api/v1/shift-swaps", json={"requester_shift_id": mine.id, "target_id": "bob"},
                    headers=auth_headers(worker))
    assert r.status_code == 400
    assert _message(r) == "target_id must be an integer"
    assert ShiftSwap.query.count() == 0


@pytest.mark.parametrize("body, message", [
    ({"name": "Vacation", "pto_type": "vacation", "annual_allowance": "lots"}, "annual_allowance must be a number"),
    ({"name": "Vacation", "pto_type": "vacation", "min_notice_days": "soon"}, "min_notice_days must be an integer"),
    ({"name": "Vacation", "pto_type": "vacation", "requires_approval": "no"}, "requires_approval must be true or false"),
    ({"name": "Vacation", "pto_type": "vacation", "max_carryover": -1}, "max_carryover must not be negative"),
    ({"name": 7, "pto_type": "vacation"}, "name and pto_type are required"),
])
def test_pto_policy_fields(client, admin, body, message):
    r = client.post("/api/v1/pto/policies", json=body, headers=auth_headers(admin))
    assert r.status_code == 400
    assert _message(r) == message
    assert PTOPolicy.query.count() == 0


def test_pto_policy_update_keeps_row_on_bad_number(client, org, admin):
    p = PTOPolicy(organization_id=org.id, name="Sick", pto_type="sick", annual_allowance=5)
    db.session.add(p)
    db.session.commit()
    r = client.put(f"/api/v1/pto/policies/{p.id}", json={"annual_allowance": "lots"}, headers=auth_headers(admin))
    assert r.status_code == 400
    db.session.expire_all()
    assert db.session.get(PTOPolicy, p.id).annual_allowance == 5


def test_overwrite_existing_must_be_boolean(client, org, admin):
    db.session.add(PTOPolicy(organization_id=org.id, name="Sick", pto_type="sick", annual_allowance=5))
    db.session.commit()
    r = client.post("/api/v1/pto/balance/initialize", json={"overwrite_existing": "false"},
                    headers=auth_headers(admin))
    assert r.status_code == 400
    assert _message(r) == "overwrite_existing must be true or false"

    r = client.post("/api/v1/pto/balance/initialize", json={"overwrite_existing": False},
                    headers=auth_headers(admin))
    assert r.status_code == 200


@pytest.mark.parametrize("extra, message", [
    ({"user_id": "abc"}, "user_id must be an integer"),
    ({"location_id": "x1"}, "location_id must be an integer"),
    ({"break_minutes": "ten"}, "break_minutes must be an integer"),
    ({"break_minutes": -5}, "break_minutes cannot be negative"),
    ({"repeat": {"frequency": "daily", "count": "many"}}, "repeat.count must be an integer"),
    ({"is_published": "yes"}, "is_published must be true or false"),
    ({"department_id": "kitchen"}, "department_id must be an integer"),
    ({"department_id": 9999}, "Invalid department_id"),
])
def test_shift_fields(client, make_member, extra, message):
    manager = make_member("manager")
    body = {"start_time": "2026-03-02T09:00:00", "end_time": "2026-03-02T17:00:00", **extra}
    r = client.post("/api/v1/shifts", json=body, headers=auth_headers(manager))
    assert r.status_code == 400
    assert _message(r) == message
    assert Shift.query.count() == 0


def test_timesheet_fields(client, make_member, worker):
    manager = make_member("manager")
    period = {"period_start": "2026-03-01", "period_end": "2026-03-07"}
    r = client.post("/api/v1/timesheets", json={**period, "user_id": "abc"}, headers=auth_headers(manager))
    assert r.status_code == 400
    assert _message(r) == "user_id must be an integer"

    r = client.post("/api/v1/timesheets", json={**period, "total_hours": "forty"}, headers=auth_headers(worker))
    assert r.status_code == 400
    assert _message(r) == "total_hours must be a number"
    assert Timesheet.query.count() == 0

    r = client.post("/api/v1/timesheets", json={**period, "total_hours": 38.5}, headers=auth_headers(worker))
    ts_id = r.get_json()["data"]["id"]
    r = client.put(f"/api/v1/timesheets/{ts_id}", json={"overtime_hours": "some"}, headers=auth_headers(worker))
    assert r.status_code == 400
    r = client.put(f"/api/v1/timesheets/{ts_id}", json={"break_hours": -1}, headers=auth_headers(worker))
    assert _message(r) == "break_hours cannot be negative"


def test_chat_and_notification_ids(client, make_member, admin, worker):
    r = client.post("/api/v1/chat/rooms", json={"type": "group", "participant_ids": ["bob"]},
                    headers=auth_headers(admin))
    assert r.status_code == 400
    assert _message(r) == "participant_ids must be an integer"

    r = client.post("/api/v1/notifications", json={"user_id": "bob", "type": "note", "title": "Hi"},
                    headers=auth_headers(admin))
    assert r.status_code == 400
    assert _message(r) == "user_id must be an integer"


def test_login_organization_id(client, worker):
    r = client.post("/api/v1/auth/login", json={"email": worker.user.email, "password": "secret123",
                                                "organization_id": "acme"})
    assert r.status_code == 400
    assert _message(r) == "organization_id must be an integer"
