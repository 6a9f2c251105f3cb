from datetime import datetime

import pytest

from wfm_api.extensions import db
from wfm_api.models.audit import AuditLog
from wfm_api.models.time_entry import TimeEntry

from conftest import auth_headers, set_settings


@pytest.fixture
def worker(make_member):
    return make_member("employee")


@pytest.fixture
def punch(org, worker):
    e = TimeEntry(organization_id=org.id, user_id=worker.id, entry_type="clock_in",
                  timestamp=datetime(2026, 3, 2, 9, 0))
    db.session.add(e)
    db.session.commit()
    return e


def test_owner_can_move_own_punch_with_notes(client, worker, punch):
    h = auth_headers(worker)
    r = client.put(f"/api/v1/time-entries/{punch.id}", json={"timestamp": "2026-03-02T08:45:00"}, headers=h)
    assert r.status_code == 400
    assert r.get_json()["error"]["message"] == "Notes are required when editing time entries"

    r = client.put(f"/api/v1/time-entries/{punch.id}",
                   json={"timestamp": "2026-03-02T08:45:00", "notes": "bus was early"}, headers=h)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["timestamp"] == "2026-03-02T08:45:00"
    assert data["is_manual"] is True
    assert data["notes"] == "bus was early"


def test_notes_only_edit_stays_automatic(client, worker, punch):
    r = client.put(f"/api/v1/time-entries/{punch.id}", json={"notes": "ok"}, headers=auth_headers(worker))
    assert r.get_json()["data"]["is_manual"] is False


def test_member_edit_guards(client, org, make_member, worker, punch):
    other = make_member("employee")
    r = client.put(f"/api/v1/time-entries/{punch.id}", json={"notes": "mine now"}, headers=auth_headers(other))
    assert r.status_code == 403

    r = client.put(f"/api/v1/time-entries/{punch.id}", json={"status": "approved"}, headers=auth_headers(worker))
    assert r.status_code == 403
    assert r.get_json()["error"]["message"] == "Only managers can change the review status"

    worker.allow_time_edit = False
    db.session.commit()
    r = client.put(f"/api/v1/time-entries/{punch.id}",
                   json={"timestamp": "2026-03-02T08:00:00", "notes": "x"}, headers=auth_headers(worker))
    assert r.status_code == 403
    assert r.get_json()["error"]["message"] == "You are not allowed to edit time entries"

    worker.allow_time_edit = True
    db.session.commit()
    set_settings(org, "time_clock", allow_manual_time_entry=False)
    r = client.put(f"/api/v1/time-entries/{punch.id}",
                   json={"timestamp": "2026-03-02T08:00:00", "notes": "x"}, headers=auth_headers(worker))
    assert r.status_code == 403

    db.session.expire_all()
    assert db.session.get(TimeEntry, punch.id).timestamp == datetime(2026, 3, 2, 9, 0)


def test_manager_review_is_audited(client, make_member, punch):
    manager = make_member("manager")
    h = auth_headers(manager)
    r = client.put(f"/api/v1/time-entries/{punch.id}", json={"status": "approved"}, headers=h)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert (data["status"], data["approved_by"]) == ("approved", manager.id)
    assert data["approved_at"] is not None
    assert AuditLog.query.filter_by(table_name="time_entries", record_id=punch.id).count() == 1

    r = client.put(f"/api/v1/time-entries/{punch.id}", json={"status": "rejected"}, headers=h)
    assert r.get_json()["data"]["approved_by"] is None

    r = client.put(f"/api/v1/time-entries/{punch.id}", json={"status": "maybe"}, headers=h)
    assert r.status_code == 400
    r = client.put("/api/v1/time-entries/9999", json={"status": "approved"}, headers=h)
    assert r.status_code == 404


def test_bulk_status(client, org, make_member, worker, punch):
    manager = make_member("manager")
    reviewer = make_member("manager")
    later = TimeEntry(organization_id=org.id, user_id=worker.id, entry_type="clock_out",
                      timestamp=datetime(2026, 3, 2, 17, 0))
    db.session.add(later)
    db.session.commit()

    r = client.put("/api/v1/time-entries/bulk-status", json={"entry_ids": [punch.id], "status": "approved"},
                   headers=auth_headers(worker))
    assert r.status_code == 403

    h = auth_headers(manager)
    r = client.put("/api/v1/time-entries/bulk-status", json={"entry_ids": [], "status": "approved"}, headers=h)
    assert r.get_json()["error"]["message"] == "entry_ids is required and cannot be empty"
    r = client.put("/api/v1/time-entries/bulk-status", json={"entry_ids": [punch.id]}, headers=h)
    assert r.get_json()["error"]["message"] == "status is required"
    r = client.put("/api/v1/time-entries/bulk-status", json={"entry_ids": ["a"], "status": "approved"}, headers=h)
    assert r.status_code == 400

    r = client.put("/api/v1/time-entries/bulk-status",
                   json={"entry_ids": [punch.id, later.id, 9999], "status": "approved"}, headers=h)
    assert r.get_json()["data"] == {"updated": 2, "status": "approved"}

    r = client.get("/api/v1/time-entries?status=approved", headers=auth_headers(reviewer))
    assert len(r.get_json()["data"]) == 2
