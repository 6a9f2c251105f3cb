from datetime import date, datetime

from wfm_api.extensions import db
from wfm_api.models.audit import AuditLog
from wfm_api.models.org import Organization
from wfm_api.models.shift import Shift
from wfm_api.services.shift_bulk import project_shift_times

from conftest import auth_headers


def test_project_keeps_wall_clock_times():
    s, e = project_shift_times(datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 17, 30), date(2026, 3, 9))
    assert s == datetime(2026, 3, 9, 9, 0)
    assert e == datetime(2026, 3, 9, 17, 30)


def test_project_overnight_rolls_end_to_next_day():
    s, e = project_shift_times(datetime(2026, 3, 2, 22, 0), datetime(2026, 3, 3, 6, 0), date(2026, 3, 9))
    assert s == datetime(2026, 3, 9, 22, 0)
    assert e == datetime(2026, 3, 10, 6, 0)


def test_bulk_copy_endpoint(client, make_member, make_shift, location):
    manager = make_member("manager")
    cook = make_member("employee")
    night = make_shift(cook, datetime(2026, 3, 2, 22, 0), datetime(2026, 3, 3, 6, 0), location=location,
                       published=True)

    r = client.post("/api/v1/shifts/bulk", headers=auth_headers(manager), json={
        "action": "copy", "shift_ids": [night.id, night.id], "target_dates": ["2026-03-09", "2026-03-10"],
    })
    assert r.status_code == 200
    assert r.get_json()["data"] == {"created": 2, "source_shifts": 1, "target_dates": 2}

    copies = Shift.query.filter(Shift.id != night.id).order_by(Shift.start_time.asc()).all()
    assert [(c.start_time, c.end_time) for c in copies] == [
        (datetime(2026, 3, 9, 22, 0), datetime(2026, 3, 10, 6, 0)),
        (datetime(2026, 3, 10, 22, 0), datetime(2026, 3, 11, 6, 0)),
    ]
    assert all(c.is_published is False and c.user_id == cook.id for c in copies)
    assert AuditLog.query.filter_by(action="bulk_copy").count() == 1


def test_bulk_publish_and_delete(client, make_member, make_shift):
    manager = make_member("manager")
    a = make_shift(None, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17), published=False, status="open")
    b = make_shift(None, datetime(2026, 3, 3, 9), datetime(2026, 3, 3, 17), published=False, status="open")
    h = auth_headers(manager)

    r = client.post("/api/v1/shifts/bulk", headers=h, json={"action": "publish", "shift_ids": [a.id, b.id]})
    assert r.get_json()["data"] == {"published": 2}
    assert db.session.get(Shift, a.id).is_published is True
    assert db.session.get(Shift, a.id).published_at is not None

    r = client.post("/api/v1/shifts/bulk", headers=h, json={"action": "delete", "shift_ids": [a.id]})
    assert r.get_json()["data"] == {"deleted": 1}
    assert Shift.query.count() == 1


def test_bulk_validation(client, make_member, make_shift):
    manager = make_member("manager")
    s = make_shift(None, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17), published=False)
    h = auth_headers(manager)

    r = client.post("/api/v1/shifts/bulk", headers=h, json={"action": "publish"})
    assert r.status_code == 400
    assert r.get_json()["error"]["message"] == "action and shift_ids are required"

    r = client.post("/api/v1/shifts/bulk", headers=h, json={"action": "archive", "shift_ids": [s.id]})
    assert r.get_json()["error"]["message"] == "Invalid action. Must be 'publish', 'copy', or 'delete'"

    r = client.post("/api/v1/shifts/bulk", headers=h, json={"action": "publish", "shift_ids": [s.id, 424242]})
    assert r.status_code == 404
    assert r.get_json()["error"]["message"] == "Some shifts not found or not accessible"
    assert db.session.get(Shift, s.id).is_published is False

    r = client.post("/api/v1/shifts/bulk", headers=h, json={"action": "copy", "shift_ids": [s.id]})
    assert r.status_code == 400


def test_bulk_requires_manage(client, make_member, make_shift):
    emp = make_member("employee")
    s = make_shift(emp, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17))
    r = client.post("/api/v1/shifts/bulk", headers=auth_headers(emp), json={"action": "delete", "shift_ids": [s.id]})
    assert r.status_code == 403


def test_bulk_ignores_other_organizations(client, make_member, make_shift):
    other = Organization(name="Elsewhere", slug="elsewhere", settings={})
    db.session.add(other)
    db.session.commit()
    outsider = make_member("manager", target_org=other)
    s = make_shift(None, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17))

    r = client.post("/api/v1/shifts/bulk", headers=auth_headers(outsider),
                    json={"action": "delete", "shift_ids": [s.id]})
    assert r.status_code == 404
    assert db.session.get(Shift, s.id) is not None


def test_create_weekly_series_and_delete_it(client, make_member, location):
    manager = make_member("manager")
    cook = make_member("employee")
    h = auth_headers(manager)
    r = client.post("/api/v1/shifts", headers=h, json={
        "user_id": cook.id, "location_id": location.id,
        "start_time": "2026-03-02T09:00:00", "end_time": "2026-03-02T17:00:00",
        "repeat": {"frequency": "weekly", "count": 4},
    })
    assert r.status_code == 201
    body = r.get_json()
    assert body["meta"]["created"] == 4
    series_id = body["meta"]["series_id"]
    assert [row["start_time"] for row in body["data"]][-1] == "2026-03-23T09:00:00"

    r = client.get(f"/api/v1/shifts/series/{body['data'][2]['id']}", headers=h)
    assert len(r.get_json()["data"]) == 4

    r = client.delete(f"/api/v1/shifts/series/{series_id}", headers=h)
    assert r.get_json()["data"] == {"series_id": series_id, "deleted": 4}
    assert Shift.query.count() == 0


def test_shift_length_follows_schedule_settings(client, make_member):
    manager = make_member("manager")
    r = client.post("/api/v1/shifts", headers=auth_headers(manager), json={
        "start_time": "2026-03-02T09:00:00", "end_time": "2026-03-02T10:00:00",
    })
    assert r.status_code == 400
    r = client.post("/api/v1/shifts", headers=auth_headers(manager), json={
        "start_time": "2026-03-02T09:00:00", "end_time": "2026-03-02T08:00:00",
    })
    assert r.get_json()["error"]["message"] == "end_time must be after start_time"


def test_employee_sees_only_published_or_own(client, make_member, make_shift):
    emp = make_member("employee")
    other = make_member("employee")
    make_shift(other, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17), published=True)
    make_shift(other, datetime(2026, 3, 3, 9), datetime(2026, 3, 3, 17), published=False)
    make_shift(emp, datetime(2026, 3, 4, 9), datetime(2026, 3, 4, 17), published=False)

    r = client.get("/api/v1/shifts?start_date=2026-03-01&end_date=2026-03-07", headers=auth_headers(emp))
    assert r.status_code == 200
    body = r.get_json()
    assert body["meta"]["total"] == 2
    assert {row["start_time"][:10] for row in body["data"]} == {"2026-03-02", "2026-03-04"}
