from datetime import datetime, date

from wfm_api.extensions import db
from wfm_api.models.pto import PTORequest
from wfm_api.models.time_entry import TimeEntry

from conftest import auth_headers


def _punch(org, profile, kind, ts):
    db.session.add(TimeEntry(organization_id=org.id, user_id=profile.id, entry_type=kind, timestamp=ts))


def test_work_hours_requires_dates(client, make_member):
    manager = make_member("manager")
    h = auth_headers(manager)
    r = client.get("/api/v1/reports/work-hours", headers=h)
    assert r.status_code == 400
    r = client.get("/api/v1/reports/work-hours?start_date=2026-03-10&end_date=2026-03-01", headers=h)
    assert r.status_code == 400
    r = client.get("/api/v1/reports/work-hours?start_date=2025-01-01&end_date=2026-03-01", headers=h)
    assert r.status_code == 400


def test_work_hours_totals(client, org, make_member):
    manager = make_member("manager")
    emp = make_member("employee", hourly_rate=20)
    _punch(org, emp, "clock_in", datetime(2026, 3, 2, 8, 0))
    _punch(org, emp, "break_start", datetime(2026, 3, 2, 12, 0))
    _punch(org, emp, "break_end", datetime(2026, 3, 2, 12, 30))
    _punch(org, emp, "clock_out", datetime(2026, 3, 2, 18, 0))
    _punch(org, emp, "clock_in", datetime(2026, 3, 3, 9, 0))
    _punch(org, emp, "clock_out", datetime(2026, 3, 3, 13, 0))
    db.session.commit()

    r = client.get("/api/v1/reports/work-hours?start_date=2026-03-01&end_date=2026-03-07",
                   headers=auth_headers(manager))
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["start_date"] == "2026-03-01"
    row = data["users"][0]
    assert row["user_id"] == emp.id
    assert row["total_minutes"] == 840
    assert row["overtime_minutes"] == 120
    assert row["break_minutes"] == 30
    assert row["days_worked"] == 2
    assert data["totals"]["users"] == 1
    assert data["totals"]["total_hours"] == 14.0
    assert data["totals"]["estimated_pay"] == 280.0


def test_employees_cannot_read_reports(client, make_member):
    emp = make_member("employee")
    r = client.get("/api/v1/reports/work-hours?start_date=2026-03-01&end_date=2026-03-07",
                   headers=auth_headers(emp))
    assert r.status_code == 403


def test_coverage_group_by(client, make_member, make_shift, location):
    manager = make_member("manager")
    emp = make_member("employee")
    make_shift(emp, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17), location=location)
    make_shift(None, datetime(2026, 3, 2, 12), datetime(2026, 3, 2, 20), location=location, status="open")
    h = auth_headers(manager)

    r = client.get("/api/v1/reports/shift-coverage?start_date=2026-03-01&end_date=2026-03-07&group_by=week",
                   headers=h)
    assert r.status_code == 400

    r = client.get("/api/v1/reports/shift-coverage?start_date=2026-03-01&end_date=2026-03-07&group_by=location",
                   headers=h)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["end_date"] == date(2026, 3, 7).isoformat()
    bucket = data["buckets"][0]
    assert bucket["location_name"] == "Downtown"
    assert bucket["total_shifts"] == 2
    assert bucket["filled_shifts"] == 1
    assert bucket["unfilled_shifts"] == 1
    assert bucket["total_hours"] == 16
    assert bucket["coverage_percent"] == 50.0


RANGE = "start_date=2026-03-01&end_date=2026-03-07"


def test_attendance_report(client, org, make_member, make_shift):
    manager = make_member("manager")
    cook = make_member("employee", department="Kitchen")
    host = make_member("employee", department="Floor")
    make_shift(cook, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17))
    make_shift(cook, datetime(2026, 3, 3, 9), datetime(2026, 3, 3, 17))
    make_shift(host, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17))
    make_shift(host, datetime(2026, 3, 4, 9), datetime(2026, 3, 4, 17), published=False)
    _punch(org, cook, "clock_in", datetime(2026, 3, 2, 9, 12))
    _punch(org, host, "clock_in", datetime(2026, 3, 2, 8, 55))
    db.session.commit()
    h = auth_headers(manager)

    r = client.get(f"/api/v1/reports/attendance?{RANGE}", headers=h)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["period"] == {"start_date": "2026-03-01", "end_date": "2026-03-07"}
    rows = {x["user_id"]: x for x in data["employees"]}
    assert (rows[cook.id]["late"], rows[cook.id]["missed"], rows[cook.id]["late_minutes_total"]) == (1, 1, 12)
    assert (rows[host.id]["scheduled_shifts"], rows[host.id]["on_time"]) == (1, 1)
    assert data["totals"]["total_scheduled"] == 3

    r = client.get(f"/api/v1/reports/attendance?{RANGE}&department_id={cook.department_id}", headers=h)
    assert [x["user_id"] for x in r.get_json()["data"]["employees"]] == [cook.id]
    r = client.get(f"/api/v1/reports/attendance?{RANGE}&user_id={host.id}", headers=h)
    assert [x["user_id"] for x in r.get_json()["data"]["employees"]] == [host.id]
    r = client.get(f"/api/v1/reports/attendance?{RANGE}&user_id=abc", headers=h)
    assert r.status_code == 400


def _pto(org, profile, status, days, start=date(2026, 3, 2), kind="vacation"):
    db.session.add(PTORequest(organization_id=org.id, user_id=profile.id, pto_type=kind, status=status,
                              start_date=start, end_date=start, total_days=days))


def test_pto_breakdown_report(client, org, make_member):
    manager = make_member("manager")
    cook = make_member("employee", department="Kitchen")
    host = make_member("employee")
    _pto(org, cook, "approved", 2)
    _pto(org, cook, "pending", 1, kind="sick")
    _pto(org, host, "approved", 1)
    _pto(org, host, "approved", 5, start=date(2026, 4, 1))
    db.session.commit()
    h = auth_headers(manager)

    r = client.get(f"/api/v1/reports/pto-breakdown?{RANGE}", headers=h)
    data = r.get_json()["data"]
    assert data["totals"]["total_requests"] == 3
    assert data["totals"]["total_approved_days"] == 3.0
    assert {t["type"] for t in data["by_type"]} == {"vacation", "sick"}

    r = client.get(f"/api/v1/reports/pto-breakdown?{RANGE}&department_id={cook.department_id}", headers=h)
    data = r.get_json()["data"]
    assert [d["department_name"] for d in data["by_department"]] == ["Kitchen"]
    assert data["totals"]["total_approved_days"] == 2.0


def test_summary_report(client, org, make_member, make_shift):
    manager = make_member("manager")
    emp = make_member("employee")
    make_shift(emp, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17))
    make_shift(emp, datetime(2026, 3, 20, 9), datetime(2026, 3, 20, 17))
    _punch(org, emp, "clock_in", datetime(2026, 3, 2, 9))
    _punch(org, emp, "clock_out", datetime(2026, 3, 2, 17))
    _pto(org, emp, "pending", 1)
    db.session.commit()

    r = client.get(f"/api/v1/reports/summary?{RANGE}", headers=auth_headers(manager))
    metrics = r.get_json()["data"]["metrics"]
    assert metrics["total_shifts"] == 1
    assert metrics["total_clock_ins"] == 1
    assert metrics["total_time_entries"] == 2
    assert metrics["active_employees"] == 2
    assert metrics["pto_requests"] == {"total": 1, "pending": 1, "approved": 0, "rejected": 0}
    assert metrics["shift_swaps"]["total"] == 0

    r = client.get(f"/api/v1/reports/summary?{RANGE}", headers=auth_headers(emp))
    assert r.status_code == 403
