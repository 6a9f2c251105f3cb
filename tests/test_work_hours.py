from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

from wfm_api.services.work_hours import (
    aggregate_work_hours, attendance, day_minutes, pto_breakdown, shift_coverage, timesheet_totals,
)

_ids = iter(range(1, 10_000))


def e(user_id, kind, ts, location_id=1):
    return SimpleNamespace(id=next(_ids), user_id=user_id, entry_type=kind, timestamp=ts, location_id=location_id)


def at(day, hour, minute=0):
    return datetime(2026, 3, day, hour, minute)


def prof(name, rate=None):
    return SimpleNamespace(name=name, hourly_rate=rate)


def test_day_minutes_counts_open_session_until_now():
    rows = [e(1, "clock_in", at(2, 9)), e(1, "break_start", at(2, 12)), e(1, "break_end", at(2, 12, 30))]
    assert day_minutes(rows) == (0.0, 30.0)
    assert day_minutes(rows, now=at(2, 14)) == (270.0, 30.0)


def test_long_session_splits_regular_and_overtime():
    rows = [
        e(1, "clock_in", at(2, 9)),
        e(1, "break_start", at(2, 13)),
        e(1, "break_end", at(2, 13, 30)),
        e(1, "clock_out", at(2, 19)),
    ]
    out = aggregate_work_hours(rows, {1: prof("Ana", Decimal("20.00"))})
    assert len(out) == 1
    r = out[0]
    assert r["total_minutes"] == 600
    assert r["regular_minutes"] == 480
    assert r["overtime_minutes"] == 120
    assert r["break_minutes"] == 30
    assert r["overtime_hours"] == 2.0
    assert r["days_worked"] == 1
    assert r["hourly_rate"] == 20.0
    assert r["estimated_pay"] == 200.0
    assert r["sessions"][0]["duration_minutes"] == 600


def test_unclosed_session_has_zero_duration():
    out = aggregate_work_hours([e(2, "clock_in", at(3, 9))], {2: prof("Ben")})
    r = out[0]
    assert r["total_minutes"] == 0
    assert r["days_worked"] == 1
    assert r["estimated_pay"] is None
    assert r["sessions"] == [{"clock_in": "2026-03-03T09:00:00", "clock_out": None,
                              "duration_minutes": 0, "location_id": 1}]


def test_users_sorted_by_total_minutes():
    rows = [
        e(1, "clock_in", at(2, 9)), e(1, "clock_out", at(2, 10)),
        e(2, "clock_in", at(2, 9)), e(2, "clock_out", at(2, 15)),
    ]
    out = aggregate_work_hours(rows, {})
    assert [r["user_id"] for r in out] == [2, 1]
    assert out[0]["name"] is None


def _shift(day, user_id=7, location_id=1, status="scheduled", hours=8):
    return SimpleNamespace(
        user_id=user_id, location_id=location_id, status=status,
        start_time=at(day, 9), end_time=at(day, 9 + hours),
    )


def test_coverage_by_day_includes_empty_days():
    shifts = [_shift(10), _shift(10, user_id=None, status="open"), _shift(12)]
    res = shift_coverage(shifts, date(2026, 3, 10), date(2026, 3, 12))
    assert res["group_by"] == "day"
    assert [b["date"] for b in res["buckets"]] == ["2026-03-10", "2026-03-11", "2026-03-12"]

    first, empty = res["buckets"][0], res["buckets"][1]
    assert (first["total_shifts"], first["filled_shifts"], first["unfilled_shifts"]) == (2, 1, 1)
    assert first["coverage_percent"] == 50.0
    assert first["total_hours"] == 16
    assert empty["total_shifts"] == 0
    assert empty["coverage_percent"] == 100

    assert res["summary"]["total_shifts"] == 3
    assert res["summary"]["coverage_percent"] == 66.67


def test_coverage_by_location():
    shifts = [_shift(10, location_id=None), _shift(10, location_id=3), _shift(11, location_id=3),
              _shift(11, location_id=3, status="cancelled")]
    res = shift_coverage(shifts, date(2026, 3, 10), date(2026, 3, 11), group_by="location",
                         location_names={3: "Harbor"})
    assert [b["location_id"] for b in res["buckets"]] == [3, "no-location"]
    harbor = res["buckets"][0]
    assert harbor["location_name"] == "Harbor"
    assert harbor["total_shifts"] == 3
    assert harbor["filled_shifts"] == 2
    assert res["buckets"][1]["location_name"] is None


def test_timesheet_totals_daily_overtime():
    rows = [
        e(1, "clock_in", at(2, 8)), e(1, "break_start", at(2, 12)), e(1, "break_end", at(2, 13)),
        e(1, "clock_out", at(2, 18)),
        e(1, "clock_in", at(3, 9)), e(1, "clock_out", at(3, 13)),
    ]
    res = timesheet_totals(rows, overtime_threshold_hours=8)
    assert res["days"][0] == {"date": "2026-03-02", "hours": 9.0, "break_hours": 1.0, "overtime_hours": 1.0}
    assert res["days"][1]["hours"] == 4.0
    assert res["total_hours"] == 13.0
    assert res["overtime_hours"] == 1.0
    assert res["break_hours"] == 1.0


def test_overnight_session_stays_on_start_day():
    rows = [e(1, "clock_in", at(2, 22)), e(1, "clock_out", at(3, 6))]
    res = timesheet_totals(rows)
    assert [d["date"] for d in res["days"]] == ["2026-03-02"]
    assert res["total_hours"] == 8.0


# ---------- attendance ----------

def sh(user_id, start, hours=8, name="Ana"):
    user = SimpleNamespace(name=name) if user_id else None
    return SimpleNamespace(id=next(_ids), user_id=user_id, user=user, start_time=start,
                           end_time=start + timedelta(hours=hours))


def test_attendance_on_time_late_and_missed():
    shifts = [sh(1, at(2, 9)), sh(1, at(3, 9)), sh(1, at(4, 9)), sh(1, at(9, 9)), sh(None, at(2, 9))]
    entries = [
        e(1, "clock_in", at(2, 9, 5)),
        e(1, "clock_in", at(3, 9, 20)),
        e(1, "clock_in", at(3, 13)),
        e(1, "clock_out", at(4, 17)),
    ]
    out = attendance(shifts, entries, now=at(5, 12))
    assert len(out["employees"]) == 1
    row = out["employees"][0]
    assert (row["scheduled_shifts"], row["attended"], row["missed"]) == (4, 2, 1)
    assert (row["on_time"], row["late"], row["late_minutes_total"]) == (1, 1, 20)
    assert row["attendance_rate"] == 50
    assert row["on_time_rate"] == 50
    assert row["avg_late_minutes"] == 20
    assert out["totals"]["total_missed"] == 1
    assert out["totals"]["overall_on_time_rate"] == 50


def test_attendance_with_nothing_scheduled():
    out = attendance([], [e(1, "clock_in", at(2, 9))], now=at(5, 12))
    assert out["employees"] == []
    assert out["totals"]["overall_attendance_rate"] == 0


def test_pto_breakdown_counts_approved_days_only():
    kitchen = SimpleNamespace(id=4, name="Kitchen")
    cook = SimpleNamespace(department=kitchen)
    floater = SimpleNamespace(department=None)
    reqs = [
        SimpleNamespace(pto_type="vacation", status="approved", total_days=3, user=cook),
        SimpleNamespace(pto_type="vacation", status="pending", total_days=2, user=cook),
        SimpleNamespace(pto_type="sick", status="approved", total_days=1.5, user=floater),
    ]
    out = pto_breakdown(reqs)
    vac = next(t for t in out["by_type"] if t["type"] == "vacation")
    assert (vac["total_requests"], vac["approved"], vac["pending"], vac["total_days"]) == (2, 1, 1, 3.0)
    depts = {d["department_name"]: d for d in out["by_department"]}
    assert depts["Kitchen"]["approved_days"] == 3.0
    assert depts["Unassigned"]["department_id"] is None
    assert out["totals"]["total_approved_days"] == 4.5
    assert out["totals"]["total_requests"] == 3
