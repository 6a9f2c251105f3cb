# wfm_api/services/work_hours.py
"""
Aggregation over time entries and shifts: per-user work hours, shift
coverage and per-day timesheet totals.
"""
from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

REGULAR_SESSION_MINUTES = 480


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60.0


def day_minutes(entries, now=None):
    """
    (net worked minutes, break minutes) for one worker's entries, oldest
    first. With `now`, an open session / open break counts up to now.
    """
    worked = breaks = 0.0
    opened = brk = None
    for e in entries:
        t = e.entry_type
        if t == "clock_in":
            opened = e.timestamp
        elif t == "clock_out" and opened is not None:
            worked += _minutes(e.timestamp - opened)
            opened = None
        elif t == "break_start":
            brk = e.timestamp
        elif t == "break_end" and brk is not None:
            breaks += _minutes(e.timestamp - brk)
            brk = None
    if now is not None:
        if opened is not None:
            worked += _minutes(now - opened)
        if brk is not None:
            breaks += _minutes(now - brk)
    return max(worked - breaks, 0.0), breaks


def aggregate_work_hours(entries: Iterable, profiles: Dict[int, object]) -> List[dict]:
    """
    Pair clock_in/clock_out per user into sessions.

    Each closed session contributes whole minutes; the first 480 minutes of a
    session are regular and the rest overtime (per session, not per day).
    An unclosed session is listed with clock_out None and duration 0.
    break_start/break_end pairs are summed separately.
    """
    by_user = defaultdict(list)
    for e in sorted(entries, key=lambda x: (x.timestamp, x.id or 0)):
        by_user[e.user_id].append(e)

    out = []
    for uid, rows in by_user.items():
        sessions = []
        regular = overtime = break_minutes = 0
        days = set()
        open_in = brk = None
        for e in rows:
            if e.entry_type == "clock_in":
                if open_in is not None:
                    sessions.append(_session(open_in, None, 0))
                open_in = e
                days.add(e.timestamp.date())
            elif e.entry_type == "clock_out":
                if open_in is None:
                    continue
                d = int(_minutes(e.timestamp - open_in.timestamp))
                sessions.append(_session(open_in, e, d))
                regular += min(d, REGULAR_SESSION_MINUTES)
                if d > REGULAR_SESSION_MINUTES:
                    overtime += d - REGULAR_SESSION_MINUTES
                open_in = None
            elif e.entry_type == "break_start":
                brk = e
            elif e.entry_type == "break_end" and brk is not None:
                break_minutes += int(_minutes(e.timestamp - brk.timestamp))
                brk = None
        if open_in is not None:
            sessions.append(_session(open_in, None, 0))

        prof = profiles.get(uid)
        rate = float(prof.hourly_rate) if prof is not None and prof.hourly_rate is not None else None
        total = regular + overtime
        out.append({
            "user_id": uid,
            "name": prof.name if prof is not None else None,
            "total_minutes": total,
            "regular_minutes": regular,
            "overtime_minutes": overtime,
            "break_minutes": break_minutes,
            "total_hours": round(total / 60.0, 2),
            "regular_hours": round(regular / 60.0, 2),
            "overtime_hours": round(overtime / 60.0, 2),
            "days_worked": len(days),
            "hourly_rate": rate,
            "estimated_pay": round(total / 60.0 * rate, 2) if rate is not None else None,
            "sessions": sessions,
        })

    out.sort(key=lambda r: r["total_minutes"], reverse=True)
    return out


def _session(cin, cout, duration):
    return {
        "clock_in": cin.timestamp.isoformat(),
        "clock_out": cout.timestamp.isoformat() if cout is not None else None,
        "duration_minutes": duration,
        "location_id": cin.location_id,
    }


# ---------- coverage ----------

def _is_filled(s) -> bool:
    return s.user_id is not None and s.status != "cancelled"


def _is_unfilled(s) -> bool:
    return s.user_id is None or s.status == "open"


def _bucket(shifts) -> dict:
    total = len(shifts)
    filled = sum(1 for s in shifts if _is_filled(s))
    unfilled = sum(1 for s in shifts if _is_unfilled(s))
    hours = sum((s.end_time - s.start_time).total_seconds() for s in shifts) / 3600.0
    return {
        "total_shifts": total,
        "filled_shifts": filled,
        "unfilled_shifts": unfilled,
        "total_hours": int(hours),
        "coverage_percent": round(filled / total * 100, 2) if total else 100,
    }


def shift_coverage(shifts, start_date, end_date, group_by="day", location_names: Optional[dict] = None) -> dict:
    shifts = list(shifts)
    location_names = location_names or {}
    buckets = []
    if group_by == "location":
        grouped = defaultdict(list)
        for s in shifts:
            grouped[s.location_id if s.location_id is not None else "no-location"].append(s)
        for key, rows in grouped.items():
            b = _bucket(rows)
            b["location_id"] = key
            b["location_name"] = location_names.get(key) if key != "no-location" else None
            buckets.append(b)
        buckets.sort(key=lambda b: b["total_shifts"], reverse=True)
    else:
        grouped = defaultdict(list)
        for s in shifts:
            grouped[s.start_time.date()].append(s)
        day = start_date
        while day <= end_date:
            b = _bucket(grouped.get(day, []))
            b["date"] = day.isoformat()
            buckets.append(b)
            day += timedelta(days=1)

    return {"group_by": group_by, "buckets": buckets, "summary": _bucket(shifts)}


# ---------- timesheets ----------

def timesheet_totals(entries, overtime_threshold_hours=8) -> dict:
    """
    Per calendar day of clock-in: worked hours net of breaks; hours above
    the daily threshold are overtime.
    """
    by_day = defaultdict(list)
    current_day = None
    for e in sorted(entries, key=lambda x: (x.timestamp, x.id or 0)):
        # a session belongs to the day it started on
        if e.entry_type == "clock_in" or current_day is None:
            current_day = e.timestamp.date()
        by_day[current_day].append(e)

    days = []
    total = breaks = overtime = 0.0
    for day in sorted(by_day):
        net, brk = day_minutes(by_day[day])
        hours = net / 60.0
        ot = max(hours - overtime_threshold_hours, 0.0)
        days.append({
            "date": day.isoformat(),
            "hours": round(hours, 2),
            "break_hours": round(brk / 60.0, 2),
            "overtime_hours": round(ot, 2),
        })
        total += hours
        breaks += brk / 60.0
        overtime += ot
    return {
        "total_hours": round(total, 2),
        "break_hours": round(breaks, 2),
        "overtime_hours": round(overtime, 2),
        "days": days,
    }


# ---------- attendance / PTO breakdown ----------

LATE_THRESHOLD_MINUTES = 5


def _pct(part, whole):
    return round(part * 100.0 / whole) if whole else 0


def first_clock_ins(entries) -> Dict[tuple, object]:
    """(user_id, date) -> earliest clock_in timestamp that day."""
    out = {}
    for e in entries:
        if e.entry_type != "clock_in":
            continue
        key = (e.user_id, e.timestamp.date())
        if key not in out or e.timestamp < out[key]:
            out[key] = e.timestamp
    return out


def attendance(shifts, entries, now) -> dict:
    """
    Match each assigned shift against the worker's first clock-in on the
    shift's start date. A clock-in more than LATE_THRESHOLD_MINUTES after
    the start is late; a past shift with no clock-in is missed.
    """
    first_in = first_clock_ins(entries)
    users = {}
    for s in sorted(shifts, key=lambda x: (x.start_time, x.id)):
        if s.user_id is None:
            continue
        row = users.get(s.user_id)
        if row is None:
            row = users[s.user_id] = {
                "user_id": s.user_id,
                "full_name": (s.user.name if s.user else None) or "Unknown",
                "scheduled_shifts": 0,
                "attended": 0,
                "missed": 0,
                "on_time": 0,
                "late": 0,
                "late_minutes_total": 0,
            }
        row["scheduled_shifts"] += 1
        clock_in = first_in.get((s.user_id, s.start_time.date()))
        if clock_in is not None:
            row["attended"] += 1
            late = max(0.0, _minutes(clock_in - s.start_time))
            if late <= LATE_THRESHOLD_MINUTES:
                row["on_time"] += 1
            else:
                row["late"] += 1
                row["late_minutes_total"] += round(late)
        elif s.start_time < now:
            row["missed"] += 1

    employees = []
    for row in users.values():
        row["attendance_rate"] = _pct(row["attended"], row["scheduled_shifts"])
        row["on_time_rate"] = _pct(row["on_time"], row["attended"])
        row["avg_late_minutes"] = round(row["late_minutes_total"] / row["late"]) if row["late"] else 0
        employees.append(row)

    scheduled = sum(r["scheduled_shifts"] for r in employees)
    attended = sum(r["attended"] for r in employees)
    late = sum(r["late"] for r in employees)
    totals = {
        "total_scheduled": scheduled,
        "total_attended": attended,
        "total_missed": sum(r["missed"] for r in employees),
        "total_late": late,
        "overall_attendance_rate": _pct(attended, scheduled),
        "overall_on_time_rate": _pct(attended - late, attended),
    }
    return {"employees": employees, "totals": totals}


def pto_breakdown(requests) -> dict:
    """Requests grouped by PTO type and by the requester's department; days count approved requests only."""
    by_type, by_dept = {}, {}
    totals = {"total_requests": 0, "approved": 0, "pending": 0, "rejected": 0, "total_approved_days": 0.0}
    for r in requests:
        days = float(r.total_days or 0)
        approved = r.status == "approved"

        t = by_type.setdefault(r.pto_type or "other", {
            "type": r.pto_type or "other", "total_requests": 0,
            "approved": 0, "pending": 0, "rejected": 0, "total_days": 0.0,
        })
        t["total_requests"] += 1
        if r.status in ("approved", "pending", "rejected"):
            t[r.status] += 1
            totals[r.status] += 1
        if approved:
            t["total_days"] += days
            totals["total_approved_days"] += days

        dept = r.user.department if r.user is not None else None
        d = by_dept.setdefault(dept.id if dept else None, {
            "department_id": dept.id if dept else None,
            "department_name": dept.name if dept else "Unassigned",
            "total_requests": 0,
            "approved_days": 0.0,
        })
        d["total_requests"] += 1
        if approved:
            d["approved_days"] += days
        totals["total_requests"] += 1
    return {"by_type": list(by_type.values()), "by_department": list(by_dept.values()), "totals": totals}
