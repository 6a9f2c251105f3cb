# wfm_api/blueprints/reports.py
from datetime import datetime

from flask import Blueprint, request

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request
from wfm_api.common.http import ok
from wfm_api.common.paging import parse_date, day_start, day_after, as_int
from wfm_api.models.org import Location
from wfm_api.models.pto import PTORequest
from wfm_api.models.shift import Shift, ShiftSwap
from wfm_api.models.time_entry import TimeEntry
from wfm_api.models.user import Profile
from wfm_api.services.work_hours import aggregate_work_hours, attendance, pto_breakdown, shift_coverage

bp = Blueprint("reports", __name__, url_prefix="/api/v1/reports")

MAX_RANGE_DAYS = 366


def _range():
    start = parse_date(request.args.get("start_date"), "start_date")
    end = parse_date(request.args.get("end_date"), "end_date")
    if not start or not end:
        raise bad_request("start_date and end_date are required")
    if end < start:
        raise bad_request("end_date cannot be before start_date")
    if (end - start).days > MAX_RANGE_DAYS:
        raise bad_request(f"Date range cannot exceed {MAX_RANGE_DAYS} days")
    return start, end


@bp.get("/work-hours")
@requires_perm("reports.read")
def work_hours():
    me = current_profile()
    start, end = _range()
    qry = TimeEntry.query.filter(
        TimeEntry.organization_id == me.organization_id,
        TimeEntry.timestamp >= day_start(start),
        TimeEntry.timestamp < day_after(end),
    )
    uid = request.args.get("user_id", type=int)
    if uid:
        qry = qry.filter(TimeEntry.user_id == uid)
    loc = request.args.get("location_id", type=int)
    if loc:
        qry = qry.filter(TimeEntry.location_id == loc)
    entries = qry.all()

    profiles = {p.id: p for p in Profile.query.filter_by(organization_id=me.organization_id).all()}
    rows = aggregate_work_hours(entries, profiles)
    totals = {
        "users": len(rows),
        "total_hours": round(sum(r["total_minutes"] for r in rows) / 60.0, 2),
        "regular_hours": round(sum(r["regular_minutes"] for r in rows) / 60.0, 2),
        "overtime_hours": round(sum(r["overtime_minutes"] for r in rows) / 60.0, 2),
        "break_hours": round(sum(r["break_minutes"] for r in rows) / 60.0, 2),
        "estimated_pay": round(sum(r["estimated_pay"] or 0 for r in rows), 2),
    }
    return ok({"start_date": start.isoformat(), "end_date": end.isoformat(), "users": rows, "totals": totals})


@bp.get("/shift-coverage")
@requires_perm("reports.read")
def coverage():
    me = current_profile()
    start, end = _range()
    group_by = request.args.get("group_by") or "day"
    if group_by not in ("day", "location"):
        raise bad_request("group_by must be 'day' or 'location'")
    qry = Shift.query.filter(
        Shift.organization_id == me.organization_id,
        Shift.start_time >= day_start(start),
        Shift.start_time < day_after(end),
    )
    loc = request.args.get("location_id", type=int)
    if loc:
        qry = qry.filter(Shift.location_id == loc)
    names = {l.id: l.name for l in Location.query.filter_by(organization_id=me.organization_id).all()}
    data = shift_coverage(qry.all(), start, end, group_by=group_by, location_names=names)
    data.update({"start_date": start.isoformat(), "end_date": end.isoformat()})
    return ok(data)


def _period(start, end):
    return {"start_date": start.isoformat(), "end_date": end.isoformat()}


def _arg_id(name):
    return as_int(request.args.get(name), name)


@bp.get("/attendance")
@requires_perm("reports.read")
def attendance_report():
    me = current_profile()
    start, end = _range()
    uid = _arg_id("user_id")
    dept = _arg_id("department_id")

    shifts = Shift.query.filter(
        Shift.organization_id == me.organization_id,
        Shift.is_published.is_(True),
        Shift.start_time >= day_start(start),
        Shift.start_time < day_after(end),
    )
    entries = TimeEntry.query.filter(
        TimeEntry.organization_id == me.organization_id,
        TimeEntry.entry_type == "clock_in",
        TimeEntry.timestamp >= day_start(start),
        TimeEntry.timestamp < day_after(end),
    )
    if uid:
        shifts = shifts.filter(Shift.user_id == uid)
        entries = entries.filter(TimeEntry.user_id == uid)
    if dept:
        shifts = shifts.join(Profile, Profile.id == Shift.user_id).filter(Profile.department_id == dept)

    data = attendance(shifts.all(), entries.all(), now=datetime.utcnow())
    data["period"] = _period(start, end)
    return ok(data)


@bp.get("/pto-breakdown")
@requires_perm("reports.read")
def pto_breakdown_report():
    me = current_profile()
    start, end = _range()
    qry = PTORequest.query.filter(
        PTORequest.organization_id == me.organization_id,
        PTORequest.start_date >= start,
        PTORequest.start_date <= end,
    )
    dept = _arg_id("department_id")
    if dept:
        qry = qry.join(Profile, Profile.id == PTORequest.user_id).filter(Profile.department_id == dept)
    data = pto_breakdown(qry.order_by(PTORequest.start_date.asc(), PTORequest.id.asc()).all())
    data["period"] = _period(start, end)
    return ok(data)


def _status_counts(rows, statuses=("pending", "approved", "rejected")):
    out = {"total": len(rows)}
    for st in statuses:
        out[st] = sum(1 for r in rows if r.status == st)
    return out


@bp.get("/summary")
@requires_perm("reports.read")
def summary_report():
    me = current_profile()
    start, end = _range()
    org_id = me.organization_id
    lo, hi = day_start(start), day_after(end)

    entries = TimeEntry.query.filter(TimeEntry.organization_id == org_id,
                                     TimeEntry.timestamp >= lo, TimeEntry.timestamp < hi).all()
    pto = PTORequest.query.filter(PTORequest.organization_id == org_id,
                                  PTORequest.start_date >= start, PTORequest.start_date <= end).all()
    swaps = ShiftSwap.query.filter(ShiftSwap.organization_id == org_id,
                                   ShiftSwap.created_at >= lo, ShiftSwap.created_at < hi).all()
    return ok({
        "period": _period(start, end),
        "metrics": {
            "total_shifts": Shift.query.filter(Shift.organization_id == org_id,
                                               Shift.start_time >= lo, Shift.start_time < hi).count(),
            "total_clock_ins": sum(1 for e in entries if e.entry_type == "clock_in"),
            "total_time_entries": len(entries),
            "active_employees": Profile.query.filter_by(organization_id=org_id, status="active").count(),
            "pto_requests": _status_counts(pto),
            "shift_swaps": _status_counts(swaps),
        },
    })
