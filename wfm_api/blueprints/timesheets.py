# wfm_api/blueprints/timesheets.py
import csv
import io
from datetime import datetime

from flask import Blueprint, request, make_response

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, forbidden, not_found, conflict
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import (
    limit_offset, page_meta, parse_date, day_start, day_after, iso, as_bool, as_float, as_int,
)
from wfm_api.extensions import db
from wfm_api.models.org import Organization
from wfm_api.models.time_entry import TimeEntry
from wfm_api.models.timesheet import Timesheet, TIMESHEET_STATUSES
from wfm_api.models.user import Profile
from wfm_api.rbac import is_privileged
from wfm_api.services.audit import record_audit
from wfm_api.services.notifications import notify, notify_privileged
from wfm_api.services.org_settings import load_section
from wfm_api.services.work_hours import timesheet_totals

bp = Blueprint("timesheets", __name__, url_prefix="/api/v1/timesheets")


def _row(t: Timesheet):
    return {
        "id": t.id,
        "user_id": t.user_id,
        "user_name": t.user.name if t.user else None,
        "period_start": iso(t.period_start),
        "period_end": iso(t.period_end),
        "status": t.status,
        "total_hours": t.total_hours,
        "break_hours": t.break_hours,
        "overtime_hours": t.overtime_hours,
        "notes": t.notes,
        "submitted_at": iso(t.submitted_at),
        "reviewed_by": t.reviewed_by,
        "reviewed_at": iso(t.reviewed_at),
        "review_comment": t.review_comment,
        "created_at": iso(t.created_at),
    }


def _get(me, timesheet_id) -> Timesheet:
    t = db.session.get(Timesheet, timesheet_id)
    if t is None or t.organization_id != me.organization_id:
        raise not_found("Timesheet not found")
    if t.user_id != me.id and not is_privileged(me):
        raise not_found("Timesheet not found")
    return t


def _period(d):
    start = parse_date(d.get("period_start"), "period_start")
    end = parse_date(d.get("period_end"), "period_end")
    if not start or not end:
        raise bad_request("period_start and period_end are required")
    if end < start:
        raise bad_request("period_end cannot be before period_start")
    return start, end


def _target_user(me, d) -> int:
    uid = as_int(d.get("user_id"), "user_id")
    if uid is None or uid == me.id:
        return me.id
    if not is_privileged(me):
        raise forbidden("You can only create timesheets for yourself")
    p = db.session.get(Profile, uid)
    if p is None or p.organization_id != me.organization_id:
        raise bad_request("Invalid user_id")
    return p.id


_HOUR_FIELDS = ("total_hours", "break_hours", "overtime_hours")


def _hours(d) -> dict:
    out = {}
    for k in _HOUR_FIELDS:
        if k in d:
            v = as_float(d[k], k)
            if v is not None and v < 0:
                raise bad_request(f"{k} cannot be negative")
            out[k] = v
    return out


def _ensure_unique(user_id, start, end):
    dup = Timesheet.query.filter_by(user_id=user_id, period_start=start, period_end=end).first()
    if dup is not None:
        raise conflict("Timesheet already exists for this period", {"timesheet_id": dup.id})


def _compute(me, user_id, start, end):
    entries = (TimeEntry.query
               .filter(TimeEntry.user_id == user_id,
                       TimeEntry.timestamp >= day_start(start),
                       TimeEntry.timestamp < day_after(end))
               .all())
    settings = load_section(db.session.get(Organization, me.organization_id), "time_clock")
    return timesheet_totals(entries, overtime_threshold_hours=settings.overtime_threshold_hours)


# ---------- routes ----------
@bp.get("")
@requires_perm("timesheets.read")
def list_timesheets():
    me = current_profile()
    qry = Timesheet.query.filter_by(organization_id=me.organization_id)
    if is_privileged(me):
        uid = request.args.get("user_id", type=int)
        if uid:
            qry = qry.filter(Timesheet.user_id == uid)
    else:
        qry = qry.filter(Timesheet.user_id == me.id)

    st = request.args.get("status")
    if st:
        if st not in TIMESHEET_STATUSES:
            raise bad_request(f"status must be one of {', '.join(TIMESHEET_STATUSES)}")
        qry = qry.filter(Timesheet.status == st)
    ps = parse_date(request.args.get("period_start"), "period_start")
    pe = parse_date(request.args.get("period_end"), "period_end")
    if ps:
        qry = qry.filter(Timesheet.period_start >= ps)
    if pe:
        qry = qry.filter(Timesheet.period_end <= pe)

    limit, offset = limit_offset()
    total = qry.count()
    items = qry.order_by(Timesheet.period_start.desc(), Timesheet.id.desc()).offset(offset).limit(limit).all()
    return ok([_row(t) for t in items], **page_meta(total, limit, offset))


@bp.post("")
@requires_perm("timesheets.create")
def create_timesheet():
    me = current_profile()
    d = json_body()
    start, end = _period(d)
    uid = _target_user(me, d)
    _ensure_unique(uid, start, end)
    t = Timesheet(
        organization_id=me.organization_id,
        user_id=uid,
        period_start=start,
        period_end=end,
        status="draft",
        notes=d.get("notes"),
        **_hours(d),
    )
    db.session.add(t)
    db.session.commit()
    return ok(_row(t), status=201)


@bp.post("/generate")
@requires_perm("timesheets.create")
def generate_timesheet():
    """Build a draft timesheet from the worker's clock entries for the period."""
    me = current_profile()
    d = json_body()
    start, end = _period(d)
    uid = _target_user(me, d)
    _ensure_unique(uid, start, end)

    totals = _compute(me, uid, start, end)
    t = Timesheet(
        organization_id=me.organization_id,
        user_id=uid,
        period_start=start,
        period_end=end,
        status="draft",
        total_hours=totals["total_hours"],
        break_hours=totals["break_hours"],
        overtime_hours=totals["overtime_hours"],
        notes=d.get("notes"),
    )
    db.session.add(t)
    db.session.commit()
    out = _row(t)
    out["days"] = totals["days"]
    return ok(out, status=201)


@bp.get("/<int:timesheet_id>")
@requires_perm("timesheets.read")
def get_timesheet(timesheet_id: int):
    me = current_profile()
    t = _get(me, timesheet_id)
    out = _row(t)
    out["days"] = _compute(me, t.user_id, t.period_start, t.period_end)["days"]
    return ok(out)


@bp.put("/<int:timesheet_id>")
@requires_perm("timesheets.update")
def update_timesheet(timesheet_id: int):
    me = current_profile()
    t = _get(me, timesheet_id)
    if t.status not in ("draft", "rejected"):
        raise bad_request(f"Cannot edit a {t.status} timesheet")
    d = json_body()
    for k, v in _hours(d).items():
        setattr(t, k, v)
    if "notes" in d:
        t.notes = d["notes"]
    if as_bool(d.get("recalculate"), "recalculate", default=False):
        totals = _compute(me, t.user_id, t.period_start, t.period_end)
        t.total_hours = totals["total_hours"]
        t.break_hours = totals["break_hours"]
        t.overtime_hours = totals["overtime_hours"]
    db.session.commit()
    return ok(_row(t))


@bp.delete("/<int:timesheet_id>")
@requires_perm("timesheets.update", "timesheets.delete")
def delete_timesheet(timesheet_id: int):
    me = current_profile()
    t = _get(me, timesheet_id)
    if t.status != "draft":
        raise bad_request("Only draft timesheets can be deleted")
    db.session.delete(t)
    db.session.commit()
    return ok({"id": timesheet_id, "deleted": True})


@bp.put("/<int:timesheet_id>/submit")
@requires_perm("timesheets.update")
def submit_timesheet(timesheet_id: int):
    me = current_profile()
    t = _get(me, timesheet_id)
    if t.user_id != me.id:
        raise forbidden("You can only submit your own timesheets")
    if t.status not in ("draft", "rejected"):
        raise bad_request(f"Cannot submit a {t.status} timesheet")
    if t.total_hours is None:
        raise bad_request("total_hours is required before submitting")
    t.status = "pending"
    t.submitted_at = datetime.utcnow()
    notify(t.organization_id, t.user_id, "timesheet_submitted", "Timesheet submitted",
           f"{t.period_start.isoformat()} to {t.period_end.isoformat()}", {"timesheet_id": t.id})
    notify_privileged(t.organization_id, "timesheet_pending", "Timesheet awaiting approval",
                      f"{me.name or 'An employee'} submitted a timesheet", {"timesheet_id": t.id},
                      exclude_id=me.id)
    db.session.commit()
    return ok(_row(t))


def _review(timesheet_id, status):
    me = current_profile()
    t = _get(me, timesheet_id)
    if t.status != "pending":
        raise bad_request(f"Only pending timesheets can be {status}")
    comment = json_body().get("review_comment")
    if comment is not None and not isinstance(comment, str):
        raise bad_request("review_comment must be a string")
    if status == "rejected" and not (comment or "").strip():
        raise bad_request("review_comment is required when rejecting")
    t.status = status
    t.reviewed_by = me.id
    t.reviewed_at = datetime.utcnow()
    t.review_comment = comment
    notify(t.organization_id, t.user_id, f"timesheet_{status}", f"Timesheet {status}",
           comment, {"timesheet_id": t.id})
    record_audit(me, status, "timesheets", t.id, new_data={"status": status})
    db.session.commit()
    return ok(_row(t))


@bp.put("/<int:timesheet_id>/approve")
@requires_perm("timesheets.approve")
def approve_timesheet(timesheet_id: int):
    return _review(timesheet_id, "approved")


@bp.put("/<int:timesheet_id>/reject")
@requires_perm("timesheets.approve")
def reject_timesheet(timesheet_id: int):
    return _review(timesheet_id, "rejected")


@bp.get("/<int:timesheet_id>/export")
@requires_perm("timesheets.read")
def export_timesheet(timesheet_id: int):
    me = current_profile()
    t = _get(me, timesheet_id)
    days = _compute(me, t.user_id, t.period_start, t.period_end)["days"]

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=["date", "hours", "break_hours", "overtime_hours"])
    writer.writeheader()
    writer.writerows(days)
    writer.writerow({"date": "TOTAL", "hours": t.total_hours, "break_hours": t.break_hours,
                     "overtime_hours": t.overtime_hours})

    response = make_response(output.getvalue())
    response.headers["Content-Type"] = "text/csv"
    filename = f"TIMESHEET_{t.user_id}_{t.period_start.isoformat()}_{t.period_end.isoformat()}.csv"
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response
