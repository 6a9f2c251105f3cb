# wfm_api/blueprints/shifts.py
from datetime import datetime, timedelta

from flask import Blueprint, request
from sqlalchemy import or_

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import (
    limit_offset, page_meta, parse_date, parse_datetime, arg_bool, day_start, day_after, iso, as_bool, as_int,
)
from wfm_api.extensions import db
from wfm_api.models.org import Department, Location, Organization, Position
from wfm_api.models.shift import Shift, ShiftTemplate, SHIFT_STATUSES
from wfm_api.models.user import Profile
from wfm_api.rbac import is_privileged
from wfm_api.services.audit import record_audit
from wfm_api.services.org_settings import load_section
from wfm_api.services.shift_bulk import run_bulk

bp = Blueprint("shifts", __name__, url_prefix="/api/v1/shifts")

MAX_REPEAT = 52
_REPEAT_STEP = {"daily": timedelta(days=1), "weekly": timedelta(weeks=1)}
_TEXT_FIELDS = ("notes", "color")


# ---------- helpers ----------
def shift_row(s: Shift):
    return {
        "id": s.id,
        "organization_id": s.organization_id,
        "user_id": s.user_id,
        "user_name": s.user.name if s.user else None,
        "location_id": s.location_id,
        "location_name": s.location.name if s.location else None,
        "department_id": s.department_id,
        "department_name": s.department.name if s.department else None,
        "position_id": s.position_id,
        "position_name": s.position.name if s.position else None,
        "start_time": iso(s.start_time),
        "end_time": iso(s.end_time),
        "break_minutes": s.break_minutes,
        "notes": s.notes,
        "color": s.color,
        "status": s.status,
        "is_published": s.is_published,
        "published_at": iso(s.published_at),
        "repeat_parent_id": s.repeat_parent_id,
        "created_by": s.created_by,
        "created_at": iso(s.created_at),
    }


def _schedule(me):
    return load_section(db.session.get(Organization, me.organization_id), "schedule")


def _get_shift(me, shift_id) -> Shift:
    s = db.session.get(Shift, shift_id)
    if s is None or s.organization_id != me.organization_id:
        raise not_found("Shift not found")
    if not is_privileged(me) and s.user_id != me.id and not _visible_unpublished(me) and not s.is_published:
        raise not_found("Shift not found")
    return s


def _visible_unpublished(me):
    return _schedule(me).show_unpublished_to_employees


def _check_member(me, user_id):
    if user_id is None:
        return None
    p = db.session.get(Profile, as_int(user_id, "user_id", required=True))
    if p is None or p.organization_id != me.organization_id:
        raise bad_request("Invalid user_id")
    return p.id


def _check_location(me, location_id):
    if location_id is None:
        return None
    loc = db.session.get(Location, as_int(location_id, "location_id", required=True))
    if loc is None or loc.organization_id != me.organization_id:
        raise bad_request("Invalid location_id")
    return loc.id


def _org_ref(me, model, value, field):
    ref_id = as_int(value, field)
    if ref_id is None:
        return None
    row = db.session.get(model, ref_id)
    if row is None or row.organization_id != me.organization_id:
        raise bad_request(f"Invalid {field}")
    return row.id


def _edits(me, d) -> dict:
    """Validated values for the plain editable columns present in `d`."""
    out = {}
    for k in _TEXT_FIELDS:
        if k in d:
            if d[k] is not None and not isinstance(d[k], str):
                raise bad_request(f"{k} must be a string")
            out[k] = d[k]
    if "break_minutes" in d:
        mins = as_int(d["break_minutes"], "break_minutes") or 0
        if mins < 0:
            raise bad_request("break_minutes cannot be negative")
        out["break_minutes"] = mins
    if "department_id" in d:
        out["department_id"] = _org_ref(me, Department, d["department_id"], "department_id")
    if "position_id" in d:
        out["position_id"] = _org_ref(me, Position, d["position_id"], "position_id")
    return out


def _template(me, template_id):
    t = db.session.get(ShiftTemplate, as_int(template_id, "template_id", required=True))
    if t is None or t.organization_id != me.organization_id or not t.is_active:
        raise bad_request("Invalid template_id")
    return t


def _template_times(t, day):
    start = datetime.combine(day, datetime.strptime(t.start_time, "%H:%M").time())
    end = datetime.combine(day, datetime.strptime(t.end_time, "%H:%M").time())
    if end <= start:
        end += timedelta(days=1)
    return start, end


def _check_times(me, start, end):
    if start is None or end is None:
        raise bad_request("start_time and end_time are required")
    if end <= start:
        raise bad_request("end_time must be after start_time")
    hours = (end - start).total_seconds() / 3600.0
    sched = _schedule(me)
    if hours < sched.min_shift_duration_hours or hours > sched.max_shift_duration_hours:
        raise bad_request(
            f"Shift length must be between {sched.min_shift_duration_hours} and "
            f"{sched.max_shift_duration_hours} hours"
        )


def _series_query(me, series_id):
    return Shift.query.filter(
        Shift.organization_id == me.organization_id,
        or_(Shift.id == series_id, Shift.repeat_parent_id == series_id),
    )


# ---------- routes ----------
@bp.get("")
@requires_perm("shifts.read", "schedules.read")
def list_shifts():
    me = current_profile()
    qry = Shift.query.filter(Shift.organization_id == me.organization_id)

    start = parse_date(request.args.get("start_date"), "start_date")
    end = parse_date(request.args.get("end_date"), "end_date")
    if start:
        qry = qry.filter(Shift.start_time >= day_start(start))
    if end:
        qry = qry.filter(Shift.start_time < day_after(end))

    loc = request.args.get("location_id", type=int)
    if loc:
        qry = qry.filter(Shift.location_id == loc)
    uid = request.args.get("user_id", type=int)
    if uid:
        qry = qry.filter(Shift.user_id == uid)
    st = request.args.get("status")
    if st:
        qry = qry.filter(Shift.status == st)

    published = arg_bool("is_published")
    if not is_privileged(me) and not _visible_unpublished(me):
        qry = qry.filter(or_(Shift.is_published.is_(True), Shift.user_id == me.id))
    elif published is not None:
        qry = qry.filter(Shift.is_published.is_(published))

    limit, offset = limit_offset(default=100, maximum=500)
    total = qry.count()
    items = qry.order_by(Shift.start_time.asc(), Shift.id.asc()).offset(offset).limit(limit).all()
    return ok([shift_row(s) for s in items], **page_meta(total, limit, offset))


@bp.get("/my")
@requires_perm("shifts.read")
def my_shifts():
    me = current_profile()
    qry = Shift.query.filter(Shift.organization_id == me.organization_id, Shift.user_id == me.id)
    start = parse_date(request.args.get("start_date"), "start_date")
    end = parse_date(request.args.get("end_date"), "end_date")
    if start:
        qry = qry.filter(Shift.start_time >= day_start(start))
    if end:
        qry = qry.filter(Shift.start_time < day_after(end))
    if not _visible_unpublished(me):
        qry = qry.filter(Shift.is_published.is_(True))
    return ok([shift_row(s) for s in qry.order_by(Shift.start_time.asc()).all()])


@bp.get("/<int:shift_id>")
@requires_perm("shifts.read", "schedules.read")
def get_shift(shift_id: int):
    return ok(shift_row(_get_shift(current_profile(), shift_id)))


@bp.post("")
@requires_perm("shifts.create")
def create_shift():
    me = current_profile()
    d = json_body()
    tmpl = _template(me, d["template_id"]) if d.get("template_id") is not None else None
    if tmpl is not None and d.get("start_time") is None and d.get("end_time") is None:
        day = parse_date(d.get("date"), "date")
        if day is None:
            raise bad_request("date is required when start_time and end_time come from a template")
        start, end = _template_times(tmpl, day)
    else:
        start = parse_datetime(d.get("start_time"), "start_time")
        end = parse_datetime(d.get("end_time"), "end_time")
    _check_times(me, start, end)
    user_id = _check_member(me, d.get("user_id"))
    location_id = _check_location(me, d.get("location_id"))

    status = d.get("status") or ("scheduled" if user_id else "open")
    if status not in SHIFT_STATUSES:
        raise bad_request(f"status must be one of {', '.join(SHIFT_STATUSES)}")

    repeat = d.get("repeat") or {}
    if not isinstance(repeat, dict):
        raise bad_request("repeat must be an object")
    freq = repeat.get("frequency")
    count = as_int(repeat.get("count"), "repeat.count") or 1
    if freq and freq not in _REPEAT_STEP:
        raise bad_request("repeat.frequency must be 'daily' or 'weekly'")
    if count < 1 or count > MAX_REPEAT:
        raise bad_request(f"repeat.count must be between 1 and {MAX_REPEAT}")

    published = as_bool(d.get("is_published"), "is_published", default=False)
    fields = {"break_minutes": 0}
    if tmpl is not None:
        fields.update(break_minutes=tmpl.break_minutes, position_id=tmpl.position_id, color=tmpl.color)
    fields.update(_edits(me, d))
    base = dict(
        organization_id=me.organization_id,
        user_id=user_id,
        location_id=location_id,
        status=status,
        is_published=published,
        created_by=me.id,
        **fields,
    )
    parent = Shift(start_time=start, end_time=end, **base)
    if published:
        parent.published_at = datetime.utcnow()
    db.session.add(parent)
    db.session.flush()

    created = [parent]
    if freq:
        step = _REPEAT_STEP[freq]
        for i in range(1, count):
            child = Shift(start_time=start + step * i, end_time=end + step * i,
                          repeat_parent_id=parent.id, **base)
            if published:
                child.published_at = datetime.utcnow()
            created.append(child)
        db.session.add_all(created[1:])
    db.session.commit()

    if len(created) == 1:
        return ok(shift_row(parent), status=201)
    return ok([shift_row(s) for s in created], status=201, series_id=parent.id, created=len(created))


@bp.put("/<int:shift_id>")
@requires_perm("shifts.update")
def update_shift(shift_id: int):
    me = current_profile()
    s = _get_shift(me, shift_id)
    d = json_body()
    before = shift_row(s)

    start = parse_datetime(d["start_time"], "start_time") if "start_time" in d else s.start_time
    end = parse_datetime(d["end_time"], "end_time") if "end_time" in d else s.end_time
    if "start_time" in d or "end_time" in d:
        _check_times(me, start, end)
        s.start_time, s.end_time = start, end

    if "user_id" in d:
        s.user_id = _check_member(me, d["user_id"])
        if s.user_id is None:
            s.status = "open"
        elif s.status == "open":
            s.status = "scheduled"
    if "location_id" in d:
        s.location_id = _check_location(me, d["location_id"])
    if "status" in d:
        if d["status"] not in SHIFT_STATUSES:
            raise bad_request(f"status must be one of {', '.join(SHIFT_STATUSES)}")
        s.status = d["status"]
    if "is_published" in d:
        flag = as_bool(d["is_published"], "is_published", default=s.is_published)
        if flag and not s.is_published:
            s.published_at = datetime.utcnow()
        s.is_published = flag
    for k, v in _edits(me, d).items():
        setattr(s, k, v)

    record_audit(me, "update", "shifts", s.id, old_data=before)
    db.session.commit()
    return ok(shift_row(s))


@bp.delete("/<int:shift_id>")
@requires_perm("shifts.delete")
def delete_shift(shift_id: int):
    me = current_profile()
    s = _get_shift(me, shift_id)
    record_audit(me, "delete", "shifts", s.id, old_data=shift_row(s))
    db.session.delete(s)
    db.session.commit()
    return ok({"id": shift_id, "deleted": True})


@bp.post("/bulk")
@requires_perm("shifts.manage")
def bulk():
    me = current_profile()
    d = json_body()
    result = run_bulk(me, d.get("action"), d.get("shift_ids"), d.get("target_dates"))
    record_audit(me, f"bulk_{d.get('action')}", "shifts", None,
                 new_data={"shift_ids": d.get("shift_ids"), "result": result})
    db.session.commit()
    return ok(result)


# ---------- series ----------
@bp.get("/series/<int:shift_id>")
@requires_perm("shifts.read", "schedules.read")
def get_series(shift_id: int):
    me = current_profile()
    s = _get_shift(me, shift_id)
    rows = _series_query(me, s.series_id).order_by(Shift.start_time.asc()).all()
    return ok([shift_row(x) for x in rows], series_id=s.series_id)


@bp.put("/series/<int:shift_id>")
@requires_perm("shifts.update")
def update_series(shift_id: int):
    me = current_profile()
    s = _get_shift(me, shift_id)
    d = json_body()
    rows = _series_query(me, s.series_id).all()

    user_id = _check_member(me, d["user_id"]) if "user_id" in d else None
    location_id = _check_location(me, d["location_id"]) if "location_id" in d else None
    published = as_bool(d.get("is_published"), "is_published")
    edits = _edits(me, d)
    for x in rows:
        if "user_id" in d:
            x.user_id = user_id
        if "location_id" in d:
            x.location_id = location_id
        if published is not None:
            if published and not x.is_published:
                x.published_at = datetime.utcnow()
            x.is_published = published
        for k, v in edits.items():
            setattr(x, k, v)
    record_audit(me, "update_series", "shifts", s.series_id, new_data=d)
    db.session.commit()
    return ok({"series_id": s.series_id, "updated": len(rows)})


@bp.delete("/series/<int:shift_id>")
@requires_perm("shifts.delete")
def delete_series(shift_id: int):
    me = current_profile()
    s = _get_shift(me, shift_id)
    series_id = s.series_id
    rows = _series_query(me, series_id).all()
    for x in rows:
        db.session.delete(x)
    record_audit(me, "delete_series", "shifts", series_id, old_data={"count": len(rows)})
    db.session.commit()
    return ok({"series_id": series_id, "deleted": len(rows)})
