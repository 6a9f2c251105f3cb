# wfm_api/blueprints/time_entries.py
from flask import Blueprint, request

from wfm_api.blueprints.time_clock import entry_row
from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import not_found, bad_request
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import (
    limit_offset, page_meta, parse_date, parse_datetime, day_start, day_after, as_int,
)
from wfm_api.extensions import db
from wfm_api.models.time_entry import TimeEntry, ENTRY_STATUSES, ENTRY_TYPES
from wfm_api.models.user import Profile
from wfm_api.rbac import is_privileged
from wfm_api.services.audit import record_audit
from wfm_api.services.time_clock import create_manual_entry, update_entry, bulk_set_status

bp = Blueprint("time_entries", __name__, url_prefix="/api/v1/time-entries")


@bp.get("")
@requires_perm("time_entries.read")
def list_entries():
    me = current_profile()
    qry = TimeEntry.query.filter(TimeEntry.organization_id == me.organization_id)

    user_id = request.args.get("user_id", type=int)
    if is_privileged(me):
        if user_id:
            qry = qry.filter(TimeEntry.user_id == user_id)
    else:
        qry = qry.filter(TimeEntry.user_id == me.id)

    start = parse_date(request.args.get("start_date"), "start_date")
    end = parse_date(request.args.get("end_date"), "end_date")
    if start:
        qry = qry.filter(TimeEntry.timestamp >= day_start(start))
    if end:
        qry = qry.filter(TimeEntry.timestamp < day_after(end))

    et = request.args.get("entry_type")
    if et:
        if et not in ENTRY_TYPES:
            raise bad_request(f"entry_type must be one of {', '.join(ENTRY_TYPES)}")
        qry = qry.filter(TimeEntry.entry_type == et)

    st = request.args.get("status")
    if st:
        if st not in ENTRY_STATUSES:
            raise bad_request(f"status must be one of {', '.join(ENTRY_STATUSES)}")
        qry = qry.filter(TimeEntry.status == st)

    limit, offset = limit_offset()
    total = qry.count()
    items = qry.order_by(TimeEntry.timestamp.desc(), TimeEntry.id.desc()).offset(offset).limit(limit).all()
    return ok([entry_row(e) for e in items], **page_meta(total, limit, offset))


@bp.post("")
@requires_perm("time_entries.create")
def create_entry():
    me = current_profile()
    d = json_body()
    target = me
    uid = as_int(d.get("user_id"), "user_id")
    if uid is not None and uid != me.id:
        target = db.session.get(Profile, uid)
        if target is None or target.organization_id != me.organization_id:
            raise not_found("User not found")
    entry = create_manual_entry(
        me, target,
        entry_type=d.get("entry_type"),
        timestamp=parse_datetime(d.get("timestamp"), "timestamp"),
        notes=d.get("notes"),
        location_id=d.get("location_id"),
    )
    return ok(entry_row(entry), status=201)


@bp.put("/bulk-status")
@requires_perm("time_entries.update")
def bulk_status():
    d = json_body()
    updated = bulk_set_status(current_profile(), d.get("entry_ids"), d.get("status"))
    return ok({"updated": updated, "status": d.get("status")})


@bp.put("/<int:entry_id>")
@requires_perm("time_entries.update")
def edit_entry(entry_id: int):
    me = current_profile()
    e = db.session.get(TimeEntry, entry_id)
    if e is None or e.organization_id != me.organization_id:
        raise not_found("Time entry not found")
    d = json_body()
    changes = {k: d[k] for k in ("notes", "status") if k in d}
    if "timestamp" in d:
        changes["timestamp"] = parse_datetime(d["timestamp"], "timestamp")
    before = entry_row(e)
    update_entry(me, e, changes)
    if is_privileged(me):
        record_audit(me, "update", "time_entries", e.id, old_data=before, new_data=entry_row(e))
        db.session.commit()
    return ok(entry_row(e))


@bp.delete("/<int:entry_id>")
@requires_perm("time_entries.delete")
def delete_entry(entry_id: int):
    me = current_profile()
    e = db.session.get(TimeEntry, entry_id)
    if e is None or e.organization_id != me.organization_id:
        raise not_found("Time entry not found")
    record_audit(me, "delete", "time_entries", e.id, old_data=entry_row(e))
    db.session.delete(e)
    db.session.commit()
    return ok({"id": entry_id, "deleted": True})
