# wfm_api/blueprints/time_clock.py
import hmac

from flask import Blueprint, request, current_app

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import unauthorized
from wfm_api.common.http import ok, json_body
from wfm_api.services import time_clock as tc

bp = Blueprint("time_clock", __name__, url_prefix="/api/v1/time-clock")


def entry_row(e):
    return {
        "id": e.id,
        "user_id": e.user_id,
        "shift_id": e.shift_id,
        "location_id": e.location_id,
        "entry_type": e.entry_type,
        "timestamp": e.timestamp.isoformat() if e.timestamp else None,
        "latitude": e.latitude,
        "longitude": e.longitude,
        "is_inside_geofence": e.is_inside_geofence,
        "notes": e.notes,
        "is_manual": e.is_manual,
        "is_auto": e.is_auto,
        "status": e.status,
        "approved_by": e.approved_by,
        "approved_at": e.approved_at.isoformat() if e.approved_at else None,
    }


@bp.post("/clock-in")
@requires_perm("time_entries.create")
def clock_in():
    d = json_body()
    entry = tc.clock_in(
        current_profile(),
        location_id=d.get("location_id"),
        shift_id=d.get("shift_id"),
        notes=d.get("notes"),
        coordinates=d.get("coordinates"),
    )
    return ok(entry_row(entry), status=201)


@bp.post("/clock-out")
@requires_perm("time_entries.create")
def clock_out():
    d = json_body()
    entry = tc.clock_out(current_profile(), notes=d.get("notes"), coordinates=d.get("coordinates"))
    return ok(entry_row(entry), status=201)


@bp.post("/break-start")
@requires_perm("time_entries.create")
def break_start():
    d = json_body()
    return ok(entry_row(tc.break_start(current_profile(), notes=d.get("notes"))), status=201)


@bp.post("/break-end")
@requires_perm("time_entries.create")
def break_end():
    d = json_body()
    return ok(entry_row(tc.break_end(current_profile(), notes=d.get("notes"))), status=201)


@bp.get("/status")
@requires_perm("time_entries.read")
def status():
    st = tc.clock_status(current_profile())
    return ok({
        "status": st["status"],
        "last_entry": entry_row(st["last_entry"]) if st["last_entry"] else None,
        "entries": [entry_row(e) for e in st["entries"]],
        "worked_minutes": st["worked_minutes"],
        "break_minutes": st["break_minutes"],
    })


@bp.post("/auto-clock-out")
def auto_clock_out():
    """Cron hook; authenticated by the shared X-Cron-Secret header instead of a JWT."""
    expected = current_app.config.get("CRON_SECRET") or ""
    given = request.headers.get("X-Cron-Secret") or ""
    if not expected or not hmac.compare_digest(expected, given):
        raise unauthorized("Invalid cron secret")
    return ok(tc.auto_clock_out())
