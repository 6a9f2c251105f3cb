# wfm_api/blueprints/profile.py
"""Self-service endpoints for the caller's own profile."""
from flask import Blueprint

from wfm_api.blueprints.departments import department_row
from wfm_api.common.auth import requires_profile, current_profile
from wfm_api.common.errors import bad_request
from wfm_api.common.http import ok, json_body
from wfm_api.extensions import db
from wfm_api.models.org import Location
from wfm_api.models.user import UserLocation

bp = Blueprint("profile", __name__, url_prefix="/api/v1/profile")

THEMES = ("light", "dark", "system")
CALENDAR_VIEWS = ("day", "week", "month")
MIN_PASSWORD_LENGTH = 8
_TEXT_FIELDS = ("first_name", "last_name", "display_name", "phone")


def _row(p):
    return {
        "id": p.id,
        "user_id": p.user_id,
        "email": p.user.email if p.user else None,
        "first_name": p.first_name,
        "last_name": p.last_name,
        "display_name": p.display_name,
        "name": p.name,
        "phone": p.phone,
        "role": p.role,
        "department_id": p.department_id,
        "notification_settings": p.notification_settings or {},
        "preferences": p.preferences or {},
    }


@bp.get("")
@requires_profile
def get_profile():
    return ok(_row(current_profile()))


@bp.put("")
@requires_profile
def update_profile():
    me = current_profile()
    d = json_body()
    for k in _TEXT_FIELDS:
        if k in d:
            if d[k] is not None and not isinstance(d[k], str):
                raise bad_request(f"{k} must be a string")
            setattr(me, k, d[k].strip() if isinstance(d[k], str) else None)
    if "notification_settings" in d:
        if not isinstance(d["notification_settings"], dict):
            raise bad_request("notification_settings must be an object")
        me.notification_settings = {**(me.notification_settings or {}), **d["notification_settings"]}
    db.session.commit()
    return ok(_row(me))


@bp.get("/preferences")
@requires_profile
def get_preferences():
    return ok(current_profile().preferences or {})


@bp.put("/preferences")
@requires_profile
def update_preferences():
    me = current_profile()
    prefs = json_body().get("preferences")
    if not isinstance(prefs, dict):
        raise bad_request("preferences object is required")
    if "theme" in prefs and prefs["theme"] not in THEMES:
        raise bad_request("Invalid theme value")
    if "calendarView" in prefs and prefs["calendarView"] not in CALENDAR_VIEWS:
        raise bad_request("Invalid calendarView value")
    me.preferences = {**(me.preferences or {}), **prefs}
    db.session.commit()
    return ok(me.preferences)


@bp.put("/password")
@requires_profile
def change_password():
    me = current_profile()
    d = json_body()
    current, new = d.get("current_password"), d.get("new_password")
    if not isinstance(current, str) or not isinstance(new, str) or not current or not new:
        raise bad_request("Current password and new password are required")
    if len(new) < MIN_PASSWORD_LENGTH:
        raise bad_request(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not me.user.check_password(current):
        raise bad_request("Current password is incorrect")
    me.user.set_password(new)
    db.session.commit()
    return ok({"updated": True})


@bp.get("/department")
@requires_profile
def my_department():
    me = current_profile()
    if me.department is None:
        return ok(None, message="No department assigned")
    return ok(department_row(me.department))


@bp.get("/locations")
@requires_profile
def my_locations():
    me = current_profile()
    rows = (Location.query
            .join(UserLocation, UserLocation.location_id == Location.id)
            .filter(UserLocation.user_id == me.id)
            .order_by(Location.name.asc())
            .all())
    return ok([{"id": x.id, "name": x.name, "address": x.address, "is_active": x.is_active} for x in rows])
