# wfm_api/blueprints/organization.py
from flask import Blueprint, request
from sqlalchemy import or_

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, forbidden, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import arg_bool, as_bool, as_float, as_hhmm, as_int, as_int_list, iso
from wfm_api.extensions import db
from wfm_api.models.org import Organization, Location, Department, Position
from wfm_api.models.user import Profile, User, UserPosition, UserLocation, ROLES
from wfm_api.rbac import is_admin
from wfm_api.services.audit import record_audit
from wfm_api.services.org_settings import validate_timezone

bp = Blueprint("organization", __name__, url_prefix="/api/v1")


# ---------- row shapes ----------
def _org_row(o: Organization):
    return {"id": o.id, "name": o.name, "slug": o.slug, "timezone": o.timezone,
            "created_at": iso(o.created_at)}


def _location_row(x: Location):
    return {
        "id": x.id,
        "name": x.name,
        "address": x.address,
        "latitude": x.latitude,
        "longitude": x.longitude,
        "radius_meters": x.radius_meters,
        "geofence_enabled": x.geofence_enabled,
        "allow_clock_outside": x.allow_clock_outside,
        "is_active": x.is_active,
        "created_at": iso(x.created_at),
    }


def _member_row(p: Profile):
    return {
        "id": p.id,
        "user_id": p.user_id,
        "email": p.user.email if p.user else None,
        "name": p.name,
        "first_name": p.first_name,
        "last_name": p.last_name,
        "role": p.role,
        "status": p.status,
        "phone": p.phone,
        "department_id": p.department_id,
        "department": p.department.name if p.department else None,
        "allow_time_edit": p.allow_time_edit,
        "hourly_rate": float(p.hourly_rate) if p.hourly_rate is not None else None,
        "auto_clock_out_enabled": p.auto_clock_out_enabled,
        "auto_clock_out_time": p.auto_clock_out_time,
    }


# ---------- organization ----------
@bp.get("/organization")
@requires_perm("organizations.read")
def get_org():
    return ok(_org_row(db.session.get(Organization, current_profile().organization_id)))


@bp.put("/organization")
@requires_perm("organizations.update")
def update_org():
    me = current_profile()
    org = db.session.get(Organization, me.organization_id)
    d = json_body()
    before = _org_row(org)
    if "name" in d:
        if not (d["name"] or "").strip():
            raise bad_request("name is required")
        org.name = d["name"].strip()
    if "timezone" in d:
        if d["timezone"] is not None and not isinstance(d["timezone"], str):
            raise bad_request("timezone must be a string")
        org.timezone = validate_timezone(d["timezone"])
    record_audit(me, "update", "organizations", org.id, old_data=before, new_data=_org_row(org))
    db.session.commit()
    return ok(_org_row(org))


# ---------- locations ----------
_LOC_NUMBERS = {"latitude": as_float, "longitude": as_float, "radius_meters": as_int}
_LOC_FLAGS = ("geofence_enabled", "allow_clock_outside", "is_active")


def _apply_location(x: Location, d):
    for k in ("name", "address"):
        if k in d:
            setattr(x, k, d[k])
    for k, conv in _LOC_NUMBERS.items():
        if k in d:
            setattr(x, k, conv(d[k], k))
    for k in _LOC_FLAGS:
        if k in d:
            v = as_bool(d[k], k)
            if v is not None:
                setattr(x, k, v)
    if not isinstance(x.name, str) or not x.name.strip():
        raise bad_request("name is required")
    if x.latitude is not None and not -90 <= float(x.latitude) <= 90:
        raise bad_request("latitude must be between -90 and 90")
    if x.longitude is not None and not -180 <= float(x.longitude) <= 180:
        raise bad_request("longitude must be between -180 and 180")
    if x.radius_meters is not None and x.radius_meters <= 0:
        raise bad_request("radius_meters must be positive")


def _location(me, loc_id) -> Location:
    x = db.session.get(Location, loc_id)
    if x is None or x.organization_id != me.organization_id:
        raise not_found("Location not found")
    return x


@bp.get("/locations")
@requires_perm("locations.read")
def list_locations():
    me = current_profile()
    qry = Location.query.filter_by(organization_id=me.organization_id)
    active = arg_bool("is_active")
    if active is not None:
        qry = qry.filter(Location.is_active.is_(active))
    return ok([_location_row(x) for x in qry.order_by(Location.name.asc()).all()])


@bp.post("/locations")
@requires_perm("locations.create")
def create_location():
    me = current_profile()
    x = Location(organization_id=me.organization_id)
    _apply_location(x, json_body())
    db.session.add(x)
    db.session.commit()
    return ok(_location_row(x), status=201)


@bp.get("/locations/<int:loc_id>")
@requires_perm("locations.read")
def get_location(loc_id: int):
    return ok(_location_row(_location(current_profile(), loc_id)))


@bp.put("/locations/<int:loc_id>")
@requires_perm("locations.update")
def update_location(loc_id: int):
    me = current_profile()
    x = _location(me, loc_id)
    before = _location_row(x)
    _apply_location(x, json_body())
    record_audit(me, "update", "locations", x.id, old_data=before, new_data=_location_row(x))
    db.session.commit()
    return ok(_location_row(x))


@bp.delete("/locations/<int:loc_id>")
@requires_perm("locations.delete")
def delete_location(loc_id: int):
    me = current_profile()
    x = _location(me, loc_id)
    # punches and shifts keep pointing at it; just retire it
    x.is_active = False
    record_audit(me, "deactivate", "locations", x.id)
    db.session.commit()
    return ok({"id": loc_id, "is_active": False})


# ---------- team ----------
def _org_department_id(me, value):
    dept_id = as_int(value, "department_id")
    if dept_id is None:
        return None
    dept = db.session.get(Department, dept_id)
    if dept is None or dept.organization_id != me.organization_id:
        raise bad_request("Invalid department_id")
    return dept.id


@bp.get("/team")
@requires_perm("employees.read")
def list_team():
    me = current_profile()
    qry = Profile.query.join(User, User.id == Profile.user_id).filter(Profile.organization_id == me.organization_id)
    role = request.args.get("role")
    if role:
        qry = qry.filter(Profile.role == role)
    status = request.args.get("status")
    if status:
        qry = qry.filter(Profile.status == status)
    q = (request.args.get("q") or "").strip()
    if q:
        like = f"%{q}%"
        qry = qry.filter(or_(Profile.first_name.ilike(like), Profile.last_name.ilike(like),
                             Profile.display_name.ilike(like), User.email.ilike(like)))
    return ok([_member_row(p) for p in qry.order_by(Profile.id.asc()).all()])


@bp.put("/team/<int:profile_id>")
@requires_perm("employees.update")
def update_member(profile_id: int):
    me = current_profile()
    p = db.session.get(Profile, profile_id)
    if p is None or p.organization_id != me.organization_id:
        raise not_found("Team member not found")
    d = json_body()
    before = _member_row(p)

    if "role" in d or "status" in d:
        if not is_admin(me):
            raise forbidden("Only admins can change roles or status")
        if p.role == "owner" or d.get("role") == "owner":
            raise forbidden("The owner role cannot be changed here")
        if p.id == me.id:
            raise bad_request("You cannot change your own role or status")
    if "role" in d:
        if d["role"] not in ROLES:
            raise bad_request(f"role must be one of {', '.join(ROLES)}")
        p.role = d["role"]
    if "status" in d:
        if d["status"] not in ("active", "inactive"):
            raise bad_request("status must be active or inactive")
        p.status = d["status"]
    for k in ("first_name", "last_name", "display_name", "phone"):
        if k in d:
            setattr(p, k, d[k])
    if "department_id" in d:
        p.department_id = _org_department_id(me, d["department_id"])
    if "hourly_rate" in d:
        rate = as_float(d["hourly_rate"], "hourly_rate")
        if rate is not None and rate < 0:
            raise bad_request("hourly_rate cannot be negative")
        p.hourly_rate = rate
    for k in ("auto_clock_out_enabled", "allow_time_edit"):
        if k in d:
            setattr(p, k, as_bool(d[k], k, default=getattr(p, k)))
    if "auto_clock_out_time" in d:
        p.auto_clock_out_time = as_hhmm(d["auto_clock_out_time"], "auto_clock_out_time")

    record_audit(me, "update", "profiles", p.id, old_data=before, new_data=_member_row(p))
    db.session.commit()
    return ok(_member_row(p))


# ---------- member positions / locations ----------
def _member(me, profile_id) -> Profile:
    p = db.session.get(Profile, profile_id)
    if p is None or p.organization_id != me.organization_id:
        raise not_found("Member not found")
    return p


def _org_position(me, position_id) -> Position:
    pos = db.session.get(Position, as_int(position_id, "position_id", required=True))
    if pos is None or pos.organization_id != me.organization_id:
        raise not_found("Position not found")
    return pos


def _org_location(me, location_id) -> Location:
    loc = db.session.get(Location, as_int(location_id, "location_id", required=True))
    if loc is None or loc.organization_id != me.organization_id:
        raise not_found("Location not found")
    return loc


def _wage(value):
    rate = as_float(value, "wage_rate")
    if rate is not None and rate < 0:
        raise bad_request("wage_rate cannot be negative")
    return rate


def _member_position_row(up: UserPosition):
    pos = up.position
    return {
        "id": up.id,
        "is_primary": up.is_primary,
        "wage_rate": float(up.wage_rate) if up.wage_rate is not None else None,
        "position": {"id": pos.id, "name": pos.name, "color": pos.color} if pos else None,
    }


def _member_location_row(ul: UserLocation):
    loc = ul.location
    return {"id": ul.id, "location": {"id": loc.id, "name": loc.name, "address": loc.address} if loc else None}


@bp.get("/team/<int:profile_id>/positions")
@requires_perm("employees.read")
def list_member_positions(profile_id: int):
    p = _member(current_profile(), profile_id)
    rows = sorted(p.positions, key=lambda up: (not up.is_primary, up.id))
    return ok([_member_position_row(up) for up in rows])


@bp.post("/team/<int:profile_id>/positions")
@requires_perm("employees.update")
def add_member_position(profile_id: int):
    me = current_profile()
    d = json_body()
    if d.get("position_id") in (None, ""):
        raise bad_request("position_id is required")
    p = _member(me, profile_id)
    pos = _org_position(me, d["position_id"])
    if any(up.position_id == pos.id for up in p.positions):
        raise bad_request("Position already assigned to this member")

    primary = as_bool(d.get("is_primary"), "is_primary", default=False)
    if primary:
        for up in p.positions:
            up.is_primary = False
    up = UserPosition(position_id=pos.id, is_primary=primary, wage_rate=_wage(d.get("wage_rate")))
    p.positions.append(up)
    record_audit(me, "assign_position", "profiles", p.id, new_data={"position_id": pos.id})
    db.session.commit()
    return ok(_member_position_row(up), status=201)


@bp.put("/team/<int:profile_id>/positions")
@requires_perm("employees.update")
def replace_member_positions(profile_id: int):
    """Replace the whole assignment list; the first entry becomes primary."""
    me = current_profile()
    p = _member(me, profile_id)
    items = json_body().get("positions")
    if not isinstance(items, list):
        raise bad_request("positions must be a list")

    fresh, seen = [], set()
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise bad_request("positions must be a list of objects")
        pos = _org_position(me, item.get("position_id"))
        if pos.id in seen:
            raise bad_request("Duplicate position_id in positions")
        seen.add(pos.id)
        fresh.append(UserPosition(position_id=pos.id, is_primary=(i == 0), wage_rate=_wage(item.get("wage_rate"))))

    p.positions.clear()
    db.session.flush()
    p.positions.extend(fresh)
    record_audit(me, "replace_positions", "profiles", p.id, new_data={"position_ids": sorted(seen)})
    db.session.commit()
    return ok([_member_position_row(up) for up in p.positions])


@bp.delete("/team/<int:profile_id>/positions/<int:position_id>")
@requires_perm("employees.update")
def remove_member_position(profile_id: int, position_id: int):
    me = current_profile()
    p = _member(me, profile_id)
    up = next((x for x in p.positions if x.position_id == position_id), None)
    if up is None:
        raise not_found("Position not assigned to this member")
    p.positions.remove(up)
    record_audit(me, "unassign_position", "profiles", p.id, old_data={"position_id": position_id})
    db.session.commit()
    return ok({"position_id": position_id, "removed": True})


@bp.get("/team/<int:profile_id>/locations")
@requires_perm("employees.read")
def list_member_locations(profile_id: int):
    p = _member(current_profile(), profile_id)
    return ok([_member_location_row(ul) for ul in sorted(p.locations, key=lambda ul: ul.id)])


@bp.post("/team/<int:profile_id>/locations")
@requires_perm("employees.update")
def add_member_location(profile_id: int):
    me = current_profile()
    d = json_body()
    if d.get("location_id") in (None, ""):
        raise bad_request("location_id is required")
    p = _member(me, profile_id)
    loc = _org_location(me, d["location_id"])
    if any(ul.location_id == loc.id for ul in p.locations):
        raise bad_request("Location already assigned to this member")
    ul = UserLocation(location_id=loc.id)
    p.locations.append(ul)
    db.session.commit()
    return ok(_member_location_row(ul), status=201)


@bp.put("/team/<int:profile_id>/locations")
@requires_perm("employees.update")
def replace_member_locations(profile_id: int):
    me = current_profile()
    p = _member(me, profile_id)
    ids = json_body().get("location_ids")
    wanted = []
    for loc_id in as_int_list(ids, "location_ids"):
        loc = _org_location(me, loc_id)
        if loc.id not in wanted:
            wanted.append(loc.id)
    p.locations.clear()
    db.session.flush()
    p.locations.extend(UserLocation(location_id=i) for i in wanted)
    db.session.commit()
    return ok([_member_location_row(ul) for ul in p.locations])


@bp.delete("/team/<int:profile_id>/locations/<int:location_id>")
@requires_perm("employees.update")
def remove_member_location(profile_id: int, location_id: int):
    p = _member(current_profile(), profile_id)
    ul = next((x for x in p.locations if x.location_id == location_id), None)
    if ul is None:
        raise not_found("Location not assigned to this member")
    p.locations.remove(ul)
    db.session.commit()
    return ok({"location_id": location_id, "removed": True})
