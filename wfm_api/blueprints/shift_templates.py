# wfm_api/blueprints/shift_templates.py
from flask import Blueprint

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import limit_offset, page_meta, arg_bool, as_bool, as_hhmm, as_int, iso
from wfm_api.extensions import db
from wfm_api.models.org import Position
from wfm_api.models.shift import ShiftTemplate

bp = Blueprint("shift_templates", __name__, url_prefix="/api/v1/shift-templates")


def template_row(t: ShiftTemplate):
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "start_time": t.start_time,
        "end_time": t.end_time,
        "break_minutes": t.break_minutes,
        "position_id": t.position_id,
        "position_name": t.position.name if t.position else None,
        "color": t.color,
        "is_active": t.is_active,
        "created_at": iso(t.created_at),
    }


def _get(me, template_id) -> ShiftTemplate:
    t = db.session.get(ShiftTemplate, template_id)
    if t is None or t.organization_id != me.organization_id:
        raise not_found("Shift template not found")
    return t


def _apply(me, t: ShiftTemplate, d):
    if "name" in d:
        name = d["name"].strip() if isinstance(d["name"], str) else ""
        if not name:
            raise bad_request("Template name is required")
        t.name = name
    for k in ("start_time", "end_time"):
        if k in d:
            setattr(t, k, as_hhmm(d[k], k, required=True))
    if "description" in d:
        t.description = d["description"]
    if "color" in d:
        t.color = d["color"] or "blue"
    if "break_minutes" in d:
        mins = as_int(d["break_minutes"], "break_minutes") or 0
        if mins < 0:
            raise bad_request("break_minutes cannot be negative")
        t.break_minutes = mins
    if "position_id" in d:
        pid = as_int(d["position_id"], "position_id")
        if pid is not None:
            pos = db.session.get(Position, pid)
            if pos is None or pos.organization_id != me.organization_id:
                raise bad_request("Invalid position_id")
        t.position_id = pid
    if "is_active" in d:
        t.is_active = as_bool(d["is_active"], "is_active", default=t.is_active)


@bp.get("")
@requires_perm("shift_templates.read")
def list_templates():
    me = current_profile()
    active = arg_bool("is_active")
    qry = ShiftTemplate.query.filter(ShiftTemplate.organization_id == me.organization_id,
                                     ShiftTemplate.is_active.is_(True if active is None else active))
    limit, offset = limit_offset(default=100, maximum=500)
    total = qry.count()
    items = qry.order_by(ShiftTemplate.name.asc()).offset(offset).limit(limit).all()
    return ok([template_row(t) for t in items], **page_meta(total, limit, offset))


@bp.post("")
@requires_perm("shift_templates.create")
def create_template():
    me = current_profile()
    d = json_body()
    if "name" not in d:
        raise bad_request("Template name is required")
    if d.get("start_time") in (None, "") or d.get("end_time") in (None, ""):
        raise bad_request("start_time and end_time are required")
    t = ShiftTemplate(organization_id=me.organization_id, break_minutes=0, color="blue")
    _apply(me, t, d)
    db.session.add(t)
    db.session.commit()
    return ok(template_row(t), status=201)


@bp.get("/<int:template_id>")
@requires_perm("shift_templates.read")
def get_template(template_id: int):
    return ok(template_row(_get(current_profile(), template_id)))


@bp.put("/<int:template_id>")
@requires_perm("shift_templates.update")
def update_template(template_id: int):
    me = current_profile()
    t = _get(me, template_id)
    _apply(me, t, json_body())
    db.session.commit()
    return ok(template_row(t))


@bp.delete("/<int:template_id>")
@requires_perm("shift_templates.delete")
def delete_template(template_id: int):
    me = current_profile()
    t = _get(me, template_id)
    db.session.delete(t)
    db.session.commit()
    return ok({"id": template_id, "deleted": True})
