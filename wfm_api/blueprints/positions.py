# wfm_api/blueprints/positions.py
from flask import Blueprint
from sqlalchemy import func

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, conflict, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import arg_bool, as_bool, as_int, iso
from wfm_api.extensions import db
from wfm_api.models.org import Position
from wfm_api.services.audit import record_audit

bp = Blueprint("positions", __name__, url_prefix="/api/v1/positions")


def position_row(p: Position):
    return {
        "id": p.id,
        "name": p.name,
        "color": p.color,
        "description": p.description,
        "sort_order": p.sort_order,
        "is_active": p.is_active,
        "created_at": iso(p.created_at),
    }


def _get(me, position_id) -> Position:
    p = db.session.get(Position, position_id)
    if p is None or p.organization_id != me.organization_id:
        raise not_found("Position not found")
    return p


def _apply(me, p: Position, d):
    if "name" in d:
        name = d["name"].strip() if isinstance(d["name"], str) else ""
        if not name:
            raise bad_request("Position name is required")
        clash = (Position.query
                 .filter(Position.organization_id == me.organization_id,
                         func.lower(Position.name) == name.lower(),
                         Position.id != (p.id or 0))
                 .first())
        if clash is not None:
            raise conflict("A position with this name already exists")
        p.name = name
    if "color" in d:
        p.color = d["color"] or "blue"
    if "description" in d:
        p.description = d["description"]
    if "sort_order" in d:
        p.sort_order = as_int(d["sort_order"], "sort_order") or 0
    if "is_active" in d:
        p.is_active = as_bool(d["is_active"], "is_active", default=p.is_active)


@bp.get("")
@requires_perm("positions.read")
def list_positions():
    me = current_profile()
    qry = Position.query.filter_by(organization_id=me.organization_id)
    if arg_bool("active_only") is not False:
        qry = qry.filter(Position.is_active.is_(True))
    return ok([position_row(p) for p in qry.order_by(Position.sort_order.asc(), Position.name.asc()).all()])


@bp.post("")
@requires_perm("positions.create")
def create_position():
    me = current_profile()
    d = json_body()
    if "name" not in d:
        raise bad_request("Position name is required")
    p = Position(organization_id=me.organization_id)
    _apply(me, p, d)
    db.session.add(p)
    db.session.flush()
    record_audit(me, "create", "positions", p.id, new_data=position_row(p))
    db.session.commit()
    return ok(position_row(p), status=201)


@bp.get("/<int:position_id>")
@requires_perm("positions.read")
def get_position(position_id: int):
    return ok(position_row(_get(current_profile(), position_id)))


@bp.put("/<int:position_id>")
@requires_perm("positions.update")
def update_position(position_id: int):
    me = current_profile()
    p = _get(me, position_id)
    before = position_row(p)
    _apply(me, p, json_body())
    record_audit(me, "update", "positions", p.id, old_data=before, new_data=position_row(p))
    db.session.commit()
    return ok(position_row(p))


@bp.delete("/<int:position_id>")
@requires_perm("positions.delete")
def delete_position(position_id: int):
    me = current_profile()
    p = _get(me, position_id)
    p.is_active = False
    record_audit(me, "deactivate", "positions", p.id)
    db.session.commit()
    return ok({"id": position_id, "is_active": False})
