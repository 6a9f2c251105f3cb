# wfm_api/blueprints/departments.py
from flask import Blueprint
from sqlalchemy import func

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, conflict, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import arg_bool, as_bool, as_int, iso
from wfm_api.extensions import db
from wfm_api.models.org import Department
from wfm_api.models.user import Profile
from wfm_api.services.audit import record_audit

bp = Blueprint("departments", __name__, url_prefix="/api/v1/departments")


def member_count(dept_id) -> int:
    return (db.session.query(func.count(Profile.id))
            .filter(Profile.department_id == dept_id, Profile.status == "active")
            .scalar()) or 0


def department_row(x: Department, count=None):
    return {
        "id": x.id,
        "name": x.name,
        "code": x.code,
        "description": x.description,
        "parent_id": x.parent_id,
        "manager_id": x.manager_id,
        "manager_name": x.manager.name if x.manager else None,
        "sort_order": x.sort_order,
        "is_active": x.is_active,
        "member_count": member_count(x.id) if count is None else count,
        "created_at": iso(x.created_at),
    }


def _get(me, dept_id) -> Department:
    x = db.session.get(Department, dept_id)
    if x is None or x.organization_id != me.organization_id:
        raise not_found("Department not found")
    return x


def _apply(me, x: Department, d):
    if "name" in d:
        name = d["name"].strip() if isinstance(d["name"], str) else ""
        if not name:
            raise bad_request("Department name is required")
        clash = (Department.query
                 .filter(Department.organization_id == me.organization_id,
                         func.lower(Department.name) == name.lower(),
                         Department.id != (x.id or 0))
                 .first())
        if clash is not None:
            raise conflict("A department with this name already exists")
        x.name = name
    for k in ("code", "description"):
        if k in d:
            setattr(x, k, d[k])
    if "sort_order" in d:
        x.sort_order = as_int(d["sort_order"], "sort_order") or 0
    if "is_active" in d:
        x.is_active = as_bool(d["is_active"], "is_active", default=x.is_active)

    if "parent_id" in d:
        parent_id = as_int(d["parent_id"], "parent_id")
        if parent_id is not None:
            if x.id is not None and parent_id == x.id:
                raise bad_request("Cannot set department as its own parent")
            parent = db.session.get(Department, parent_id)
            if parent is None or parent.organization_id != me.organization_id:
                raise bad_request("Invalid parent_id")
        x.parent_id = parent_id
    if "manager_id" in d:
        manager_id = as_int(d["manager_id"], "manager_id")
        if manager_id is not None:
            mgr = db.session.get(Profile, manager_id)
            if mgr is None or mgr.organization_id != me.organization_id:
                raise bad_request("Invalid manager_id")
        x.manager_id = manager_id


@bp.get("")
@requires_perm("departments.read")
def list_departments():
    me = current_profile()
    qry = Department.query.filter_by(organization_id=me.organization_id)
    if arg_bool("active_only") is not False:
        qry = qry.filter(Department.is_active.is_(True))
    rows = qry.order_by(Department.sort_order.asc(), Department.name.asc()).all()

    counts = dict(db.session.query(Profile.department_id, func.count(Profile.id))
                  .filter(Profile.organization_id == me.organization_id,
                          Profile.status == "active",
                          Profile.department_id.isnot(None))
                  .group_by(Profile.department_id)
                  .all())
    return ok([department_row(x, counts.get(x.id, 0)) for x in rows])


@bp.post("")
@requires_perm("departments.create")
def create_department():
    me = current_profile()
    d = json_body()
    if "name" not in d:
        raise bad_request("Department name is required")
    x = Department(organization_id=me.organization_id)
    _apply(me, x, d)
    db.session.add(x)
    db.session.flush()
    record_audit(me, "create", "departments", x.id, new_data={"name": x.name})
    db.session.commit()
    return ok(department_row(x, 0), status=201)


@bp.get("/<int:dept_id>")
@requires_perm("departments.read")
def get_department(dept_id: int):
    return ok(department_row(_get(current_profile(), dept_id)))


@bp.put("/<int:dept_id>")
@requires_perm("departments.update")
def update_department(dept_id: int):
    me = current_profile()
    x = _get(me, dept_id)
    before = department_row(x)
    _apply(me, x, json_body())
    record_audit(me, "update", "departments", x.id, old_data=before, new_data=department_row(x))
    db.session.commit()
    return ok(department_row(x))


@bp.delete("/<int:dept_id>")
@requires_perm("departments.delete")
def delete_department(dept_id: int):
    me = current_profile()
    x = _get(me, dept_id)
    if member_count(x.id):
        raise bad_request("Cannot delete department with active members")
    # shifts and past members keep their reference
    x.is_active = False
    record_audit(me, "deactivate", "departments", x.id)
    db.session.commit()
    return ok({"id": dept_id, "is_active": False})
