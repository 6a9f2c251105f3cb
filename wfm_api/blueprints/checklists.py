# wfm_api/blueprints/checklists.py
from datetime import datetime

from flask import Blueprint, request

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, forbidden, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import parse_date, iso, as_bool, as_int_list
from wfm_api.extensions import db
from wfm_api.models.checklist import Checklist, ChecklistAssignment, ASSIGNMENT_STATUSES
from wfm_api.models.user import Profile
from wfm_api.rbac import is_privileged
from wfm_api.services.notifications import notify

bp = Blueprint("checklists", __name__, url_prefix="/api/v1/checklists")


def _row(c: Checklist):
    return {
        "id": c.id,
        "title": c.title,
        "description": c.description,
        "items": c.items or [],
        "is_active": c.is_active,
        "created_by": c.created_by,
        "created_at": iso(c.created_at),
    }


def _assignment_row(a: ChecklistAssignment):
    items = (a.checklist.items or []) if a.checklist else []
    done = a.completed_items or []
    return {
        "id": a.id,
        "checklist_id": a.checklist_id,
        "checklist_title": a.checklist.title if a.checklist else None,
        "user_id": a.user_id,
        "due_date": iso(a.due_date),
        "status": a.status,
        "completed_items": done,
        "progress": round(len(done) / len(items) * 100) if items else 0,
        "completed_at": iso(a.completed_at),
    }


def _get(me, checklist_id) -> Checklist:
    c = db.session.get(Checklist, checklist_id)
    if c is None or c.organization_id != me.organization_id:
        raise not_found("Checklist not found")
    return c


def _items(value):
    if not isinstance(value, list) or not all(isinstance(i, str) and i.strip() for i in value):
        raise bad_request("items must be a list of non-empty strings")
    return [i.strip() for i in value]


# ---------- checklists ----------
@bp.get("")
@requires_perm("checklists.read")
def list_checklists():
    me = current_profile()
    qry = Checklist.query.filter_by(organization_id=me.organization_id)
    if not is_privileged(me):
        qry = qry.filter(Checklist.is_active.is_(True))
    return ok([_row(c) for c in qry.order_by(Checklist.title.asc()).all()])


@bp.post("")
@requires_perm("checklists.manage")
def create_checklist():
    me = current_profile()
    d = json_body()
    title = d.get("title")
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        raise bad_request("title is required")
    c = Checklist(
        organization_id=me.organization_id,
        title=title,
        description=d.get("description"),
        items=_items(d.get("items") or []),
        is_active=as_bool(d.get("is_active"), "is_active", default=True),
        created_by=me.id,
    )
    db.session.add(c)
    db.session.commit()
    return ok(_row(c), status=201)


@bp.get("/<int:checklist_id>")
@requires_perm("checklists.read")
def get_checklist(checklist_id: int):
    return ok(_row(_get(current_profile(), checklist_id)))


@bp.put("/<int:checklist_id>")
@requires_perm("checklists.manage")
def update_checklist(checklist_id: int):
    c = _get(current_profile(), checklist_id)
    d = json_body()
    if "title" in d:
        if not isinstance(d["title"], str) or not d["title"].strip():
            raise bad_request("title is required")
        c.title = d["title"].strip()
    if "description" in d:
        c.description = d["description"]
    if "items" in d:
        c.items = _items(d["items"])
    if "is_active" in d:
        c.is_active = as_bool(d["is_active"], "is_active", default=c.is_active)
    db.session.commit()
    return ok(_row(c))


@bp.delete("/<int:checklist_id>")
@requires_perm("checklists.manage")
def delete_checklist(checklist_id: int):
    c = _get(current_profile(), checklist_id)
    db.session.delete(c)
    db.session.commit()
    return ok({"id": checklist_id, "deleted": True})


# ---------- assignments ----------
@bp.post("/<int:checklist_id>/assign")
@requires_perm("checklists.manage")
def assign(checklist_id: int):
    me = current_profile()
    c = _get(me, checklist_id)
    d = json_body()
    ids = d.get("user_ids") or []
    if not ids:
        raise bad_request("user_ids is required")
    wanted = set(as_int_list(ids, "user_ids"))
    members = Profile.query.filter(Profile.id.in_(wanted),
                                   Profile.organization_id == me.organization_id).all()
    if len(members) != len(wanted):
        raise bad_request("Some user_ids are not members of this organization")
    due = parse_date(d.get("due_date"), "due_date")
    rows = []
    for m in members:
        a = ChecklistAssignment(checklist_id=c.id, user_id=m.id, due_date=due,
                                completed_items=[], assigned_by=me.id)
        db.session.add(a)
        rows.append(a)
        notify(me.organization_id, m.id, "checklist_assigned", f"New checklist: {c.title}",
               None, {"checklist_id": c.id})
    db.session.commit()
    return ok([_assignment_row(a) for a in rows], status=201)


@bp.get("/assignments")
@requires_perm("checklists.read")
def list_assignments():
    me = current_profile()
    qry = (ChecklistAssignment.query
           .join(Checklist, Checklist.id == ChecklistAssignment.checklist_id)
           .filter(Checklist.organization_id == me.organization_id))
    uid = request.args.get("user_id", type=int)
    if is_privileged(me):
        if uid:
            qry = qry.filter(ChecklistAssignment.user_id == uid)
    else:
        qry = qry.filter(ChecklistAssignment.user_id == me.id)
    st = request.args.get("status")
    if st:
        qry = qry.filter(ChecklistAssignment.status == st)
    rows = qry.order_by(ChecklistAssignment.due_date.asc(), ChecklistAssignment.id.asc()).all()
    return ok([_assignment_row(a) for a in rows])


@bp.put("/assignments/<int:assignment_id>")
@requires_perm("checklists.update")
def update_assignment(assignment_id: int):
    """Assignee ticks items; the assignment completes when every item is done."""
    me = current_profile()
    a = db.session.get(ChecklistAssignment, assignment_id)
    if a is None or a.checklist.organization_id != me.organization_id:
        raise not_found("Assignment not found")
    if a.user_id != me.id and not is_privileged(me):
        raise forbidden("You can only update your own checklists")

    d = json_body()
    total = len(a.checklist.items or [])
    if "completed_items" in d:
        done = d["completed_items"]
        if not isinstance(done, list) or any(not isinstance(i, int) or i < 0 or i >= total for i in done):
            raise bad_request("completed_items must be item indexes")
        a.completed_items = sorted(set(done))
    if "status" in d:
        if d["status"] not in ASSIGNMENT_STATUSES:
            raise bad_request(f"status must be one of {', '.join(ASSIGNMENT_STATUSES)}")
        a.status = d["status"]

    if total and len(a.completed_items or []) == total:
        a.status = "completed"
    elif a.completed_items and a.status == "pending":
        a.status = "in_progress"
    a.completed_at = datetime.utcnow() if a.status == "completed" else None
    db.session.commit()
    return ok(_assignment_row(a))
