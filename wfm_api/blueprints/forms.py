# wfm_api/blueprints/forms.py
from datetime import datetime

from flask import Blueprint, request

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import limit_offset, page_meta, iso, as_bool
from wfm_api.extensions import db
from wfm_api.models.form import FormTemplate, FormSubmission, FIELD_TYPES
from wfm_api.rbac import is_privileged

bp = Blueprint("forms", __name__, url_prefix="/api/v1/forms")


def _template_row(t: FormTemplate):
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "fields": t.fields or [],
        "is_active": t.is_active,
        "created_by": t.created_by,
        "created_at": iso(t.created_at),
    }


def _submission_row(s: FormSubmission):
    return {
        "id": s.id,
        "template_id": s.template_id,
        "template_name": s.template.name if s.template else None,
        "user_id": s.user_id,
        "data": s.data,
        "status": s.status,
        "reviewed_by": s.reviewed_by,
        "reviewed_at": iso(s.reviewed_at),
        "created_at": iso(s.created_at),
    }


def _fields(value):
    if not isinstance(value, list):
        raise bad_request("fields must be a list")
    seen = set()
    out = []
    for f in value:
        if not isinstance(f, dict) or not (f.get("name") or "").strip():
            raise bad_request("every field needs a name")
        name = f["name"].strip()
        if name in seen:
            raise bad_request(f"duplicate field name: {name}")
        seen.add(name)
        ftype = f.get("type") or "text"
        if ftype not in FIELD_TYPES:
            raise bad_request(f"field {name}: type must be one of {', '.join(FIELD_TYPES)}")
        out.append({"name": name, "label": f.get("label") or name, "type": ftype,
                    "required": as_bool(f.get("required"), "required", default=False), "options": f.get("options")})
    return out


def _check_answers(template, data):
    if not isinstance(data, dict):
        raise bad_request("data must be an object")
    missing = [f["name"] for f in (template.fields or [])
               if f.get("required") and data.get(f["name"]) in (None, "", [])]
    if missing:
        raise bad_request(f"Missing required field(s): {', '.join(missing)}", {"missing": missing})
    known = {f["name"] for f in (template.fields or [])}
    return {k: v for k, v in data.items() if k in known}


def _template(me, template_id) -> FormTemplate:
    t = db.session.get(FormTemplate, template_id)
    if t is None or t.organization_id != me.organization_id:
        raise not_found("Form not found")
    return t


# ---------- templates ----------
@bp.get("")
@requires_perm("forms.read")
def list_templates():
    me = current_profile()
    qry = FormTemplate.query.filter_by(organization_id=me.organization_id)
    if not is_privileged(me):
        qry = qry.filter(FormTemplate.is_active.is_(True))
    return ok([_template_row(t) for t in qry.order_by(FormTemplate.name.asc()).all()])


@bp.post("")
@requires_perm("forms.manage")
def create_template():
    me = current_profile()
    d = json_body()
    name = d.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise bad_request("name is required")
    t = FormTemplate(
        organization_id=me.organization_id,
        name=name,
        description=d.get("description"),
        fields=_fields(d.get("fields") or []),
        is_active=as_bool(d.get("is_active"), "is_active", default=True),
        created_by=me.id,
    )
    db.session.add(t)
    db.session.commit()
    return ok(_template_row(t), status=201)


@bp.get("/<int:template_id>")
@requires_perm("forms.read")
def get_template(template_id: int):
    return ok(_template_row(_template(current_profile(), template_id)))


@bp.put("/<int:template_id>")
@requires_perm("forms.manage")
def update_template(template_id: int):
    t = _template(current_profile(), template_id)
    d = json_body()
    if "name" in d:
        if not isinstance(d["name"], str) or not d["name"].strip():
            raise bad_request("name is required")
        t.name = d["name"].strip()
    if "description" in d:
        t.description = d["description"]
    if "fields" in d:
        t.fields = _fields(d["fields"])
    if "is_active" in d:
        t.is_active = as_bool(d["is_active"], "is_active", default=t.is_active)
    db.session.commit()
    return ok(_template_row(t))


@bp.delete("/<int:template_id>")
@requires_perm("forms.manage")
def delete_template(template_id: int):
    t = _template(current_profile(), template_id)
    db.session.delete(t)
    db.session.commit()
    return ok({"id": template_id, "deleted": True})


# ---------- submissions ----------
@bp.post("/<int:template_id>/submissions")
@requires_perm("forms.create")
def submit(template_id: int):
    me = current_profile()
    t = _template(me, template_id)
    if not t.is_active:
        raise bad_request("This form is not active")
    s = FormSubmission(template_id=t.id, user_id=me.id,
                       data=_check_answers(t, json_body().get("data")), status="submitted")
    db.session.add(s)
    db.session.commit()
    return ok(_submission_row(s), status=201)


@bp.get("/submissions")
@requires_perm("forms.read")
def list_submissions():
    me = current_profile()
    qry = (FormSubmission.query
           .join(FormTemplate, FormTemplate.id == FormSubmission.template_id)
           .filter(FormTemplate.organization_id == me.organization_id))
    if is_privileged(me):
        uid = request.args.get("user_id", type=int)
        if uid:
            qry = qry.filter(FormSubmission.user_id == uid)
    else:
        qry = qry.filter(FormSubmission.user_id == me.id)
    tid = request.args.get("template_id", type=int)
    if tid:
        qry = qry.filter(FormSubmission.template_id == tid)

    limit, offset = limit_offset()
    total = qry.count()
    rows = qry.order_by(FormSubmission.created_at.desc(), FormSubmission.id.desc()).offset(offset).limit(limit).all()
    return ok([_submission_row(s) for s in rows], **page_meta(total, limit, offset))


@bp.put("/submissions/<int:submission_id>/review")
@requires_perm("forms.manage")
def review(submission_id: int):
    me = current_profile()
    s = db.session.get(FormSubmission, submission_id)
    if s is None or s.template.organization_id != me.organization_id:
        raise not_found("Submission not found")
    s.status = "reviewed"
    s.reviewed_by = me.id
    s.reviewed_at = datetime.utcnow()
    db.session.commit()
    return ok(_submission_row(s))
