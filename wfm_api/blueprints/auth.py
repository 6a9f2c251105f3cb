# wfm_api/blueprints/auth.py
from flask import Blueprint
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required, get_jwt, get_jwt_identity,
)

from wfm_api.common.auth import requires_profile, current_profile
from wfm_api.common.errors import unauthorized, forbidden, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import as_int
from wfm_api.models.user import User, Profile

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


def _claims(p: Profile):
    return {"org_id": p.organization_id, "role": p.role}


def _profile_payload(p: Profile):
    return {
        "id": p.id,
        "user_id": p.user_id,
        "organization_id": p.organization_id,
        "organization_name": p.organization.name if p.organization else None,
        "role": p.role,
        "status": p.status,
        "first_name": p.first_name,
        "last_name": p.last_name,
        "display_name": p.name,
        "email": p.user.email if p.user else None,
    }


def issue_tokens(p: Profile):
    access = create_access_token(identity=str(p.user_id), additional_claims=_claims(p))
    refresh = create_refresh_token(identity=str(p.user_id), additional_claims={"org_id": p.organization_id})
    return access, refresh


@bp.post("/login")
def login():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    u = User.query.filter_by(email=email).first()
    if not u or not u.check_password(password):
        raise unauthorized("Invalid credentials")
    if u.status != "active":
        raise forbidden("Account is disabled")

    q = Profile.query.filter_by(user_id=u.id, status="active")
    org_id = as_int(data.get("organization_id"), "organization_id")
    if org_id is not None:
        q = q.filter(Profile.organization_id == org_id)
    prof = q.order_by(Profile.id.asc()).first()
    if prof is None:
        raise not_found("No active organization membership")

    access, refresh = issue_tokens(prof)
    return ok({
        "access": access,
        "refresh": refresh,
        "profile": _profile_payload(prof),
        "organizations": [p.organization_id for p in u.profiles if p.status == "active"],
    })


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    uid = get_jwt_identity()
    org_id = (get_jwt() or {}).get("org_id")
    try:
        prof = Profile.query.filter_by(user_id=int(uid), organization_id=org_id).first()
    except (TypeError, ValueError):
        raise unauthorized("Invalid token identity")
    if prof is None or not prof.is_active:
        raise unauthorized("Membership no longer active")
    access = create_access_token(identity=str(uid), additional_claims=_claims(prof))
    return ok({"access": access})


@bp.get("/me")
@requires_profile
def me():
    return ok(_profile_payload(current_profile()))
