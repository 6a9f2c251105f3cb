# wfm_api/common/auth.py
"""
JWT identity → organization-scoped Profile.

Access tokens carry the user id as identity and an "org_id" claim naming
the organization the session acts in.
"""
from __future__ import annotations

from functools import wraps

from flask import current_app
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from wfm_api.common.errors import unauthorized, forbidden, not_found
from wfm_api.models.user import Profile
from wfm_api.rbac import can


def _resolve_profile() -> Profile:
    uid = get_jwt_identity()
    if uid is None:
        raise unauthorized()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        raise unauthorized("Invalid token identity")

    claims = get_jwt() or {}
    q = Profile.query.filter(Profile.user_id == uid)
    org_id = claims.get("org_id")
    if org_id is not None:
        q = q.filter(Profile.organization_id == int(org_id))
    profile = q.order_by(Profile.id.asc()).first()
    if profile is None:
        raise not_found("Profile not found")
    if not profile.is_active:
        raise forbidden("Profile is not active")
    return profile


def current_profile() -> Profile:
    """Profile behind the current access token, re-read on every call."""
    return _resolve_profile()


# ---------- decorators ----------

def requires_profile(fn):
    """Authenticated request with an active org membership."""
    @wraps(fn)
    @jwt_required()
    def inner(*args, **kwargs):
        current_profile()
        return fn(*args, **kwargs)
    return inner


def requires_perm(*perm_codes: str):
    """
    Require ANY of the given capabilities for the caller's role. Ownership
    (self-only grants) is left to the handler, which knows the record.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            prof = current_profile()
            if perm_codes and not any(can(prof, p) for p in perm_codes):
                current_app.logger.warning(
                    "RBAC deny: profile=%s role=%s missing=%s", prof.id, prof.role, ",".join(perm_codes)
                )
                raise forbidden()
            return fn(*args, **kwargs)
        return inner
    return outer
