# wfm_api/blueprints/settings.py
from dataclasses import asdict

from flask import Blueprint

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import forbidden, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.extensions import db
from wfm_api.models.org import Organization
from wfm_api.rbac import is_admin
from wfm_api.services.audit import record_audit
from wfm_api.services.org_settings import load_section, update_section

bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")

# url slug -> settings section; time-clock writes are admin-only
_SECTIONS = {
    "time-clock": "time_clock",
    "shift-swap": "shift_swap",
    "schedule": "schedule",
}
_ADMIN_ONLY = {"time_clock"}


def _section(slug):
    section = _SECTIONS.get(slug)
    if section is None:
        raise not_found("Unknown settings section")
    return section


@bp.get("/<slug>")
@requires_perm("settings.read", "schedules.read")
def get_settings(slug):
    section = _section(slug)
    org = db.session.get(Organization, current_profile().organization_id)
    return ok(asdict(load_section(org, section)))


@bp.put("/<slug>")
@requires_perm("settings.update")
def put_settings(slug):
    me = current_profile()
    section = _section(slug)
    if section in _ADMIN_ONLY and not is_admin(me):
        raise forbidden("Only admins can change these settings")
    org = db.session.get(Organization, me.organization_id)
    patch = json_body()
    before = asdict(load_section(org, section))
    merged = update_section(org, section, patch)
    record_audit(me, "update", f"settings.{section}", org.id, old_data=before, new_data=asdict(merged))
    db.session.commit()
    return ok(asdict(merged))
