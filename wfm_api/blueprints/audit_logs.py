# wfm_api/blueprints/audit_logs.py
from flask import Blueprint, request

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import not_found
from wfm_api.common.http import ok
from wfm_api.common.paging import limit_offset, page_meta, parse_date, day_start, day_after, iso
from wfm_api.extensions import db
from wfm_api.models.audit import AuditLog

bp = Blueprint("audit_logs", __name__, url_prefix="/api/v1/audit-logs")


def _row(a: AuditLog):
    return {
        "id": a.id,
        "user_id": a.user_id,
        "action": a.action,
        "table_name": a.table_name,
        "record_id": a.record_id,
        "old_data": a.old_data,
        "new_data": a.new_data,
        "created_at": iso(a.created_at),
    }


@bp.get("")
@requires_perm("audit_logs.read")
def list_logs():
    me = current_profile()
    qry = AuditLog.query.filter_by(organization_id=me.organization_id)
    for arg, col in (("table_name", AuditLog.table_name), ("action", AuditLog.action)):
        v = request.args.get(arg)
        if v:
            qry = qry.filter(col == v)
    uid = request.args.get("user_id", type=int)
    if uid:
        qry = qry.filter(AuditLog.user_id == uid)
    start = parse_date(request.args.get("start_date"), "start_date")
    end = parse_date(request.args.get("end_date"), "end_date")
    if start:
        qry = qry.filter(AuditLog.created_at >= day_start(start))
    if end:
        qry = qry.filter(AuditLog.created_at < day_after(end))

    limit, offset = limit_offset()
    total = qry.count()
    rows = qry.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()
    return ok([_row(a) for a in rows], **page_meta(total, limit, offset))


@bp.get("/<int:log_id>")
@requires_perm("audit_logs.read")
def get_log(log_id: int):
    me = current_profile()
    a = db.session.get(AuditLog, log_id)
    if a is None or a.organization_id != me.organization_id:
        raise not_found("Audit log not found")
    return ok(_row(a))
