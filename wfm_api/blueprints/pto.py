# wfm_api/blueprints/pto.py
from datetime import datetime

from flask import Blueprint, request

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, forbidden, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import limit_offset, page_meta, parse_date, iso, as_bool, as_float, as_int
from wfm_api.extensions import db
from wfm_api.models.pto import PTOBalance, PTOPolicy, PTORequest, PTO_REQUEST_STATUSES
from wfm_api.rbac import is_admin, is_privileged
from wfm_api.services import pto_balances
from wfm_api.services.audit import record_audit
from wfm_api.services.notifications import notify, notify_privileged

bp = Blueprint("pto", __name__, url_prefix="/api/v1/pto")


def _today():
    return datetime.utcnow().date()


# ---------- row shapes ----------
def _policy_row(p: PTOPolicy):
    return {
        "id": p.id,
        "name": p.name,
        "pto_type": p.pto_type,
        "annual_allowance": p.annual_allowance,
        "accrual_rate": p.accrual_rate,
        "max_carryover": p.max_carryover,
        "min_notice_days": p.min_notice_days,
        "requires_approval": p.requires_approval,
        "is_active": p.is_active,
    }


def _balance_row(b: PTOBalance):
    return {
        "id": b.id,
        "user_id": b.user_id,
        "policy_id": b.policy_id,
        "policy_name": b.policy.name if b.policy else None,
        "pto_type": b.pto_type,
        "year": b.year,
        "entitled_days": b.entitled_days,
        "used_days": b.used_days,
        "pending_days": b.pending_days,
        "carryover_days": b.carryover_days,
        "adjustment_days": b.adjustment_days,
        "available_days": b.available_days,
    }


def _request_row(r: PTORequest):
    return {
        "id": r.id,
        "user_id": r.user_id,
        "user_name": r.user.name if r.user else None,
        "pto_type": r.pto_type,
        "start_date": iso(r.start_date),
        "end_date": iso(r.end_date),
        "total_days": r.total_days,
        "reason": r.reason,
        "status": r.status,
        "reviewed_by": r.reviewed_by,
        "reviewed_at": iso(r.reviewed_at),
        "review_comment": r.review_comment,
        "created_at": iso(r.created_at),
    }


# ---------- policies ----------
_POLICY_NUMBERS = {"annual_allowance": as_float, "accrual_rate": as_float, "max_carryover": as_float,
                   "min_notice_days": as_int}
_POLICY_FLAGS = ("requires_approval", "is_active")


def _get_policy(me, policy_id):
    p = db.session.get(PTOPolicy, policy_id)
    if p is None or p.organization_id != me.organization_id:
        raise not_found("PTO policy not found")
    return p


def _apply_policy(p, d):
    for k in ("name", "pto_type"):
        if k in d:
            setattr(p, k, d[k])
    for k, conv in _POLICY_NUMBERS.items():
        if k in d:
            v = conv(d[k], k)
            if v is not None and v < 0:
                raise bad_request(f"{k} must not be negative")
            if v is not None or k == "accrual_rate":
                setattr(p, k, v)
    for k in _POLICY_FLAGS:
        if k in d:
            v = as_bool(d[k], k)
            if v is not None:
                setattr(p, k, v)
    if not all(isinstance(v, str) and v.strip() for v in (p.name, p.pto_type)):
        raise bad_request("name and pto_type are required")


@bp.get("/policies")
@requires_perm("pto.read")
def list_policies():
    me = current_profile()
    qry = PTOPolicy.query.filter_by(organization_id=me.organization_id)
    if request.args.get("include_inactive") not in ("1", "true"):
        qry = qry.filter(PTOPolicy.is_active.is_(True))
    return ok([_policy_row(p) for p in qry.order_by(PTOPolicy.name.asc()).all()])


@bp.post("/policies")
@requires_perm("pto.approve")
def create_policy():
    me = current_profile()
    p = PTOPolicy(organization_id=me.organization_id)
    _apply_policy(p, json_body())
    db.session.add(p)
    db.session.flush()
    record_audit(me, "create", "pto_policies", p.id, new_data=_policy_row(p))
    db.session.commit()
    return ok(_policy_row(p), status=201)


@bp.put("/policies/<int:policy_id>")
@requires_perm("pto.approve")
def update_policy(policy_id: int):
    me = current_profile()
    p = _get_policy(me, policy_id)
    before = _policy_row(p)
    _apply_policy(p, json_body())
    record_audit(me, "update", "pto_policies", p.id, old_data=before, new_data=_policy_row(p))
    db.session.commit()
    return ok(_policy_row(p))


@bp.delete("/policies/<int:policy_id>")
@requires_perm("pto.approve")
def delete_policy(policy_id: int):
    me = current_profile()
    p = _get_policy(me, policy_id)
    in_use = PTOBalance.query.filter_by(policy_id=p.id).first() is not None
    record_audit(me, "delete", "pto_policies", p.id, old_data=_policy_row(p))
    if in_use:
        # balances still point here; keep the row, stop using it
        p.is_active = False
        db.session.commit()
        return ok({"id": policy_id, "deactivated": True})
    db.session.delete(p)
    db.session.commit()
    return ok({"id": policy_id, "deleted": True})


# ---------- balances ----------
@bp.get("/balance")
@requires_perm("pto.read")
def get_balance():
    me = current_profile()
    year = request.args.get("year", type=int) or _today().year
    uid = request.args.get("user_id", type=int) or me.id
    if uid != me.id and not is_privileged(me):
        raise forbidden("You can only view your own balance")
    rows = (PTOBalance.query
            .filter_by(organization_id=me.organization_id, user_id=uid, year=year)
            .order_by(PTOBalance.pto_type.asc())
            .all())
    return ok([_balance_row(b) for b in rows])


@bp.post("/balance/initialize")
@requires_perm("pto.approve")
def initialize_balances():
    me = current_profile()
    if not is_admin(me):
        raise forbidden("Only admins can initialize PTO balances")
    d = json_body()
    result = pto_balances.initialize_balances(
        me.organization_id,
        user_ids=d.get("user_ids"),
        year=d.get("year"),
        overwrite_existing=as_bool(d.get("overwrite_existing"), "overwrite_existing", default=False),
    )
    record_audit(me, "initialize", "pto_balances", None,
                 new_data={k: result[k] for k in ("year", "created", "skipped", "updated")})
    db.session.commit()
    return ok(result)


# ---------- requests ----------
def _get_request(me, request_id) -> PTORequest:
    r = db.session.get(PTORequest, request_id)
    if r is None or r.organization_id != me.organization_id:
        raise not_found("PTO request not found")
    if r.user_id != me.id and not is_privileged(me):
        raise not_found("PTO request not found")
    return r


def _validate_request(me, user_id, pto_type, start, end, exclude_id=None):
    if not (start and end and pto_type):
        raise bad_request("start_date, end_date and pto_type are required")
    if start > end:
        raise bad_request("start_date cannot be after end_date")
    days = float((end - start).days + 1)

    overlap = PTORequest.query.filter(
        PTORequest.user_id == user_id,
        PTORequest.status.in_(("pending", "approved")),
        PTORequest.start_date <= end,
        PTORequest.end_date >= start,
    )
    if exclude_id is not None:
        overlap = overlap.filter(PTORequest.id != exclude_id)
    if overlap.first() is not None:
        raise bad_request("You already have a PTO request overlapping these dates")

    policy = (PTOPolicy.query
              .filter_by(organization_id=me.organization_id, pto_type=pto_type, is_active=True)
              .order_by(PTOPolicy.id.asc())
              .first())
    if policy is not None and policy.min_notice_days:
        if (start - _today()).days < policy.min_notice_days:
            raise bad_request(f"{pto_type} requests need at least {policy.min_notice_days} days notice")

    bal = pto_balances.find_balance(user_id, pto_type, start.year)
    available = bal.available_days if bal is not None else 0.0
    if available < days:
        raise bad_request(f"Insufficient PTO balance. Available: {available}, requested: {days}",
                          {"available": available, "requested": days})
    return days, policy, bal


@bp.get("/requests")
@requires_perm("pto.read")
def list_requests():
    me = current_profile()
    qry = PTORequest.query.filter_by(organization_id=me.organization_id)
    if is_privileged(me):
        uid = request.args.get("user_id", type=int)
        if uid:
            qry = qry.filter(PTORequest.user_id == uid)
    else:
        qry = qry.filter(PTORequest.user_id == me.id)
    st = request.args.get("status")
    if st:
        if st not in PTO_REQUEST_STATUSES:
            raise bad_request(f"status must be one of {', '.join(PTO_REQUEST_STATUSES)}")
        qry = qry.filter(PTORequest.status == st)

    limit, offset = limit_offset()
    total = qry.count()
    items = qry.order_by(PTORequest.start_date.desc(), PTORequest.id.desc()).offset(offset).limit(limit).all()
    return ok([_request_row(r) for r in items], **page_meta(total, limit, offset))


@bp.post("/requests")
@requires_perm("pto.create")
def create_request():
    me = current_profile()
    d = json_body()
    start = parse_date(d.get("start_date"), "start_date")
    end = parse_date(d.get("end_date"), "end_date")
    pto_type = d.get("pto_type")
    pto_type = pto_type.strip() if isinstance(pto_type, str) else ""
    days, policy, bal = _validate_request(me, me.id, pto_type, start, end)

    r = PTORequest(
        organization_id=me.organization_id,
        user_id=me.id,
        pto_type=pto_type,
        start_date=start,
        end_date=end,
        total_days=days,
        reason=d.get("reason"),
        status="pending",
    )
    if policy is not None and not policy.requires_approval:
        r.status = "approved"
        r.reviewed_at = datetime.utcnow()
        pto_balances.book_used(me.organization_id, me.id, pto_type, start.year, days, from_pending=False)
    else:
        pto_balances.reserve(bal, days)
        notify_privileged(me.organization_id, "pto_request", "New PTO request",
                          f"{me.name or 'An employee'} requested {days:g} day(s) of {pto_type}",
                          {"user_id": me.id}, exclude_id=me.id)
    db.session.add(r)
    db.session.commit()
    return ok(_request_row(r), status=201)


@bp.get("/requests/<int:request_id>")
@requires_perm("pto.read")
def get_request(request_id: int):
    return ok(_request_row(_get_request(current_profile(), request_id)))


@bp.put("/requests/<int:request_id>")
@requires_perm("pto.create")
def update_request(request_id: int):
    me = current_profile()
    r = _get_request(me, request_id)
    if r.user_id != me.id:
        raise forbidden("You can only edit your own requests")
    if r.status != "pending":
        raise bad_request("Only pending requests can be edited")
    d = json_body()

    start = parse_date(d["start_date"], "start_date") if "start_date" in d else r.start_date
    end = parse_date(d["end_date"], "end_date") if "end_date" in d else r.end_date
    pto_type = d.get("pto_type") or r.pto_type
    if not isinstance(pto_type, str):
        raise bad_request("pto_type must be a string")
    pto_type = pto_type.strip()

    old_bal = pto_balances.find_balance(r.user_id, r.pto_type, r.start_date.year)
    pto_balances.release(old_bal, r.total_days)
    db.session.flush()
    days, _, bal = _validate_request(me, me.id, pto_type, start, end, exclude_id=r.id)
    pto_balances.reserve(bal, days)

    r.start_date, r.end_date, r.pto_type, r.total_days = start, end, pto_type, days
    if "reason" in d:
        r.reason = d["reason"]
    db.session.commit()
    return ok(_request_row(r))


@bp.delete("/requests/<int:request_id>")
@requires_perm("pto.create")
def delete_request(request_id: int):
    me = current_profile()
    r = _get_request(me, request_id)
    if r.user_id != me.id:
        raise forbidden("You can only delete your own requests")
    if r.status != "pending":
        raise bad_request("Only pending requests can be deleted")
    pto_balances.release(pto_balances.find_balance(r.user_id, r.pto_type, r.start_date.year), r.total_days)
    db.session.delete(r)
    db.session.commit()
    return ok({"id": request_id, "deleted": True})


@bp.put("/requests/<int:request_id>/approve")
@requires_perm("pto.approve")
def approve_request(request_id: int):
    me = current_profile()
    r = _get_request(me, request_id)
    if r.status != "pending":
        raise bad_request("Only pending requests can be approved")
    pto_balances.book_used(r.organization_id, r.user_id, r.pto_type, r.start_date.year, r.total_days)
    r.status = "approved"
    r.reviewed_by = me.id
    r.reviewed_at = datetime.utcnow()
    r.review_comment = json_body().get("review_comment")
    notify(r.organization_id, r.user_id, "pto_approved", "PTO request approved",
           f"{r.start_date.isoformat()} to {r.end_date.isoformat()}", {"pto_request_id": r.id})
    record_audit(me, "approve", "pto_requests", r.id, new_data={"status": "approved"})
    db.session.commit()
    return ok(_request_row(r))


@bp.put("/requests/<int:request_id>/reject")
@requires_perm("pto.approve")
def reject_request(request_id: int):
    me = current_profile()
    r = _get_request(me, request_id)
    if r.status != "pending":
        raise bad_request("Only pending requests can be rejected")
    pto_balances.release(pto_balances.find_balance(r.user_id, r.pto_type, r.start_date.year), r.total_days)
    r.status = "rejected"
    r.reviewed_by = me.id
    r.reviewed_at = datetime.utcnow()
    r.review_comment = json_body().get("review_comment")
    notify(r.organization_id, r.user_id, "pto_rejected", "PTO request rejected",
           r.review_comment, {"pto_request_id": r.id})
    record_audit(me, "reject", "pto_requests", r.id, new_data={"status": "rejected"})
    db.session.commit()
    return ok(_request_row(r))
