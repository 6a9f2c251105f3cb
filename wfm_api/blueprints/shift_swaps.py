# wfm_api/blueprints/shift_swaps.py
from dataclasses import asdict

from flask import Blueprint, request
from sqlalchemy import or_

from wfm_api.blueprints.shifts import shift_row
from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import limit_offset, page_meta, parse_date, day_start, day_after, iso
from wfm_api.extensions import db
from wfm_api.models.org import Organization
from wfm_api.models.shift import ShiftSwap, SWAP_STATUSES
from wfm_api.rbac import is_privileged
from wfm_api.services import shift_swaps as swaps
from wfm_api.services.audit import record_audit
from wfm_api.services.org_settings import load_section, update_section

bp = Blueprint("shift_swaps", __name__, url_prefix="/api/v1/shift-swaps")


def swap_row(x: ShiftSwap):
    return {
        "id": x.id,
        "organization_id": x.organization_id,
        "requester_id": x.requester_id,
        "requester_name": x.requester.name if x.requester else None,
        "requester_shift_id": x.requester_shift_id,
        "requester_shift": shift_row(x.requester_shift) if x.requester_shift else None,
        "target_id": x.target_id,
        "target_name": x.target.name if x.target else None,
        "target_shift_id": x.target_shift_id,
        "target_shift": shift_row(x.target_shift) if x.target_shift else None,
        "reason": x.reason,
        "status": x.status,
        "reviewed_by": x.reviewed_by,
        "reviewed_at": iso(x.reviewed_at),
        "review_comment": x.review_comment,
        "applied_at": iso(x.applied_at),
        "created_at": iso(x.created_at),
    }


# ---------- settings ----------
@bp.get("/settings")
@requires_perm("shift_swaps.read")
def get_settings():
    org = db.session.get(Organization, current_profile().organization_id)
    return ok(asdict(load_section(org, "shift_swap")))


@bp.put("/settings")
@requires_perm("settings.update")
def put_settings():
    me = current_profile()
    org = db.session.get(Organization, me.organization_id)
    patch = json_body()
    merged = update_section(org, "shift_swap", patch)
    record_audit(me, "update", "settings.shift_swap", org.id, new_data=patch)
    db.session.commit()
    return ok(asdict(merged))


# ---------- swaps ----------
@bp.get("")
@requires_perm("shift_swaps.read")
def list_swaps():
    me = current_profile()
    qry = ShiftSwap.query.filter(ShiftSwap.organization_id == me.organization_id)

    if is_privileged(me):
        uid = request.args.get("user_id", type=int)
        if uid:
            qry = qry.filter(or_(ShiftSwap.requester_id == uid, ShiftSwap.target_id == uid))
    else:
        qry = qry.filter(or_(ShiftSwap.requester_id == me.id, ShiftSwap.target_id == me.id))

    st = request.args.get("status")
    if st:
        if st not in SWAP_STATUSES:
            raise bad_request(f"status must be one of {', '.join(SWAP_STATUSES)}")
        qry = qry.filter(ShiftSwap.status == st)
    start = parse_date(request.args.get("start_date"), "start_date")
    end = parse_date(request.args.get("end_date"), "end_date")
    if start:
        qry = qry.filter(ShiftSwap.created_at >= day_start(start))
    if end:
        qry = qry.filter(ShiftSwap.created_at < day_after(end))

    limit, offset = limit_offset()
    total = qry.count()
    items = qry.order_by(ShiftSwap.created_at.desc(), ShiftSwap.id.desc()).offset(offset).limit(limit).all()
    return ok([swap_row(x) for x in items], **page_meta(total, limit, offset))


@bp.post("")
@requires_perm("shift_swaps.create")
def create_swap():
    d = json_body()
    swap = swaps.create_swap(
        current_profile(),
        requester_shift_id=d.get("requester_shift_id"),
        target_shift_id=d.get("target_shift_id"),
        target_id=d.get("target_id"),
        reason=d.get("reason"),
    )
    return ok(swap_row(swap), status=201)


@bp.get("/<int:swap_id>")
@requires_perm("shift_swaps.read")
def get_swap(swap_id: int):
    return ok(swap_row(swaps.get_visible_swap(current_profile(), swap_id)))


@bp.put("/<int:swap_id>/accept")
@requires_perm("shift_swaps.update")
def accept(swap_id: int):
    me = current_profile()
    return ok(swap_row(swaps.accept_swap(me, swaps.get_visible_swap(me, swap_id))))


@bp.put("/<int:swap_id>/cancel")
@requires_perm("shift_swaps.update")
def cancel(swap_id: int):
    me = current_profile()
    return ok(swap_row(swaps.cancel_swap(me, swaps.get_visible_swap(me, swap_id))))


@bp.put("/<int:swap_id>/approve")
@requires_perm("shift_swaps.update", "shift_swaps.approve")
def approve(swap_id: int):
    me = current_profile()
    swap = swaps.get_visible_swap(me, swap_id)
    comment = json_body().get("review_comment")
    swap = swaps.approve_swap(me, swap, comment=comment)
    if swap.status == "approved":
        record_audit(me, "approve", "shift_swaps", swap.id, new_data={"status": swap.status})
        db.session.commit()
    return ok(swap_row(swap))


@bp.put("/<int:swap_id>/reject")
@requires_perm("shift_swaps.update", "shift_swaps.approve")
def reject(swap_id: int):
    me = current_profile()
    swap = swaps.get_visible_swap(me, swap_id)
    swap = swaps.reject_swap(me, swap, comment=json_body().get("review_comment"))
    return ok(swap_row(swap))
