# wfm_api/services/shift_swaps.py
"""
Shift-swap state machine.

    pending --accept(target)--> target_accepted
    pending | target_accepted --approve(privileged)--> approved  (shifts exchanged)
    pending | target_accepted --reject--> rejected | cancelled
    pending | target_accepted --cancel(requester)--> cancelled

approved / rejected / cancelled are terminal: any further transition is a
conflict and leaves the row as it was.
"""
import logging
from datetime import datetime, timedelta

from wfm_api.common.errors import bad_request, forbidden, conflict, not_found
from wfm_api.common.paging import as_int
from wfm_api.extensions import db
from wfm_api.models.org import Organization
from wfm_api.models.shift import Shift, ShiftSwap
from wfm_api.models.user import Profile
from wfm_api.rbac import is_privileged
from wfm_api.services.notifications import notify
from wfm_api.services.org_settings import load_section

log = logging.getLogger(__name__)


def _org_shift(org_id, shift_id, field):
    try:
        sid = int(shift_id)
    except (TypeError, ValueError):
        raise bad_request(f"Invalid {field}")
    s = db.session.get(Shift, sid)
    if s is None or s.organization_id != org_id:
        raise bad_request(f"Invalid {field}")
    return s


def _department_of(shift):
    if shift.department_id is not None:
        return shift.department_id
    return shift.user.department_id if shift.user is not None else None


def _guard_open(swap):
    if swap.is_terminal:
        raise conflict(f"Swap request already {swap.status}")


def create_swap(profile, requester_shift_id, target_shift_id=None, target_id=None, reason=None, now=None) -> ShiftSwap:
    now = now or datetime.utcnow()
    if not requester_shift_id:
        raise bad_request("requester_shift_id is required")

    settings = load_section(db.session.get(Organization, profile.organization_id), "shift_swap")
    if not settings.enabled:
        raise forbidden("Shift swaps are disabled for this organization")

    mine = _org_shift(profile.organization_id, requester_shift_id, "requester_shift_id")
    if mine.user_id != profile.id:
        raise forbidden("You can only swap your own shifts")
    if mine.start_time <= now:
        raise bad_request("Cannot swap a shift that has already started")
    if mine.start_time < now + timedelta(hours=settings.min_notice_hours):
        raise bad_request(f"Swap requests need at least {settings.min_notice_hours} hours notice")
    if mine.start_time > now + timedelta(days=settings.max_future_days):
        raise bad_request(f"Swap requests can be made at most {settings.max_future_days} days ahead")

    target_id = as_int(target_id, "target_id")
    theirs = None
    if target_shift_id:
        theirs = _org_shift(profile.organization_id, target_shift_id, "target_shift_id")
        if theirs.id == mine.id:
            raise bad_request("Cannot swap a shift with itself")
        if target_id is not None and theirs.user_id != target_id:
            raise bad_request("target_id does not own target_shift_id")
        target_id = theirs.user_id
        if not settings.allow_cross_location and theirs.location_id != mine.location_id:
            raise bad_request("Swaps across locations are not allowed")
        if not settings.allow_cross_department and _department_of(theirs) != _department_of(mine):
            raise bad_request("Swaps across departments are not allowed")

    if target_id is not None:
        target = db.session.get(Profile, target_id)
        if target is None or target.organization_id != profile.organization_id:
            raise bad_request("Invalid target_id")
        if target.id == profile.id:
            raise bad_request("Cannot swap with yourself")

    swap = ShiftSwap(
        organization_id=profile.organization_id,
        requester_id=profile.id,
        requester_shift_id=mine.id,
        target_id=target_id,
        target_shift_id=theirs.id if theirs else None,
        reason=reason,
        status="pending",
    )
    db.session.add(swap)
    db.session.flush()
    if swap.target_id is not None:
        notify(profile.organization_id, swap.target_id, "shift_swap_request", "Shift swap request",
               f"{profile.name or 'A coworker'} asked to swap shifts with you", {"swap_id": swap.id})
    db.session.commit()
    return swap


def get_visible_swap(profile, swap_id) -> ShiftSwap:
    swap = db.session.get(ShiftSwap, swap_id)
    if swap is None or swap.organization_id != profile.organization_id:
        raise not_found("Swap request not found")
    if not is_privileged(profile) and profile.id not in (swap.requester_id, swap.target_id):
        raise not_found("Swap request not found")
    return swap


def accept_swap(profile, swap) -> ShiftSwap:
    if swap.target_id != profile.id:
        raise forbidden("Only the target user can accept this request")
    _guard_open(swap)
    if swap.status != "pending":
        raise conflict("Swap request is no longer pending")
    swap.status = "target_accepted"
    notify(swap.organization_id, swap.requester_id, "shift_swap_accepted", "Shift swap accepted",
           None, {"swap_id": swap.id})
    db.session.commit()
    return swap


def cancel_swap(profile, swap) -> ShiftSwap:
    if swap.requester_id != profile.id:
        raise forbidden("Only the requester can cancel this request")
    _guard_open(swap)
    swap.status = "cancelled"
    db.session.commit()
    return swap


def _apply(swap, reviewer, comment, now):
    """Exchange the shift owners and close the swap, all in one transaction."""
    mine = db.session.get(Shift, swap.requester_shift_id)
    theirs = db.session.get(Shift, swap.target_shift_id) if swap.target_shift_id else None
    if mine is None:
        raise bad_request("Requester shift no longer exists")
    if swap.target_id is None:
        raise bad_request("Swap request has no target to swap with")

    try:
        if theirs is not None:
            mine.user_id, theirs.user_id = theirs.user_id, mine.user_id
        else:
            mine.user_id = swap.target_id
        swap.status = "approved"
        swap.reviewed_by = reviewer.id
        swap.reviewed_at = now
        swap.review_comment = comment
        swap.applied_at = now
        for uid in (swap.requester_id, swap.target_id):
            notify(swap.organization_id, uid, "shift_swap_approved", "Shift swap approved",
                   None, {"swap_id": swap.id})
        db.session.commit()
    except Exception:
        db.session.rollback()
        log.exception("swap %s: applying approval failed, rolled back", swap.id)
        raise


def approve_swap(profile, swap, comment=None, now=None) -> ShiftSwap:
    now = now or datetime.utcnow()
    _guard_open(swap)

    if profile.id == swap.target_id and swap.status == "pending":
        swap.status = "target_accepted"
        db.session.commit()
        return swap

    if is_privileged(profile) and swap.status in ("pending", "target_accepted"):
        _apply(swap, profile, comment, now)
        return swap

    raise forbidden("Not authorized to approve this swap")


def reject_swap(profile, swap, comment=None, now=None) -> ShiftSwap:
    now = now or datetime.utcnow()
    _guard_open(swap)
    privileged = is_privileged(profile)
    if not privileged and profile.id not in (swap.requester_id, swap.target_id):
        raise forbidden("Not authorized to reject this swap")

    swap.status = "cancelled" if (profile.id == swap.requester_id and not privileged) else "rejected"
    swap.reviewed_by = profile.id
    swap.reviewed_at = now
    swap.review_comment = comment
    if profile.id != swap.requester_id:
        notify(swap.organization_id, swap.requester_id, "shift_swap_rejected", "Shift swap rejected",
               comment, {"swap_id": swap.id})
    db.session.commit()
    return swap
