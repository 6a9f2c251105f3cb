# wfm_api/blueprints/dashboard.py
"""Home-screen counters. Privileged-only counters read 0 for everyone else."""
from flask import Blueprint
from sqlalchemy import or_

from wfm_api.blueprints.shifts import shift_row
from wfm_api.blueprints.time_clock import entry_row
from wfm_api.common.auth import requires_profile, current_profile
from wfm_api.common.http import ok
from wfm_api.extensions import db
from wfm_api.models.chat import ChatMessage, ChatParticipant
from wfm_api.models.org import Location, Organization
from wfm_api.models.pto import PTORequest
from wfm_api.models.shift import Shift, ShiftSwap
from wfm_api.models.time_entry import TimeEntry
from wfm_api.rbac import is_admin, is_privileged
from wfm_api.services.time_clock import org_day_bounds

bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


def _today(me):
    return org_day_bounds(db.session.get(Organization, me.organization_id))


def _todays_shifts(me):
    start, end = _today(me)
    qry = Shift.query.filter(Shift.organization_id == me.organization_id,
                             Shift.start_time >= start, Shift.start_time < end)
    if not is_privileged(me):
        qry = qry.filter(or_(Shift.user_id == me.id, Shift.is_published.is_(True)))
    return qry.order_by(Shift.start_time.asc(), Shift.id.asc()).all()


def _clocked_in_count(me, start, end):
    rows = (TimeEntry.query
            .filter(TimeEntry.organization_id == me.organization_id,
                    TimeEntry.timestamp >= start, TimeEntry.timestamp < end)
            .order_by(TimeEntry.timestamp.asc(), TimeEntry.id.asc())
            .all())
    latest = {}
    for e in rows:
        latest[e.user_id] = e.entry_type
    return sum(1 for t in latest.values() if t != "clock_out")


def _unread_messages(me):
    return (ChatMessage.query
            .join(ChatParticipant, ChatParticipant.room_id == ChatMessage.room_id)
            .filter(ChatParticipant.user_id == me.id,
                    ChatMessage.is_deleted.is_(False),
                    or_(ChatMessage.sender_id.is_(None), ChatMessage.sender_id != me.id),
                    or_(ChatParticipant.last_read_at.is_(None),
                        ChatMessage.created_at > ChatParticipant.last_read_at))
            .count())


@bp.get("/summary")
@requires_profile
def summary():
    me = current_profile()
    start, end = _today(me)
    privileged = is_privileged(me)

    pending_pto = pending_swaps = 0
    if privileged:
        pending_pto = PTORequest.query.filter_by(organization_id=me.organization_id, status="pending").count()
        pending_swaps = (ShiftSwap.query
                         .filter(ShiftSwap.organization_id == me.organization_id,
                                 ShiftSwap.status.in_(("pending", "target_accepted")))
                         .count())

    mine = (TimeEntry.query
            .filter(TimeEntry.user_id == me.id, TimeEntry.timestamp >= start, TimeEntry.timestamp < end)
            .order_by(TimeEntry.timestamp.asc(), TimeEntry.id.asc())
            .all())
    locations = (Location.query
                 .filter_by(organization_id=me.organization_id, is_active=True)
                 .order_by(Location.name.asc())
                 .all())
    return ok({
        "today_shifts_count": len(_todays_shifts(me)),
        "clocked_in_count": _clocked_in_count(me, start, end),
        "pending_pto_count": pending_pto,
        "pending_swap_count": pending_swaps,
        "unread_messages_count": _unread_messages(me),
        "locations": [{"id": x.id, "name": x.name} for x in locations],
        "user_today_entries": [entry_row(e) for e in mine],
        "is_admin": is_admin(me),
        "is_privileged": privileged,
    })


@bp.get("/today-shifts")
@requires_profile
def today_shifts():
    return ok([shift_row(s) for s in _todays_shifts(current_profile())])
