# wfm_api/blueprints/realtime.py
"""
Server-sent-events stream over the change feed.

    GET /api/v1/realtime/<table>[?room_id=..]

Rows are filtered per caller: own notifications, chat of rooms the caller
sits in, and org-wide shift / time / swap / timesheet / PTO changes for
privileged roles (own rows only for employees).
"""
import json

from flask import Blueprint, Response, current_app, request, stream_with_context

from wfm_api.common.auth import requires_profile, current_profile
from wfm_api.common.errors import bad_request, not_found
from wfm_api.models.chat import ChatParticipant
from wfm_api.rbac import is_privileged
from wfm_api.services.realtime import feed, WATCHED_TABLES

bp = Blueprint("realtime", __name__, url_prefix="/api/v1/realtime")

_OWNER_COLUMNS = {
    "shift_swaps": ("requester_id", "target_id"),
}


def build_predicate(table, profile_id, org_id, privileged, room_ids=None):
    """Row filter for one subscriber; plain values only, no ORM objects."""
    if table == "notifications":
        return lambda ev: ev.record.get("user_id") == profile_id
    if table == "chat_participants":
        return lambda ev: ev.record.get("user_id") == profile_id
    if table == "chat_messages":
        rooms = set(room_ids or ())
        return lambda ev: ev.record.get("room_id") in rooms

    owners = _OWNER_COLUMNS.get(table, ("user_id",))

    def _pred(ev):
        if ev.organization_id != org_id:
            return False
        if privileged:
            return True
        return any(ev.record.get(c) == profile_id for c in owners)
    return _pred


@bp.get("/<table>")
@requires_profile
def stream(table):
    if table not in WATCHED_TABLES:
        raise not_found(f"No change feed for {table}")
    me = current_profile()
    pid = me.id

    room_ids = None
    if table == "chat_messages":
        room_ids = {p.room_id for p in ChatParticipant.query.filter_by(user_id=me.id).all()}
        wanted = request.args.get("room_id", type=int)
        if wanted is not None:
            if wanted not in room_ids:
                raise bad_request("Not a participant of that room")
            room_ids = {wanted}

    sub = feed.subscribe(table, build_predicate(table, pid, me.organization_id, is_privileged(me), room_ids))
    heartbeat = float(current_app.config.get("REALTIME_HEARTBEAT_SECONDS", 15))
    log = current_app.logger
    log.info("realtime: profile=%s subscribed to %s", pid, table)

    def _events():
        try:
            yield ": connected\n\n"
            while True:
                ev = sub.get(timeout=heartbeat)
                if ev is None:
                    yield ": heartbeat\n\n"
                    continue
                yield f"event: {ev.type.lower()}\ndata: {json.dumps(ev.to_dict(), default=str)}\n\n"
        finally:
            sub.close()
            log.info("realtime: profile=%s left %s (dropped=%s)", pid, table, sub.dropped)

    return Response(
        stream_with_context(_events()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
