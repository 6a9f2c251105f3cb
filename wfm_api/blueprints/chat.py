# wfm_api/blueprints/chat.py
from datetime import datetime

from flask import Blueprint, request

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, forbidden, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import limit_offset, iso, as_bool, as_int, as_int_list
from wfm_api.extensions import db
from wfm_api.models.chat import ChatRoom, ChatParticipant, ChatMessage, ROOM_TYPES
from wfm_api.models.user import Profile

bp = Blueprint("chat", __name__, url_prefix="/api/v1/chat")


# ---------- helpers ----------
def _message_row(m: ChatMessage):
    return {
        "id": m.id,
        "room_id": m.room_id,
        "sender_id": m.sender_id,
        "sender_name": m.sender.name if m.sender else None,
        "content": "" if m.is_deleted else m.content,
        "type": m.type,
        "reply_to_id": m.reply_to_id,
        "metadata": m.extra,
        "is_deleted": m.is_deleted,
        "created_at": iso(m.created_at),
    }


def _participant_row(p: ChatParticipant):
    return {
        "user_id": p.user_id,
        "name": p.user.name if p.user else None,
        "role": p.role,
        "joined_at": iso(p.joined_at),
        "last_read_at": iso(p.last_read_at),
        "is_muted": p.is_muted,
    }


def _room_row(r: ChatRoom, me=None):
    out = {
        "id": r.id,
        "type": r.type,
        "name": r.name,
        "description": r.description,
        "is_private": r.is_private,
        "created_by": r.created_by,
        "created_at": iso(r.created_at),
        "participants": [_participant_row(p) for p in r.participants],
    }
    if me is not None:
        mine = _membership(r, me.id)
        latest = (ChatMessage.query
                  .filter_by(room_id=r.id, is_deleted=False)
                  .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
                  .first())
        unread = ChatMessage.query.filter(
            ChatMessage.room_id == r.id,
            ChatMessage.is_deleted.is_(False),
            ChatMessage.sender_id != me.id,
        )
        if mine is not None and mine.last_read_at is not None:
            unread = unread.filter(ChatMessage.created_at > mine.last_read_at)
        out["latest_message"] = _message_row(latest) if latest else None
        out["unread_count"] = unread.count()
        if r.type == "direct":
            other = next((p for p in r.participants if p.user_id != me.id), None)
            out["other_participant"] = _participant_row(other) if other else None
    return out


def _membership(room, user_id):
    return next((p for p in room.participants if p.user_id == user_id), None)


def _room_for(me, room_id) -> ChatRoom:
    r = db.session.get(ChatRoom, room_id)
    if r is None or r.organization_id != me.organization_id or _membership(r, me.id) is None:
        raise not_found("Chat room not found")
    return r


def _find_direct(me, other_id):
    mine = {p.room_id for p in ChatParticipant.query.filter_by(user_id=me.id).all()}
    if not mine:
        return None
    for room in ChatRoom.query.filter(ChatRoom.id.in_(mine), ChatRoom.type == "direct").all():
        ids = {p.user_id for p in room.participants}
        if ids == {me.id, other_id}:
            return room
    return None


# ---------- rooms ----------
@bp.get("/rooms")
@requires_perm("chat.read")
def list_rooms():
    me = current_profile()
    room_ids = [p.room_id for p in ChatParticipant.query.filter_by(user_id=me.id).all()]
    rooms = (ChatRoom.query
             .filter(ChatRoom.id.in_(room_ids), ChatRoom.organization_id == me.organization_id)
             .order_by(ChatRoom.updated_at.desc(), ChatRoom.id.desc())
             .all()) if room_ids else []
    return ok([_room_row(r, me) for r in rooms])


@bp.post("/rooms")
@requires_perm("chat.create")
def create_room():
    me = current_profile()
    d = json_body()
    room_type = d.get("type")
    ids = d.get("participant_ids")
    if not room_type or not isinstance(ids, list) or not ids:
        raise bad_request("type and participant_ids are required")
    if room_type not in ROOM_TYPES:
        raise bad_request(f"type must be one of {', '.join(ROOM_TYPES)}")
    others = sorted(set(as_int_list(ids, "participant_ids")) - {me.id})

    if room_type == "direct":
        if len(others) != 1:
            raise bad_request("Direct rooms need exactly one other participant")
        existing = _find_direct(me, others[0])
        if existing is not None:
            out = _room_row(existing, me)
            out["existing"] = True
            return ok(out)

    members = Profile.query.filter(Profile.id.in_(others), Profile.organization_id == me.organization_id).all()
    if len(members) != len(others):
        raise bad_request("All participants must belong to your organization")

    room = ChatRoom(
        organization_id=me.organization_id,
        type=room_type,
        name=d.get("name"),
        description=d.get("description"),
        is_private=as_bool(d.get("is_private"), "is_private", default=room_type == "direct"),
        created_by=me.id,
    )
    room.participants.append(ChatParticipant(user_id=me.id, role="admin"))
    for m in members:
        room.participants.append(ChatParticipant(user_id=m.id, role="member"))
    db.session.add(room)
    db.session.commit()
    return ok(_room_row(room, me), status=201)


@bp.get("/rooms/<int:room_id>")
@requires_perm("chat.read")
def get_room(room_id: int):
    me = current_profile()
    return ok(_room_row(_room_for(me, room_id), me))


@bp.get("/rooms/<int:room_id>/participants")
@requires_perm("chat.read")
def list_participants(room_id: int):
    room = _room_for(current_profile(), room_id)
    return ok([_participant_row(p) for p in room.participants])


@bp.post("/rooms/<int:room_id>/participants")
@requires_perm("chat.update")
def add_participants(room_id: int):
    me = current_profile()
    room = _room_for(me, room_id)
    if room.type == "direct":
        raise bad_request("Cannot add participants to a direct room")
    if _membership(room, me.id).role != "admin":
        raise forbidden("Only room admins can add participants")
    ids = json_body().get("user_ids") or []
    present = {p.user_id for p in room.participants}
    wanted = set(as_int_list(ids, "user_ids")) - present
    members = Profile.query.filter(Profile.id.in_(wanted), Profile.organization_id == me.organization_id).all()
    if len(members) != len(wanted):
        raise bad_request("All participants must belong to your organization")
    for m in members:
        room.participants.append(ChatParticipant(user_id=m.id, role="member"))
    db.session.commit()
    return ok([_participant_row(p) for p in room.participants])


@bp.put("/rooms/<int:room_id>/read")
@requires_perm("chat.read")
def mark_read(room_id: int):
    me = current_profile()
    room = _room_for(me, room_id)
    part = _membership(room, me.id)
    part.last_read_at = datetime.utcnow()
    db.session.commit()
    return ok({"room_id": room.id, "last_read_at": iso(part.last_read_at)})


# ---------- messages ----------
@bp.get("/rooms/<int:room_id>/messages")
@requires_perm("chat.read")
def list_messages(room_id: int):
    me = current_profile()
    room = _room_for(me, room_id)
    qry = ChatMessage.query.filter(ChatMessage.room_id == room.id)
    before = request.args.get("before", type=int)
    if before:
        qry = qry.filter(ChatMessage.id < before)
    limit, _ = limit_offset()
    rows = qry.order_by(ChatMessage.id.desc()).limit(limit + 1).all()
    has_more = len(rows) > limit
    rows = rows[:limit]
    return ok([_message_row(m) for m in rows], has_more=has_more,
              next_before=rows[-1].id if rows and has_more else None)


@bp.post("/rooms/<int:room_id>/messages")
@requires_perm("chat.create")
def post_message(room_id: int):
    me = current_profile()
    room = _room_for(me, room_id)
    d = json_body()
    content = d.get("content")
    content = content.strip() if isinstance(content, str) else ""
    if not content:
        raise bad_request("content is required")
    reply_to = as_int(d.get("reply_to_id"), "reply_to_id")
    if reply_to is not None:
        parent = db.session.get(ChatMessage, reply_to)
        if parent is None or parent.room_id != room.id:
            raise bad_request("Invalid reply_to_id")

    m = ChatMessage(
        room_id=room.id,
        sender_id=me.id,
        content=content,
        type=d.get("type") or "text",
        reply_to_id=reply_to,
        extra=d.get("metadata"),
    )
    db.session.add(m)
    room.updated_at = datetime.utcnow()
    _membership(room, me.id).last_read_at = datetime.utcnow()
    db.session.commit()
    return ok(_message_row(m), status=201)


@bp.delete("/rooms/<int:room_id>/messages/<int:message_id>")
@requires_perm("chat.update")
def delete_message(room_id: int, message_id: int):
    me = current_profile()
    room = _room_for(me, room_id)
    m = db.session.get(ChatMessage, message_id)
    if m is None or m.room_id != room.id:
        raise not_found("Message not found")
    if m.sender_id != me.id and _membership(room, me.id).role != "admin":
        raise forbidden("You can only delete your own messages")
    m.is_deleted = True
    db.session.commit()
    return ok({"id": message_id, "deleted": True})
