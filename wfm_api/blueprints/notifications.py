# wfm_api/blueprints/notifications.py
from datetime import datetime

from flask import Blueprint

from wfm_api.common.auth import requires_perm, current_profile
from wfm_api.common.errors import bad_request, not_found
from wfm_api.common.http import ok, json_body
from wfm_api.common.paging import limit_offset, page_meta, arg_bool, iso, as_bool, as_int
from wfm_api.extensions import db
from wfm_api.models.notification import Notification
from wfm_api.models.user import Profile
from wfm_api.services.notifications import notify

bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


def _row(n: Notification):
    return {
        "id": n.id,
        "user_id": n.user_id,
        "type": n.type,
        "title": n.title,
        "body": n.body,
        "data": n.data,
        "is_read": n.is_read,
        "read_at": iso(n.read_at),
        "created_at": iso(n.created_at),
    }


def _own(me, notification_id) -> Notification:
    n = db.session.get(Notification, notification_id)
    if n is None or n.user_id != me.id:
        raise not_found("Notification not found")
    return n


def _unread(me):
    return Notification.query.filter_by(user_id=me.id, is_read=False).count()


@bp.get("")
@requires_perm("notifications.read")
def list_notifications():
    me = current_profile()
    qry = Notification.query.filter_by(user_id=me.id)
    is_read = arg_bool("is_read")
    if is_read is not None:
        qry = qry.filter(Notification.is_read.is_(is_read))

    limit, offset = limit_offset()
    total = qry.count()
    items = qry.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(offset).limit(limit).all()
    return ok([_row(n) for n in items], unread_count=_unread(me), **page_meta(total, limit, offset))


@bp.post("")
@requires_perm("notifications.create")
def create_notification():
    me = current_profile()
    d = json_body()
    uid = as_int(d.get("user_id"), "user_id")
    title, type_ = (d.get("title"), d.get("type"))
    title = title.strip() if isinstance(title, str) else ""
    type_ = type_.strip() if isinstance(type_, str) else ""
    if not uid or not title or not type_:
        raise bad_request("user_id, type and title are required")
    target = db.session.get(Profile, uid)
    if target is None or target.organization_id != me.organization_id:
        raise bad_request("Invalid user_id")
    n = notify(me.organization_id, target.id, type_, title, d.get("body"), d.get("data"))
    db.session.commit()
    return ok(_row(n), status=201)


@bp.get("/unread-count")
@requires_perm("notifications.read")
def unread_count():
    return ok({"unread_count": _unread(current_profile())})


@bp.put("/read-all")
@requires_perm("notifications.update")
def read_all():
    me = current_profile()
    now = datetime.utcnow()
    rows = Notification.query.filter_by(user_id=me.id, is_read=False).all()
    for n in rows:
        n.is_read = True
        n.read_at = now
    db.session.commit()
    return ok({"updated": len(rows)})


@bp.get("/<int:notification_id>")
@requires_perm("notifications.read")
def get_notification(notification_id: int):
    return ok(_row(_own(current_profile(), notification_id)))


@bp.put("/<int:notification_id>")
@requires_perm("notifications.update")
def update_notification(notification_id: int):
    n = _own(current_profile(), notification_id)
    d = json_body()
    if "is_read" in d:
        n.is_read = as_bool(d["is_read"], "is_read", default=n.is_read)
        n.read_at = datetime.utcnow() if n.is_read else None
    db.session.commit()
    return ok(_row(n))


@bp.delete("/<int:notification_id>")
@requires_perm("notifications.delete")
def delete_notification(notification_id: int):
    n = _own(current_profile(), notification_id)
    db.session.delete(n)
    db.session.commit()
    return ok({"id": notification_id, "deleted": True})
