# wfm_api/services/notifications.py
import logging

from wfm_api.extensions import db
from wfm_api.models.notification import Notification
from wfm_api.models.user import Profile
from wfm_api.rbac import PRIVILEGED_ROLES

log = logging.getLogger(__name__)


def notify(organization_id, user_id, type_, title, body=None, data=None) -> Notification:
    """Queue one in-app notification on the current session (caller commits)."""
    n = Notification(
        organization_id=organization_id,
        user_id=user_id,
        type=type_,
        title=title,
        body=body,
        data=data or {},
    )
    db.session.add(n)
    return n


def privileged_members(organization_id, exclude_id=None):
    q = Profile.query.filter(
        Profile.organization_id == organization_id,
        Profile.role.in_(PRIVILEGED_ROLES),
        Profile.status == "active",
    )
    if exclude_id is not None:
        q = q.filter(Profile.id != exclude_id)
    return q.all()


def notify_privileged(organization_id, type_, title, body=None, data=None, exclude_id=None):
    sent = []
    for p in privileged_members(organization_id, exclude_id=exclude_id):
        sent.append(notify(organization_id, p.id, type_, title, body, data))
    log.debug("queued %s %s notification(s) for org %s", len(sent), type_, organization_id)
    return sent
