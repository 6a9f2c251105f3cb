# wfm_api/rbac.py
"""
Role → capability table.

Codes are "<resource>.<action>"; a grant may end in ".*" to cover every
action of a resource, and "*" covers everything. Employee grants listed in
SELF_ONLY apply to the employee's own records only.
"""
from __future__ import annotations

from typing import Iterable, Optional, Set

PRIVILEGED_ROLES = ("owner", "admin", "manager")
ADMIN_ROLES = ("owner", "admin")

_CRUD = ("create", "read", "update", "delete")


def _grant(resource: str, *actions: str) -> Set[str]:
    return {f"{resource}.{a}" for a in actions}


_MANAGER: Set[str] = set().union(
    _grant("shifts", *_CRUD, "manage"),
    _grant("schedules", *_CRUD, "manage"),
    _grant("timesheets", *_CRUD, "approve"),
    _grant("pto", *_CRUD, "approve"),
    _grant("shift_swaps", *_CRUD, "approve"),
    _grant("time_entries", *_CRUD, "manage"),
    _grant("employees", "read", "update"),
    _grant("settings", "read", "update"),
    _grant("organizations", "read"),
    _grant("locations", *_CRUD),
    _grant("positions", "read"),
    _grant("departments", "read"),
    _grant("shift_templates", *_CRUD),
    _grant("reports", "read"),
    _grant("audit_logs", "read"),
    _grant("notifications", *_CRUD),
    _grant("checklists", *_CRUD, "manage"),
    _grant("forms", *_CRUD, "manage"),
    _grant("chat", "create", "read", "update"),
)

_EMPLOYEE: Set[str] = set().union(
    _grant("shifts", "read"),
    _grant("timesheets", "create", "read", "update"),
    _grant("pto", "create", "read"),
    _grant("shift_swaps", "create", "read", "update"),
    _grant("time_entries", "create", "read", "update"),
    _grant("employees", "read"),
    _grant("schedules", "read"),
    _grant("organizations", "read"),
    _grant("locations", "read"),
    _grant("positions", "read"),
    _grant("departments", "read"),
    _grant("shift_templates", "read"),
    _grant("notifications", "read", "update", "delete"),
    _grant("checklists", "read", "update"),
    _grant("forms", "create", "read"),
    _grant("chat", "create", "read", "update"),
)

ROLE_PERMISSIONS = {
    "owner": {"*"},
    "admin": {"*"},
    "manager": _MANAGER,
    "employee": _EMPLOYEE,
}

ROLE_DENIED = {
    "admin": {"organizations.delete"},
}

SELF_ONLY = {
    "employee": set().union(
        _grant("shifts", "read"),
        _grant("timesheets", "create", "read", "update"),
        _grant("pto", "create", "read"),
        _grant("shift_swaps", "create", "read", "update"),
        _grant("time_entries", "create", "read", "update"),
        _grant("employees", "read"),
        _grant("notifications", "read", "update", "delete"),
        _grant("checklists", "read", "update"),
        _grant("forms", "create", "read"),
    ),
}


def _wildcard_match(granted: str, required: str) -> bool:
    """
    'shifts.*' matches 'shifts.update'; '*' matches anything; otherwise exact.
    """
    if granted == "*" or granted == required:
        return True
    if granted.endswith(".*"):
        return required.startswith(granted[:-1])
    return False


def _has_any_perm(granted: Iterable[str], required: str) -> bool:
    return any(_wildcard_match(g, required) for g in granted)


def role_permissions(role: str) -> Set[str]:
    return set(ROLE_PERMISSIONS.get(role, ()))


def can(profile, permission: str, target_user_id: Optional[int] = None) -> bool:
    """
    Capability check for one profile.

    target_user_id is the profile id owning the record being touched; pass it
    whenever the action concerns somebody's own data so self-only grants are
    enforced. Unknown roles and inactive profiles get nothing.
    """
    if profile is None or not getattr(profile, "is_active", False):
        return False
    role = profile.role
    if permission in ROLE_DENIED.get(role, ()):
        return False
    if not _has_any_perm(ROLE_PERMISSIONS.get(role, ()), permission):
        return False
    if permission in SELF_ONLY.get(role, ()) and target_user_id is not None:
        return int(target_user_id) == profile.id
    return True


def is_privileged(profile) -> bool:
    return profile is not None and profile.role in PRIVILEGED_ROLES


def is_admin(profile) -> bool:
    return profile is not None and profile.role in ADMIN_ROLES
