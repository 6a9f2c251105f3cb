from types import SimpleNamespace

from wfm_api.rbac import can, is_privileged, is_admin, role_permissions


def _p(role, pid=5, status="active"):
    return SimpleNamespace(id=pid, role=role, status=status, is_active=status == "active")


def test_owner_has_everything():
    owner = _p("owner")
    assert can(owner, "organizations.delete")
    assert can(owner, "shifts.manage")


def test_admin_cannot_delete_organization():
    admin = _p("admin")
    assert can(admin, "pto.approve")
    assert not can(admin, "organizations.delete")


def test_manager_grants():
    mgr = _p("manager")
    assert can(mgr, "shifts.manage")
    assert can(mgr, "reports.read")
    assert can(mgr, "timesheets.approve")
    assert not can(mgr, "organizations.delete")
    assert not can(mgr, "chat.delete")


def test_employee_self_only():
    emp = _p("employee", pid=7)
    assert can(emp, "shifts.read")
    assert can(emp, "shifts.read", target_user_id=7)
    assert not can(emp, "shifts.read", target_user_id=8)
    assert not can(emp, "shifts.create")
    assert not can(emp, "reports.read")
    # not self-only: readable for anyone in the org
    assert can(emp, "locations.read", target_user_id=8)


def test_inactive_and_unknown_roles_get_nothing():
    assert not can(_p("owner", status="inactive"), "shifts.read")
    assert not can(_p("intern"), "shifts.read")
    assert not can(None, "shifts.read")
    assert role_permissions("intern") == set()


def test_role_helpers():
    assert is_privileged(_p("manager"))
    assert not is_privileged(_p("employee"))
    assert is_admin(_p("owner"))
    assert is_admin(_p("admin"))
    assert not is_admin(_p("manager"))


def test_org_structure_is_admin_managed():
    mgr = _p("manager")
    assert can(mgr, "departments.read")
    assert not can(mgr, "departments.create")
    assert not can(mgr, "positions.update")
    assert can(mgr, "shift_templates.create")
    assert can(_p("admin"), "departments.delete")
    assert not can(_p("employee"), "shift_templates.create")
    assert not role_permissions("manager") & {"invitations.read", "invitations.create"}
