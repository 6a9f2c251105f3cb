from wfm_api.extensions import db
from wfm_api.models.org import Department, Position
from wfm_api.models.shift import Shift, ShiftTemplate

from conftest import auth_headers, _department_id


# ---------- departments ----------

def test_department_crud(client, org, make_member):
    admin = make_member("admin")
    manager = make_member("manager")
    h = auth_headers(admin)

    r = client.post("/api/v1/departments", json={"name": "Kitchen"}, headers=auth_headers(manager))
    assert r.status_code == 403

    r = client.post("/api/v1/departments", json={"name": "  "}, headers=h)
    assert r.get_json()["error"]["message"] == "Department name is required"

    r = client.post("/api/v1/departments", json={"name": "Kitchen", "code": "KIT", "manager_id": manager.id},
                    headers=h)
    assert r.status_code == 201
    kitchen = r.get_json()["data"]
    assert kitchen["manager_name"] == manager.name
    assert kitchen["member_count"] == 0

    r = client.post("/api/v1/departments", json={"name": "kitchen"}, headers=h)
    assert r.status_code == 409

    r = client.put(f"/api/v1/departments/{kitchen['id']}", json={"parent_id": kitchen["id"]}, headers=h)
    assert r.get_json()["error"]["message"] == "Cannot set department as its own parent"
    r = client.put(f"/api/v1/departments/{kitchen['id']}", json={"manager_id": 9999}, headers=h)
    assert r.get_json()["error"]["message"] == "Invalid manager_id"
    r = client.put(f"/api/v1/departments/{kitchen['id']}", json={"parent_id": "top"}, headers=h)
    assert r.status_code == 400

    r = client.post("/api/v1/departments", json={"name": "Pastry", "parent_id": kitchen["id"]}, headers=h)
    assert r.get_json()["data"]["parent_id"] == kitchen["id"]


def test_department_list_counts_active_members(client, org, make_member):
    make_member("employee", department="Bar")
    make_member("employee", department="Bar")
    gone = make_member("employee", department="Bar")
    gone.status = "inactive"
    db.session.commit()
    viewer = make_member("employee")

    r = client.get("/api/v1/departments", headers=auth_headers(viewer))
    assert r.status_code == 200
    rows = r.get_json()["data"]
    assert [(x["name"], x["member_count"]) for x in rows] == [("Bar", 2)]


def test_department_delete_needs_no_active_members(client, org, make_member):
    admin = make_member("admin")
    emp = make_member("employee", department="Bar")
    dept_id = emp.department_id

    r = client.delete(f"/api/v1/departments/{dept_id}", headers=auth_headers(admin))
    assert r.status_code == 400
    assert r.get_json()["error"]["message"] == "Cannot delete department with active members"

    emp.department_id = None
    db.session.commit()
    r = client.delete(f"/api/v1/departments/{dept_id}", headers=auth_headers(admin))
    assert r.get_json()["data"] == {"id": dept_id, "is_active": False}

    r = client.get("/api/v1/departments", headers=auth_headers(admin))
    assert r.get_json()["data"] == []
    r = client.get("/api/v1/departments?active_only=false", headers=auth_headers(admin))
    assert [x["id"] for x in r.get_json()["data"]] == [dept_id]


# ---------- positions ----------

def test_positions_are_admin_managed(client, org, make_member):
    admin = make_member("admin")
    manager = make_member("manager")

    r = client.post("/api/v1/positions", json={"name": "Cook"}, headers=auth_headers(manager))
    assert r.status_code == 403

    r = client.post("/api/v1/positions", json={"name": "Cook", "color": "red"}, headers=auth_headers(admin))
    assert r.status_code == 201
    pos_id = r.get_json()["data"]["id"]

    r = client.post("/api/v1/positions", json={"name": "COOK"}, headers=auth_headers(admin))
    assert r.status_code == 409

    r = client.get("/api/v1/positions", headers=auth_headers(manager))
    assert [x["name"] for x in r.get_json()["data"]] == ["Cook"]

    r = client.put(f"/api/v1/positions/{pos_id}", json={"sort_order": "first"}, headers=auth_headers(admin))
    assert r.status_code == 400

    r = client.delete(f"/api/v1/positions/{pos_id}", headers=auth_headers(admin))
    assert r.get_json()["data"]["is_active"] is False
    assert db.session.get(Position, pos_id) is not None


# ---------- shift templates ----------

def test_shift_template_crud(client, org, make_member):
    manager = make_member("manager")
    emp = make_member("employee")
    h = auth_headers(manager)

    r = client.post("/api/v1/shift-templates", json={"start_time": "09:00", "end_time": "17:00"}, headers=h)
    assert r.get_json()["error"]["message"] == "Template name is required"
    r = client.post("/api/v1/shift-templates", json={"name": "Morning", "start_time": "09:00"}, headers=h)
    assert r.get_json()["error"]["message"] == "start_time and end_time are required"
    r = client.post("/api/v1/shift-templates", json={"name": "Morning", "start_time": "9am", "end_time": "17:00"},
                    headers=h)
    assert r.get_json()["error"]["message"] == "start_time must be HH:MM"

    r = client.post("/api/v1/shift-templates", json={"name": "Morning", "start_time": "9:00", "end_time": "17:00"},
                    headers=h)
    assert r.status_code == 201
    tmpl = r.get_json()["data"]
    assert (tmpl["start_time"], tmpl["break_minutes"], tmpl["color"]) == ("09:00", 0, "blue")

    r = client.post("/api/v1/shift-templates", json={"name": "x", "start_time": "1:00", "end_time": "2:00"},
                    headers=auth_headers(emp))
    assert r.status_code == 403

    r = client.put(f"/api/v1/shift-templates/{tmpl['id']}", json={"is_active": False}, headers=h)
    assert r.get_json()["data"]["is_active"] is False

    r = client.get("/api/v1/shift-templates", headers=auth_headers(emp))
    assert r.get_json()["data"] == []
    r = client.get("/api/v1/shift-templates?is_active=false", headers=auth_headers(emp))
    assert [x["name"] for x in r.get_json()["data"]] == ["Morning"]

    r = client.delete(f"/api/v1/shift-templates/{tmpl['id']}", headers=h)
    assert r.get_json()["data"]["deleted"] is True
    assert ShiftTemplate.query.count() == 0


def test_shift_from_template(client, org, make_member, location):
    manager = make_member("manager")
    cook = Position(organization_id=org.id, name="Cook")
    db.session.add(cook)
    db.session.flush()
    night = ShiftTemplate(organization_id=org.id, name="Night", start_time="22:00", end_time="06:00",
                          break_minutes=30, position_id=cook.id, color="purple")
    db.session.add(night)
    db.session.commit()
    kitchen = _department_id(org, "Kitchen")
    db.session.commit()

    r = client.post("/api/v1/shifts", json={"template_id": night.id, "location_id": location.id},
                    headers=auth_headers(manager))
    assert r.status_code == 400

    r = client.post("/api/v1/shifts", json={"template_id": night.id, "date": "2026-03-02",
                                            "location_id": location.id, "department_id": kitchen},
                    headers=auth_headers(manager))
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["start_time"] == "2026-03-02T22:00:00"
    assert data["end_time"] == "2026-03-03T06:00:00"
    assert (data["break_minutes"], data["color"], data["position_name"]) == (30, "purple", "Cook")
    assert data["department_name"] == "Kitchen"

    r = client.post("/api/v1/shifts", json={"template_id": 9999, "date": "2026-03-02"},
                    headers=auth_headers(manager))
    assert r.get_json()["error"]["message"] == "Invalid template_id"
    assert Shift.query.count() == 1


def test_bulk_copy_keeps_department_and_position(client, org, make_member, make_shift, location):
    from datetime import datetime

    manager = make_member("manager")
    cook = make_member("employee")
    pos = Position(organization_id=org.id, name="Grill")
    db.session.add(pos)
    db.session.commit()
    src = make_shift(cook, datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 17), location=location, department="Kitchen")
    src.position_id = pos.id
    db.session.commit()

    r = client.post("/api/v1/shifts/bulk", headers=auth_headers(manager),
                    json={"action": "copy", "shift_ids": [src.id], "target_dates": ["2026-03-09"]})
    assert r.get_json()["data"]["created"] == 1
    copy = Shift.query.filter(Shift.id != src.id).one()
    assert (copy.department_id, copy.position_id) == (src.department_id, pos.id)
    assert db.session.get(Department, copy.department_id).name == "Kitchen"
