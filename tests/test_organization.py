from wfm_api.extensions import db
from wfm_api.models.org import Location, Position
from wfm_api.models.user import UserPosition

from conftest import auth_headers, _department_id


def test_locations_crud(client, make_member):
    admin = make_member("admin")
    emp = make_member("employee")
    h = auth_headers(admin)

    r = client.post("/api/v1/locations", json={"name": "Uptown", "latitude": 95, "longitude": 0}, headers=h)
    assert r.status_code == 400

    r = client.post("/api/v1/locations", json={"name": "Uptown", "latitude": 40.7, "longitude": -73.9,
                                               "radius_meters": 150, "geofence_enabled": True}, headers=h)
    assert r.status_code == 201
    loc_id = r.get_json()["data"]["id"]

    r = client.post("/api/v1/locations", json={"name": "Nope"}, headers=auth_headers(emp))
    assert r.status_code == 403

    r = client.put(f"/api/v1/locations/{loc_id}", json={"radius_meters": 0}, headers=h)
    assert r.status_code == 400

    r = client.delete(f"/api/v1/locations/{loc_id}", headers=h)
    assert r.get_json()["data"] == {"id": loc_id, "is_active": False}

    r = client.get("/api/v1/locations?is_active=false", headers=auth_headers(emp))
    assert [x["id"] for x in r.get_json()["data"]] == [loc_id]


def test_team_filters(client, make_member):
    admin = make_member("admin")
    make_member("employee")
    make_member("manager")
    r = client.get("/api/v1/team?role=manager", headers=auth_headers(admin))
    rows = r.get_json()["data"]
    assert len(rows) == 1
    assert rows[0]["role"] == "manager"


def test_team_role_changes(client, org, make_member):
    owner = make_member("owner")
    admin = make_member("admin")
    manager = make_member("manager")
    emp = make_member("employee")

    r = client.put(f"/api/v1/team/{emp.id}", json={"role": "manager"}, headers=auth_headers(manager))
    assert r.status_code == 403

    kitchen = _department_id(org, "Kitchen")
    r = client.put(f"/api/v1/team/{emp.id}", json={"department_id": kitchen}, headers=auth_headers(manager))
    assert r.status_code == 200
    assert r.get_json()["data"]["department"] == "Kitchen"

    r = client.put(f"/api/v1/team/{emp.id}", json={"department_id": 9999}, headers=auth_headers(manager))
    assert r.status_code == 400

    r = client.put(f"/api/v1/team/{owner.id}", json={"status": "inactive"}, headers=auth_headers(admin))
    assert r.status_code == 403

    r = client.put(f"/api/v1/team/{admin.id}", json={"role": "employee"}, headers=auth_headers(admin))
    assert r.status_code == 400

    r = client.put(f"/api/v1/team/{emp.id}", json={"role": "wizard"}, headers=auth_headers(admin))
    assert r.status_code == 400

    r = client.put(f"/api/v1/team/{emp.id}", json={"role": "manager"}, headers=auth_headers(admin))
    assert r.get_json()["data"]["role"] == "manager"


def test_organization_update(client, make_member):
    owner = make_member("owner")
    emp = make_member("employee")
    r = client.put("/api/v1/organization", json={"name": "Acme Bistro"}, headers=auth_headers(owner))
    assert r.get_json()["data"]["name"] == "Acme Bistro"
    r = client.put("/api/v1/organization", json={"name": "x"}, headers=auth_headers(emp))
    assert r.status_code == 403


def test_location_numbers_must_be_numeric(client, make_member):
    h = auth_headers(make_member("admin"))
    r = client.post("/api/v1/locations", json={"name": "Pier", "latitude": "north"}, headers=h)
    assert r.status_code == 400
    assert r.get_json()["error"]["message"] == "latitude must be a number"

    r = client.post("/api/v1/locations", json={"name": "Pier", "radius_meters": "wide"}, headers=h)
    assert r.status_code == 400

    r = client.post("/api/v1/locations", json={"name": "Pier", "geofence_enabled": "yes"}, headers=h)
    assert r.status_code == 400
    assert Location.query.filter_by(name="Pier").count() == 0


def test_team_update_rejects_bad_types(client, make_member):
    admin = make_member("admin")
    emp = make_member("employee")
    h = auth_headers(admin)
    for body in ({"hourly_rate": "lots"}, {"department_id": "kitchen"}, {"allow_time_edit": "no"},
                 {"auto_clock_out_time": "25:99"}):
        r = client.put(f"/api/v1/team/{emp.id}", json=body, headers=h)
        assert r.status_code == 400, body

    r = client.put(f"/api/v1/team/{emp.id}", json={"hourly_rate": 18.5, "allow_time_edit": False,
                                                   "auto_clock_out_time": "9:30"}, headers=h)
    data = r.get_json()["data"]
    assert data["hourly_rate"] == 18.5
    assert data["allow_time_edit"] is False
    assert data["auto_clock_out_time"] == "09:30"


def test_timezone_must_be_known(client, make_member):
    owner = make_member("owner")
    r = client.put("/api/v1/organization", json={"timezone": "Mars/Olympus"}, headers=auth_headers(owner))
    assert r.status_code == 400
    r = client.put("/api/v1/organization", json={"timezone": "Europe/Paris"}, headers=auth_headers(owner))
    assert r.get_json()["data"]["timezone"] == "Europe/Paris"


def test_member_positions(client, org, make_member):
    admin = make_member("admin")
    manager = make_member("manager")
    emp = make_member("employee")
    cook = Position(organization_id=org.id, name="Cook", color="red")
    host = Position(organization_id=org.id, name="Host")
    db.session.add_all([cook, host])
    db.session.commit()
    url = f"/api/v1/team/{emp.id}/positions"

    r = client.post(url, json={"position_id": cook.id, "wage_rate": 17}, headers=auth_headers(emp))
    assert r.status_code == 403

    r = client.post(url, json={}, headers=auth_headers(manager))
    assert r.get_json()["error"]["message"] == "position_id is required"

    r = client.post(url, json={"position_id": 9999}, headers=auth_headers(manager))
    assert r.status_code == 404

    r = client.post("/api/v1/team/9999/positions", json={"position_id": cook.id}, headers=auth_headers(manager))
    assert r.get_json()["error"]["message"] == "Member not found"

    r = client.post(url, json={"position_id": cook.id, "wage_rate": 17}, headers=auth_headers(manager))
    assert r.status_code == 201
    assert r.get_json()["data"]["position"]["name"] == "Cook"

    r = client.post(url, json={"position_id": cook.id}, headers=auth_headers(manager))
    assert r.get_json()["error"]["message"] == "Position already assigned to this member"

    r = client.put(url, json={"positions": [{"position_id": host.id}, {"position_id": cook.id, "wage_rate": 19}]},
                   headers=auth_headers(admin))
    rows = r.get_json()["data"]
    assert [(x["position"]["name"], x["is_primary"]) for x in rows] == [("Host", True), ("Cook", False)]
    assert UserPosition.query.filter_by(user_id=emp.id).count() == 2

    r = client.get(url, headers=auth_headers(emp))
    assert [x["wage_rate"] for x in r.get_json()["data"]] == [None, 19.0]

    r = client.delete(f"{url}/{host.id}", headers=auth_headers(admin))
    assert r.get_json()["data"]["removed"] is True
    assert UserPosition.query.filter_by(user_id=emp.id).count() == 1


def test_member_locations(client, org, location, make_member):
    admin = make_member("admin")
    emp = make_member("employee")
    url = f"/api/v1/team/{emp.id}/locations"

    r = client.post(url, json={"location_id": location.id}, headers=auth_headers(admin))
    assert r.status_code == 201
    r = client.post(url, json={"location_id": location.id}, headers=auth_headers(admin))
    assert r.status_code == 400

    r = client.put(url, json={"location_ids": ["abc"]}, headers=auth_headers(admin))
    assert r.status_code == 400

    r = client.put(url, json={"location_ids": []}, headers=auth_headers(admin))
    assert r.get_json()["data"] == []
    r = client.get(url, headers=auth_headers(emp))
    assert r.get_json()["data"] == []
