from wfm_api.extensions import db
from wfm_api.models.org import Organization
from wfm_api.models.user import Profile

from conftest import auth_headers


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json() == {"success": True, "data": {"status": "ok"}}


def test_login_and_me(client, make_member):
    emp = make_member("employee", password="hunter22")
    email = emp.user.email

    r = client.post("/api/v1/auth/login", json={"email": email, "password": "wrong"})
    assert r.status_code == 401
    assert r.get_json()["success"] is False

    r = client.post("/api/v1/auth/login", json={"email": email.upper(), "password": "hunter22"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["profile"]["id"] == emp.id
    assert data["profile"]["role"] == "employee"
    assert data["organizations"] == [emp.organization_id]

    r = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access']}"})
    assert r.status_code == 200
    assert r.get_json()["data"]["email"] == email

    r = client.post("/api/v1/auth/refresh", headers={"Authorization": f"Bearer {data['refresh']}"})
    assert r.status_code == 200
    assert r.get_json()["data"]["access"]


def test_login_picks_requested_organization(client, org, make_member):
    first = make_member("employee", password="pw123456")
    other = Organization(name="Second", slug="second", settings={})
    db.session.add(other)
    db.session.commit()
    db.session.add(Profile(user_id=first.user_id, organization_id=other.id, role="manager"))
    db.session.commit()

    r = client.post("/api/v1/auth/login", json={
        "email": first.user.email, "password": "pw123456", "organization_id": other.id,
    })
    data = r.get_json()["data"]
    assert data["profile"]["organization_id"] == other.id
    assert data["profile"]["role"] == "manager"
    assert sorted(data["organizations"]) == sorted([org.id, other.id])


def test_missing_and_bad_tokens(client):
    r = client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.get_json()["error"]["code"] == "UNAUTHORIZED"

    r = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_inactive_profile_is_forbidden(client, make_member):
    emp = make_member("employee")
    h = auth_headers(emp)
    emp.status = "inactive"
    db.session.commit()
    r = client.get("/api/v1/shifts", headers=h)
    assert r.status_code == 403


def test_unknown_route_uses_envelope(client):
    r = client.get("/api/v1/nope")
    assert r.status_code == 404
    assert r.get_json()["success"] is False
