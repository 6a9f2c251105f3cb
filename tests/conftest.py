import os
from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from wfm_api import create_app
from wfm_api.extensions import db
from wfm_api.models.org import Organization, Location, Department
from wfm_api.models.shift import Shift
from wfm_api.models.user import User, Profile


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    app.config["CRON_SECRET"] = "cron-test-secret"
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def org(app):
    o = Organization(name="Acme Diner", slug="acme", settings={})
    db.session.add(o)
    db.session.commit()
    return o


@pytest.fixture
def location(org):
    loc = Location(organization_id=org.id, name="Downtown", address="1 Main St")
    db.session.add(loc)
    db.session.commit()
    return loc


def _department_id(org, name):
    """Tests name departments by string; rows are created on first use."""
    if name is None:
        return None
    dept = Department.query.filter_by(organization_id=org.id, name=name).first()
    if dept is None:
        dept = Department(organization_id=org.id, name=name)
        db.session.add(dept)
        db.session.flush()
    return dept.id


@pytest.fixture
def make_member(org):
    seq = {"n": 0}

    def _make(role="employee", password="secret123", department=None, hourly_rate=None, target_org=None):
        seq["n"] += 1
        o = target_org or org
        u = User(email=f"{role}{seq['n']}@{o.slug}.test", full_name=f"{role.title()} {seq['n']}", status="active")
        u.set_password(password)
        db.session.add(u)
        db.session.flush()
        p = Profile(user_id=u.id, organization_id=o.id, role=role, first_name=role.title(),
                    last_name=str(seq["n"]), department_id=_department_id(o, department),
                    hourly_rate=hourly_rate)
        db.session.add(p)
        db.session.commit()
        return p

    return _make


@pytest.fixture
def make_shift(org):
    def _make(profile, start, end, location=None, department=None, published=True, status="scheduled"):
        s = Shift(
            organization_id=org.id,
            user_id=profile.id if profile is not None else None,
            location_id=location.id if location is not None else None,
            department_id=_department_id(org, department),
            start_time=start,
            end_time=end,
            status=status,
            is_published=published,
            published_at=datetime.utcnow() if published else None,
        )
        db.session.add(s)
        db.session.commit()
        return s

    return _make


def auth_headers(profile):
    token = create_access_token(
        identity=str(profile.user_id),
        additional_claims={"org_id": profile.organization_id, "role": profile.role},
    )
    return {"Authorization": f"Bearer {token}"}


def set_settings(org, section, **values):
    blob = dict(org.settings or {})
    blob[section] = {**(blob.get(section) or {}), **values}
    org.settings = blob
    db.session.commit()
