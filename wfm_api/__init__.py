import os
import logging
from datetime import timedelta

import click
from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from wfm_api.extensions import db, migrate, init_db
from wfm_api.common.errors import register_error_handlers
from wfm_api.common.http import fail
from wfm_api.models import load_all

jwt = JWTManager()


def _cors_origins():
    raw = os.getenv("CORS_ORIGINS", "*").strip()
    if raw == "*":
        return "*"
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_app(config_object: str | None = None):
    app = Flask(__name__)

    # Basic inline config (defaults)
    app.config["JWT_SECRET_KEY"] = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret")
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=2)
    app.config["JWT_REFRESH_TOKEN_EXPIRES"] = timedelta(days=7)
    app.config["JWT_DECODE_LEEWAY"] = 120  # 2 minutes grace for clock skew
    # EventSource cannot set headers; the realtime stream takes ?jwt=
    app.config["JWT_TOKEN_LOCATION"] = ["headers", "query_string"]
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["CRON_SECRET"] = os.getenv("CRON_SECRET", "")
    app.config["REALTIME_HEARTBEAT_SECONDS"] = float(os.getenv("REALTIME_HEARTBEAT_SECONDS", "15"))

    # Try loading external config, but don't crash if missing
    if config_object:
        try:
            app.config.from_object(config_object)
        except Exception as e:
            app.logger.warning("Could not import config object %r: %s", config_object, e)

    if not app.debug and not app.testing:
        app.logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))
    logging.getLogger("wfm_api").setLevel(os.getenv("LOG_LEVEL", "INFO"))

    CORS(app, resources={r"/api/*": {"origins": _cors_origins()}})

    # Extensions
    init_db(app)
    register_error_handlers(app)
    jwt.init_app(app)
    migrate.init_app(app, db)
    _register_jwt_errors()

    # Ensure models are loaded so metadata is complete
    with app.app_context():
        load_all()

    from wfm_api.services import realtime
    realtime.install()

    # Blueprints
    from wfm_api.blueprints.health import bp as health_bp
    from wfm_api.blueprints.auth import bp as auth_bp
    from wfm_api.blueprints.organization import bp as organization_bp
    from wfm_api.blueprints.departments import bp as departments_bp
    from wfm_api.blueprints.positions import bp as positions_bp
    from wfm_api.blueprints.profile import bp as profile_bp
    from wfm_api.blueprints.dashboard import bp as dashboard_bp
    from wfm_api.blueprints.settings import bp as settings_bp
    from wfm_api.blueprints.time_clock import bp as time_clock_bp
    from wfm_api.blueprints.time_entries import bp as time_entries_bp
    from wfm_api.blueprints.shifts import bp as shifts_bp
    from wfm_api.blueprints.shift_templates import bp as shift_templates_bp
    from wfm_api.blueprints.shift_swaps import bp as shift_swaps_bp
    from wfm_api.blueprints.pto import bp as pto_bp
    from wfm_api.blueprints.timesheets import bp as timesheets_bp
    from wfm_api.blueprints.notifications import bp as notifications_bp
    from wfm_api.blueprints.chat import bp as chat_bp
    from wfm_api.blueprints.checklists import bp as checklists_bp
    from wfm_api.blueprints.forms import bp as forms_bp
    from wfm_api.blueprints.reports import bp as reports_bp
    from wfm_api.blueprints.audit_logs import bp as audit_logs_bp
    from wfm_api.blueprints.realtime import bp as realtime_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(organization_bp)
    app.register_blueprint(departments_bp)
    app.register_blueprint(positions_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(time_clock_bp)
    app.register_blueprint(time_entries_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(shift_templates_bp)
    app.register_blueprint(shift_swaps_bp)
    app.register_blueprint(pto_bp)
    app.register_blueprint(timesheets_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(checklists_bp)
    app.register_blueprint(forms_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(audit_logs_bp)
    app.register_blueprint(realtime_bp)

    _register_cli(app)
    return app


def _register_jwt_errors():
    @jwt.unauthorized_loader
    def _missing(reason):
        return fail(f"Missing token: {reason}", status=401, code="UNAUTHORIZED")

    @jwt.invalid_token_loader
    def _invalid(reason):
        return fail(f"Invalid token: {reason}", status=401, code="UNAUTHORIZED")

    @jwt.expired_token_loader
    def _expired(_header, _payload):
        return fail("Token has expired", status=401, code="TOKEN_EXPIRED")


# ----------------- CLI COMMANDS -----------------

def _register_cli(app):
    @app.cli.command("seed-demo")
    @click.option("--password", default="demo1234", show_default=True, help="Password for every demo user.")
    def seed_demo(password):
        """Seed a demo organization: one user per role, a location, a department, positions and PTO policies."""
        from wfm_api.models.org import Organization, Location, Department, Position
        from wfm_api.models.user import User, Profile
        from wfm_api.models.pto import PTOPolicy

        org = Organization.query.filter_by(slug="demo").first()
        if not org:
            org = Organization(name="Demo Coffee Co.", slug="demo", settings={})
            db.session.add(org)
            db.session.commit()
            click.echo(f"Organization created: {org.name} (id={org.id})")

        if not Location.query.filter_by(organization_id=org.id).first():
            db.session.add(Location(
                organization_id=org.id, name="Main Street", address="1 Main St",
                latitude=40.7128, longitude=-74.0060, radius_meters=150, geofence_enabled=True,
            ))

        if not Department.query.filter_by(organization_id=org.id).first():
            db.session.add(Department(organization_id=org.id, name="Front of House", code="FOH"))
        for name, color in (("Barista", "brown"), ("Shift Lead", "blue")):
            if not Position.query.filter_by(organization_id=org.id, name=name).first():
                db.session.add(Position(organization_id=org.id, name=name, color=color))

        for pto_type, allowance in (("vacation", 15), ("sick", 5)):
            if not PTOPolicy.query.filter_by(organization_id=org.id, pto_type=pto_type).first():
                db.session.add(PTOPolicy(organization_id=org.id, name=pto_type.title(),
                                         pto_type=pto_type, annual_allowance=allowance))
        db.session.commit()

        for role in ("owner", "admin", "manager", "employee"):
            email = f"{role}@demo.local"
            user = User.query.filter_by(email=email).first()
            if not user:
                user = User(email=email, full_name=f"Demo {role.title()}", status="active")
                user.set_password(password)
                db.session.add(user)
                db.session.commit()
            if not Profile.query.filter_by(user_id=user.id, organization_id=org.id).first():
                db.session.add(Profile(user_id=user.id, organization_id=org.id, role=role,
                                       first_name="Demo", last_name=role.title(), hourly_rate=20))
                db.session.commit()
            click.echo(f"{email} ({role}) / {password}")

        click.echo("Done.")

    @app.cli.command("auto-clock-out")
    def auto_clock_out_cmd():
        """Clock out sessions left open past the organization's cutoff."""
        from wfm_api.services.time_clock import auto_clock_out
        res = auto_clock_out()
        click.echo(f"processed={res['processed']} clocked_out={res['clocked_out']} errors={len(res['errors'])}")
        for e in res["errors"]:
            click.echo(f"  user {e['user_id']}: {e['error']}")
