from datetime import datetime

from werkzeug.security import generate_password_hash, check_password_hash

from wfm_api.extensions import db

ROLES = ("owner", "admin", "manager", "employee")


class User(db.Model):
    __tablename__ = "users"

    id           = db.Column(db.Integer, primary_key=True)
    email        = db.Column(db.String(255), unique=True, index=True, nullable=False)
    password_hash= db.Column(db.String(255), nullable=False)
    full_name    = db.Column(db.String(255), nullable=False)
    status       = db.Column(db.String(20), default="active")
    created_at   = db.Column(db.DateTime, default=datetime.utcnow)

    profiles = db.relationship("Profile", back_populates="user", lazy="selectin")

    # --- helpers ---
    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)


class Profile(db.Model):
    """
    Membership of a user in one organization. Everything org-scoped
    (shifts, time entries, PTO, timesheets...) points at profiles.id.
    """

    __tablename__ = "profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = db.Column(db.String(20), nullable=False, default="employee")
    status = db.Column(db.String(20), nullable=False, default="active")

    first_name = db.Column(db.String(120))
    last_name = db.Column(db.String(120))
    display_name = db.Column(db.String(255))
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), index=True)
    phone = db.Column(db.String(40))
    hourly_rate = db.Column(db.Numeric(10, 2))
    preferences = db.Column(db.JSON, nullable=False, default=dict)
    notification_settings = db.Column(db.JSON, nullable=False, default=dict)
    # False blocks the member from moving their own punch times
    allow_time_edit = db.Column(db.Boolean, nullable=False, default=True)

    # NULL = follow the organization setting
    auto_clock_out_enabled = db.Column(db.Boolean)
    auto_clock_out_time = db.Column(db.String(5))  # "HH:MM"

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "organization_id", name="uq_profile_user_org"),
    )

    user = db.relationship("User", back_populates="profiles")
    organization = db.relationship("Organization")
    department = db.relationship("Department", foreign_keys=[department_id])
    positions = db.relationship("UserPosition", back_populates="profile", cascade="all, delete-orphan")
    locations = db.relationship("UserLocation", back_populates="profile", cascade="all, delete-orphan")

    @property
    def name(self):
        if self.display_name:
            return self.display_name
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or (self.user.full_name if self.user else None)

    @property
    def is_active(self):
        return self.status == "active"


class UserPosition(db.Model):
    """Positions a member can work, with an optional per-position wage."""

    __tablename__ = "user_positions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    position_id = db.Column(db.Integer, db.ForeignKey("positions.id", ondelete="CASCADE"), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    wage_rate = db.Column(db.Numeric(10, 2))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "position_id", name="uq_user_position"),
    )

    profile = db.relationship("Profile", back_populates="positions")
    position = db.relationship("Position")


class UserLocation(db.Model):
    __tablename__ = "user_locations"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "location_id", name="uq_user_location"),
    )

    profile = db.relationship("Profile", back_populates="locations")
    location = db.relationship("Location")
