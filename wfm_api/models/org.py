from datetime import datetime

from wfm_api.extensions import db


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    # nested feature settings: {"time_clock": {...}, "shift_swap": {...}, "schedule": {...}}
    settings = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Location(db.Model):
    """
    A physical work site.

    latitude, longitude, radius_meters -> geofence circle; the fence only
    applies when geofence_enabled and all three are set.
    allow_clock_outside -> punches outside the circle are recorded, not refused.
    """

    __tablename__ = "locations"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255))

    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    radius_meters = db.Column(db.Integer)
    geofence_enabled = db.Column(db.Boolean, default=False, nullable=False)
    allow_clock_outside = db.Column(db.Boolean, default=False, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_location_org_name"),
    )

    organization = db.relationship(
        "Organization", backref=db.backref("locations", lazy="dynamic")
    )

    def geo_center(self):
        """Return (lat, lon, radius_m) or (None, None, None) if the fence is not in force."""
        if not self.geofence_enabled:
            return None, None, None
        if self.latitude is None or self.longitude is None or self.radius_meters is None:
            return None, None, None
        return float(self.latitude), float(self.longitude), int(self.radius_meters)


class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(40))
    description = db.Column(db.Text)
    parent_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"))
    # profiles also point back here through department_id
    manager_id = db.Column(
        db.Integer,
        db.ForeignKey("profiles.id", ondelete="SET NULL", use_alter=True, name="fk_departments_manager_id"),
    )
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_department_org_name"),
    )

    parent = db.relationship("Department", remote_side=[id])
    manager = db.relationship("Profile", foreign_keys=[manager_id])


class Position(db.Model):
    __tablename__ = "positions"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    color = db.Column(db.String(20), nullable=False, default="blue")
    description = db.Column(db.Text)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "name", name="uq_position_org_name"),
    )
