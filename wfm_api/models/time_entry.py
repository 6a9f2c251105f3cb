from datetime import datetime

from wfm_api.extensions import db

ENTRY_TYPES = ("clock_in", "clock_out", "break_start", "break_end")
ENTRY_STATUSES = ("pending", "approved", "rejected")


class TimeEntry(db.Model):
    """
    One punch. Entries are append-only events; the worker's state
    (clocked in / on break / out) is read from the latest one.
    """

    __tablename__ = "time_entries"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="SET NULL"), index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id", ondelete="SET NULL"))

    entry_type = db.Column(db.String(20), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    is_inside_geofence = db.Column(db.Boolean)

    notes = db.Column(db.Text)
    is_manual = db.Column(db.Boolean, nullable=False, default=False)
    is_auto = db.Column(db.Boolean, nullable=False, default=False)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))

    # review by a manager before payroll
    status = db.Column(db.String(20), nullable=False, default="pending")
    approved_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    approved_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_time_entries_user_ts", "user_id", "timestamp"),
    )

    user = db.relationship("Profile", foreign_keys=[user_id])
    location = db.relationship("Location")
