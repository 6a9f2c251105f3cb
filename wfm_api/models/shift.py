from datetime import datetime

from wfm_api.extensions import db

SHIFT_STATUSES = ("scheduled", "open", "cancelled", "completed")
SWAP_STATUSES = ("pending", "target_accepted", "approved", "rejected", "cancelled")
SWAP_TERMINAL = ("approved", "rejected", "cancelled")


class Shift(db.Model):
    __tablename__ = "shifts"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # NULL user = open shift
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id", ondelete="SET NULL"))
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), index=True)
    position_id = db.Column(db.Integer, db.ForeignKey("positions.id", ondelete="SET NULL"))

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)
    break_minutes = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text)
    color = db.Column(db.String(20))

    status = db.Column(db.String(20), nullable=False, default="scheduled")
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    published_at = db.Column(db.DateTime)
    # first shift of a repeating series; the parent itself has NULL here
    repeat_parent_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="SET NULL"), index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("Profile", foreign_keys=[user_id])
    location = db.relationship("Location")
    department = db.relationship("Department")
    position = db.relationship("Position")

    @property
    def series_id(self):
        return self.repeat_parent_id or self.id

    @property
    def duration_hours(self):
        return (self.end_time - self.start_time).total_seconds() / 3600.0


class ShiftSwap(db.Model):
    __tablename__ = "shift_swaps"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requester_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False)
    target_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), index=True)
    target_shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="SET NULL"))
    reason = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default="pending")
    reviewed_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    reviewed_at = db.Column(db.DateTime)
    review_comment = db.Column(db.Text)
    applied_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requester = db.relationship("Profile", foreign_keys=[requester_id])
    target = db.relationship("Profile", foreign_keys=[target_id])
    requester_shift = db.relationship("Shift", foreign_keys=[requester_shift_id])
    target_shift = db.relationship("Shift", foreign_keys=[target_shift_id])

    @property
    def is_terminal(self):
        return self.status in SWAP_TERMINAL


class ShiftTemplate(db.Model):
    """Reusable shift pattern; times are wall-clock "HH:MM" strings."""

    __tablename__ = "shift_templates"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)
    break_minutes = db.Column(db.Integer, nullable=False, default=0)
    position_id = db.Column(db.Integer, db.ForeignKey("positions.id", ondelete="SET NULL"))
    color = db.Column(db.String(20), nullable=False, default="blue")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    position = db.relationship("Position")
