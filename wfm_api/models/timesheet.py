from datetime import datetime

from wfm_api.extensions import db

TIMESHEET_STATUSES = ("draft", "pending", "approved", "rejected")


class Timesheet(db.Model):
    __tablename__ = "timesheets"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="draft")
    total_hours = db.Column(db.Float)
    break_hours = db.Column(db.Float)
    overtime_hours = db.Column(db.Float)
    notes = db.Column(db.Text)

    submitted_at = db.Column(db.DateTime)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    reviewed_at = db.Column(db.DateTime)
    review_comment = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "period_start", "period_end", name="uq_timesheet_user_period"),
    )

    user = db.relationship("Profile", foreign_keys=[user_id])
