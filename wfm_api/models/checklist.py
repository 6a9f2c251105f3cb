from datetime import datetime

from wfm_api.extensions import db

ASSIGNMENT_STATUSES = ("pending", "in_progress", "completed")


class Checklist(db.Model):
    __tablename__ = "checklists"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    items = db.Column(db.JSON, nullable=False, default=list)  # list of item labels
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ChecklistAssignment(db.Model):
    __tablename__ = "checklist_assignments"

    id = db.Column(db.Integer, primary_key=True)
    checklist_id = db.Column(
        db.Integer, db.ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    due_date = db.Column(db.Date)
    status = db.Column(db.String(20), nullable=False, default="pending")
    completed_items = db.Column(db.JSON, nullable=False, default=list)  # indexes into Checklist.items
    completed_at = db.Column(db.DateTime)
    assigned_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    checklist = db.relationship("Checklist", backref=db.backref("assignments", lazy="dynamic", cascade="all, delete-orphan"))
