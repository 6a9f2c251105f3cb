from datetime import datetime

from wfm_api.extensions import db

PTO_REQUEST_STATUSES = ("pending", "approved", "rejected", "cancelled")


class PTOPolicy(db.Model):
    __tablename__ = "pto_policies"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    pto_type = db.Column(db.String(40), nullable=False)  # vacation / sick / personal ...
    annual_allowance = db.Column(db.Float, nullable=False, default=0)
    accrual_rate = db.Column(db.Float)
    max_carryover = db.Column(db.Float, nullable=False, default=0)
    min_notice_days = db.Column(db.Integer, nullable=False, default=0)
    requires_approval = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PTOBalance(db.Model):
    __tablename__ = "pto_balances"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    policy_id = db.Column(db.Integer, db.ForeignKey("pto_policies.id", ondelete="SET NULL"))
    pto_type = db.Column(db.String(40), nullable=False)
    year = db.Column(db.Integer, nullable=False)

    entitled_days = db.Column(db.Float, nullable=False, default=0)
    used_days = db.Column(db.Float, nullable=False, default=0)
    pending_days = db.Column(db.Float, nullable=False, default=0)
    carryover_days = db.Column(db.Float, nullable=False, default=0)
    adjustment_days = db.Column(db.Float, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "pto_type", "policy_id", "year", name="uq_pto_balance_user_type_policy_year"),
    )

    policy = db.relationship("PTOPolicy")

    @property
    def available_days(self):
        return (
            (self.entitled_days or 0)
            + (self.carryover_days or 0)
            + (self.adjustment_days or 0)
            - (self.used_days or 0)
            - (self.pending_days or 0)
        )


class PTORequest(db.Model):
    __tablename__ = "pto_requests"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    pto_type = db.Column(db.String(40), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Float, nullable=False)
    reason = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default="pending")
    reviewed_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    reviewed_at = db.Column(db.DateTime)
    review_comment = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("Profile", foreign_keys=[user_id])
