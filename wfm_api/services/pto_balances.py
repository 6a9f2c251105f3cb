# wfm_api/services/pto_balances.py
"""
PTO balance bookkeeping: bulk initialization for a year and the
pending/used movements driven by PTO requests.
"""
import logging
from datetime import datetime

from wfm_api.common.errors import bad_request
from wfm_api.common.paging import as_int, as_int_list
from wfm_api.extensions import db
from wfm_api.models.pto import PTOBalance, PTOPolicy
from wfm_api.models.user import Profile

log = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 1000


def _key(user_id, pto_type, policy_id):
    return f"{user_id}:{pto_type}:{policy_id}"


def initialize_balances(organization_id, user_ids=None, year=None, overwrite_existing=False, today=None) -> dict:
    """
    Create one balance per (active member × active policy) for `year`.

    - existing row, no overwrite  -> skipped
    - existing row, overwrite     -> entitled_days reset to the policy allowance
    - missing row                 -> inserted with entitled_days from the policy

    Inserts go in batches of INSERT_BATCH_SIZE, each inside its own savepoint;
    a failing batch or update is reported in `errors` and the rest carries on.
    """
    today = today or datetime.utcnow().date()
    current = today.year
    year = as_int(year, "year")
    if year is None:
        year = current
    if abs(year - current) > 1:
        raise bad_request("Year must be within current year ± 1")

    policies = (PTOPolicy.query
                .filter_by(organization_id=organization_id, is_active=True)
                .order_by(PTOPolicy.id.asc())
                .all())
    if not policies:
        raise bad_request("No active PTO policies found. Please create policies first.")

    q = Profile.query.filter_by(organization_id=organization_id)
    if user_ids:
        wanted = set(as_int_list(user_ids, "user_ids"))
        found = {p.id for p in q.filter(Profile.id.in_(wanted)).all()}
        invalid = sorted(wanted - found)
        if invalid:
            raise bad_request("Some user_ids are not members of this organization",
                              {"invalid_user_ids": invalid})
        q = q.filter(Profile.id.in_(wanted))
    users = q.filter(Profile.status == "active").order_by(Profile.id.asc()).all()
    if not users:
        raise bad_request("No active users found")

    existing = {
        _key(b.user_id, b.pto_type, b.policy_id): b
        for b in PTOBalance.query.filter(
            PTOBalance.organization_id == organization_id,
            PTOBalance.year == year,
            PTOBalance.user_id.in_([u.id for u in users]),
        ).all()
    }

    created = skipped = updated = 0
    errors = []
    to_insert = []

    for u in users:
        for p in policies:
            row = existing.get(_key(u.id, p.pto_type, p.id))
            if row is None:
                to_insert.append(PTOBalance(
                    organization_id=organization_id,
                    user_id=u.id,
                    policy_id=p.id,
                    pto_type=p.pto_type,
                    year=year,
                    entitled_days=p.annual_allowance or 0,
                    used_days=0,
                    pending_days=0,
                    carryover_days=0,
                    adjustment_days=0,
                ))
                continue
            if not overwrite_existing:
                skipped += 1
                continue
            try:
                with db.session.begin_nested():
                    row.entitled_days = p.annual_allowance or 0
                updated += 1
            except Exception as e:
                log.exception("PTO balance update failed user=%s policy=%s", u.id, p.id)
                errors.append({"user_id": u.id, "policy_id": p.id, "error": str(e)})

    for i in range(0, len(to_insert), INSERT_BATCH_SIZE):
        batch = to_insert[i:i + INSERT_BATCH_SIZE]
        try:
            with db.session.begin_nested():
                db.session.add_all(batch)
            created += len(batch)
        except Exception as e:
            log.exception("PTO balance insert batch %s failed", i // INSERT_BATCH_SIZE)
            errors.extend({"user_id": b.user_id, "policy_id": b.policy_id, "error": str(e)} for b in batch)

    db.session.commit()
    log.info("PTO init org=%s year=%s created=%s skipped=%s updated=%s errors=%s",
             organization_id, year, created, skipped, updated, len(errors))
    return {"created": created, "skipped": skipped, "updated": updated, "errors": errors, "year": year}


# ---------- request bookkeeping ----------

def find_balance(user_id, pto_type, year):
    return (PTOBalance.query
            .filter_by(user_id=user_id, pto_type=pto_type, year=year)
            .order_by(PTOBalance.id.asc())
            .first())


def reserve(balance, days):
    balance.pending_days = (balance.pending_days or 0) + days


def release(balance, days):
    if balance is not None:
        balance.pending_days = max((balance.pending_days or 0) - days, 0)


def book_used(organization_id, user_id, pto_type, year, days, from_pending=True):
    """Move `days` from pending to used, creating the balance row when missing."""
    bal = find_balance(user_id, pto_type, year)
    if bal is None:
        policy = PTOPolicy.query.filter_by(organization_id=organization_id, pto_type=pto_type,
                                           is_active=True).first()
        bal = PTOBalance(
            organization_id=organization_id,
            user_id=user_id,
            policy_id=policy.id if policy else None,
            pto_type=pto_type,
            year=year,
            entitled_days=policy.annual_allowance if policy else 0,
            used_days=0,
            pending_days=0,
            carryover_days=0,
            adjustment_days=0,
        )
        db.session.add(bal)
    elif from_pending:
        release(bal, days)
    bal.used_days = (bal.used_days or 0) + days
    return bal
