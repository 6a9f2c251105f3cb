# wfm_api/services/audit.py
from wfm_api.extensions import db
from wfm_api.models.audit import AuditLog


def record_audit(profile, action, table_name, record_id=None, old_data=None, new_data=None) -> AuditLog:
    """Add an audit row for a privileged mutation; committed with the caller's transaction."""
    row = AuditLog(
        organization_id=profile.organization_id,
        user_id=profile.id,
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_data=old_data,
        new_data=new_data,
    )
    db.session.add(row)
    return row
