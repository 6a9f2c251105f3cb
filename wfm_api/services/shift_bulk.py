# wfm_api/services/shift_bulk.py
import logging
from datetime import datetime, timedelta

from wfm_api.common.errors import bad_request, not_found
from wfm_api.common.paging import as_int_list, parse_date
from wfm_api.extensions import db
from wfm_api.models.shift import Shift

log = logging.getLogger(__name__)

BULK_ACTIONS = ("publish", "copy", "delete")


def project_shift_times(start, end, target_date):
    """
    Move a shift's wall-clock start/end onto `target_date`. An end at or
    before the start rolls to the next day (overnight shifts).
    """
    new_start = datetime.combine(target_date, start.time())
    new_end = datetime.combine(target_date, end.time())
    if new_end <= new_start:
        new_end += timedelta(days=1)
    return new_start, new_end


def _load_all(organization_id, shift_ids):
    ids = list(dict.fromkeys(as_int_list(shift_ids, "shift_ids")))
    rows = Shift.query.filter(Shift.organization_id == organization_id, Shift.id.in_(ids)).all()
    if len(rows) != len(ids):
        raise not_found("Some shifts not found or not accessible")
    by_id = {s.id: s for s in rows}
    return [by_id[i] for i in ids]


def run_bulk(profile, action, shift_ids, target_dates=None, now=None) -> dict:
    if not action or not shift_ids:
        raise bad_request("action and shift_ids are required")
    if not isinstance(shift_ids, list):
        raise bad_request("shift_ids must be a list")
    if action not in BULK_ACTIONS:
        raise bad_request("Invalid action. Must be 'publish', 'copy', or 'delete'")

    shifts = _load_all(profile.organization_id, shift_ids)
    now = now or datetime.utcnow()

    if action == "publish":
        for s in shifts:
            s.is_published = True
            s.published_at = now
        db.session.commit()
        return {"published": len(shifts)}

    if action == "delete":
        for s in shifts:
            db.session.delete(s)
        db.session.commit()
        return {"deleted": len(shifts)}

    if not target_dates or not isinstance(target_dates, list):
        raise bad_request("target_dates are required for copy")
    dates = [parse_date(d, "target date") for d in target_dates]

    created = []
    for day in dates:
        for s in shifts:
            start, end = project_shift_times(s.start_time, s.end_time, day)
            created.append(Shift(
                organization_id=s.organization_id,
                user_id=s.user_id,
                location_id=s.location_id,
                department_id=s.department_id,
                position_id=s.position_id,
                start_time=start,
                end_time=end,
                break_minutes=s.break_minutes,
                notes=s.notes,
                color=s.color,
                status="open" if s.user_id is None else "scheduled",
                is_published=False,
                created_by=profile.id,
            ))
    db.session.add_all(created)
    db.session.commit()
    log.info("bulk copy: %s shift(s) x %s date(s) -> %s new", len(shifts), len(dates), len(created))
    return {"created": len(created), "source_shifts": len(shifts), "target_dates": len(dates)}
