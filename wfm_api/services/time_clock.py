# wfm_api/services/time_clock.py
"""
Time-clock rules: clock in/out, breaks, status and automatic clock-out.

All functions take an optional `now` (naive UTC) so tests can pin the clock.
Rule violations raise APIError; successful punches are committed here.
"""
import logging
import math
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import and_

from wfm_api.common.errors import bad_request, forbidden
from wfm_api.common.paging import as_int, as_int_list
from wfm_api.extensions import db
from wfm_api.models.org import Location, Organization
from wfm_api.models.shift import Shift
from wfm_api.models.time_entry import TimeEntry, ENTRY_STATUSES, ENTRY_TYPES
from wfm_api.models.user import Profile
from wfm_api.rbac import is_privileged
from wfm_api.services.geofence import GeofenceService
from wfm_api.services.notifications import notify_privileged
from wfm_api.services.org_settings import load_section, org_zone
from wfm_api.services.work_hours import day_minutes

log = logging.getLogger(__name__)


def _utcnow():
    return datetime.utcnow()


def _local_date(at, zone):
    return at.replace(tzinfo=timezone.utc).astimezone(zone).date()


def _day_bounds(now, zone=timezone.utc):
    """Naive-UTC [start, end) of the organization's calendar day containing `now`."""
    day = _local_date(now, zone)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return (start.astimezone(timezone.utc).replace(tzinfo=None),
            end.astimezone(timezone.utc).replace(tzinfo=None))


def org_day_bounds(org, now=None):
    return _day_bounds(now or _utcnow(), org_zone(org))


def todays_entries(profile, now=None):
    now = now or _utcnow()
    start, end = org_day_bounds(_org(profile), now)
    return (TimeEntry.query
            .filter(TimeEntry.user_id == profile.id,
                    TimeEntry.timestamp >= start,
                    TimeEntry.timestamp < end)
            .order_by(TimeEntry.timestamp.asc(), TimeEntry.id.asc())
            .all())


def _latest_today(profile, now):
    rows = todays_entries(profile, now)
    return rows[-1] if rows else None


def _coords(coordinates):
    if not coordinates or not isinstance(coordinates, dict):
        return None
    lat, lng = coordinates.get("lat"), coordinates.get("lng")
    if lat is None or lng is None:
        return None
    try:
        return {"lat": float(lat), "lng": float(lng)}
    except (TypeError, ValueError):
        raise bad_request("coordinates must be numeric")


def _org(profile):
    return db.session.get(Organization, profile.organization_id)


# ---------- clock in ----------

def _check_shift(profile, shift_id, settings, now):
    shift = db.session.get(Shift, as_int(shift_id, "shift_id", required=True))
    if shift is None or shift.organization_id != profile.organization_id:
        raise bad_request("Invalid shift")
    if shift.user_id != profile.id:
        raise bad_request("This shift is not assigned to you")
    zone = org_zone(_org(profile))
    if _local_date(shift.start_time, zone) != _local_date(now, zone):
        raise bad_request("This shift is not for today")

    if settings.require_shift_for_clock_in:
        diff = (now - shift.start_time).total_seconds() / 60.0
        early = settings.allow_early_clock_in_minutes
        late = settings.allow_late_clock_in_minutes
        if diff < -early:
            wait = math.ceil(-diff - early)
            raise bad_request(f"Too early to clock in. Please wait {wait} more minute(s).")
        if diff > late:
            raise bad_request(f"Clock-in window has expired. The shift started {math.floor(diff)} minutes ago.")

    already = TimeEntry.query.filter_by(shift_id=shift.id, entry_type="clock_in").first()
    if already is not None:
        raise bad_request("This shift has already been clocked in")
    return shift


def _check_location(profile, location_id):
    if location_id is None:
        raise bad_request("location_id is required")
    loc = db.session.get(Location, as_int(location_id, "location_id", required=True))
    if loc is None or loc.organization_id != profile.organization_id:
        raise bad_request("Invalid location")
    if not loc.is_active:
        raise bad_request("This location is not active")
    return loc


def clock_in(profile, location_id=None, shift_id=None, notes=None, coordinates=None, now=None) -> TimeEntry:
    now = now or _utcnow()
    settings = load_section(_org(profile), "time_clock")

    if settings.require_shift_for_clock_in and not shift_id:
        raise bad_request("shift_id is required")

    shift = _check_shift(profile, shift_id, settings, now) if shift_id else None

    if location_id is None and shift is not None:
        location_id = shift.location_id
    loc = _check_location(profile, location_id)

    coords = _coords(coordinates)
    inside = None
    lat, lon, radius = loc.geo_center()
    if lat is not None:
        if coords is not None:
            inside, dist = GeofenceService.check_geofence(coords["lat"], coords["lng"], lat, lon, radius)
            if not inside and not loc.allow_clock_outside:
                log.info("clock-in refused: profile=%s %.0fm from location %s", profile.id, dist, loc.id)
                raise bad_request("You must be within the work location to clock in")
        elif not loc.allow_clock_outside:
            raise bad_request("Location coordinates are required for this location")

    last = _latest_today(profile, now)
    if last is not None and last.entry_type != "clock_out":
        raise bad_request("Already clocked in. Please clock out first.")

    entry = TimeEntry(
        organization_id=profile.organization_id,
        user_id=profile.id,
        shift_id=shift.id if shift is not None else None,
        location_id=loc.id,
        entry_type="clock_in",
        timestamp=now,
        latitude=coords["lat"] if coords else None,
        longitude=coords["lng"] if coords else None,
        is_inside_geofence=inside,
        notes=notes,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


# ---------- clock out / breaks ----------

def _last_clock_in(rows):
    for e in reversed(rows):
        if e.entry_type == "clock_in":
            return e
    return None


def clock_out(profile, notes=None, coordinates=None, now=None) -> TimeEntry:
    now = now or _utcnow()
    rows = todays_entries(profile, now)
    last = rows[-1] if rows else None
    if last is None:
        raise bad_request("Not clocked in")
    if last.entry_type == "clock_out":
        raise bad_request("Already clocked out")
    if last.entry_type == "break_start":
        raise bad_request("Must end break before clocking out")

    opened = _last_clock_in(rows)
    loc = db.session.get(Location, opened.location_id) if opened and opened.location_id else None
    coords = _coords(coordinates)

    entry = TimeEntry(
        organization_id=profile.organization_id,
        user_id=profile.id,
        shift_id=opened.shift_id if opened else None,
        location_id=loc.id if loc else None,
        entry_type="clock_out",
        timestamp=now,
        latitude=coords["lat"] if coords else None,
        longitude=coords["lng"] if coords else None,
        is_inside_geofence=GeofenceService.evaluate(loc, coords),
        notes=notes,
    )
    db.session.add(entry)
    db.session.commit()

    _maybe_alert_overtime(profile, rows + [entry])
    return entry


def _maybe_alert_overtime(profile, rows):
    try:
        settings = load_section(_org(profile), "time_clock")
        if not settings.notify_on_overtime:
            return
        worked, _ = day_minutes(rows)
        hours = worked / 60.0
        if hours <= settings.overtime_threshold_hours:
            return
        notify_privileged(
            profile.organization_id,
            "overtime_alert",
            "Overtime Alert",
            f"{profile.name or 'An employee'} has worked {hours:.1f} hours today",
            {"user_id": profile.id, "hours": round(hours, 2)},
            exclude_id=profile.id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        log.exception("overtime alert failed for profile %s", profile.id)


def _punch(profile, entry_type, last, notes, now):
    entry = TimeEntry(
        organization_id=profile.organization_id,
        user_id=profile.id,
        shift_id=last.shift_id,
        location_id=last.location_id,
        entry_type=entry_type,
        timestamp=now,
        notes=notes,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def break_start(profile, notes=None, now=None) -> TimeEntry:
    now = now or _utcnow()
    last = _latest_today(profile, now)
    if last is None or last.entry_type == "clock_out":
        raise bad_request("Not clocked in")
    if last.entry_type == "break_start":
        raise bad_request("Already on break")
    return _punch(profile, "break_start", last, notes, now)


def break_end(profile, notes=None, now=None) -> TimeEntry:
    now = now or _utcnow()
    last = _latest_today(profile, now)
    if last is None or last.entry_type != "break_start":
        raise bad_request("Not on break")
    return _punch(profile, "break_end", last, notes, now)


# ---------- status ----------

_STATUS_BY_LAST = {
    "clock_in": "clocked_in",
    "break_end": "clocked_in",
    "break_start": "on_break",
    "clock_out": "not_clocked_in",
}


def clock_status(profile, now=None) -> dict:
    """Current state is read from the most recent entry only."""
    now = now or _utcnow()
    rows = todays_entries(profile, now)
    last = rows[-1] if rows else None
    worked, breaks = day_minutes(rows, now=now)
    return {
        "status": _STATUS_BY_LAST.get(last.entry_type, "not_clocked_in") if last else "not_clocked_in",
        "last_entry": last,
        "entries": rows,
        "worked_minutes": int(worked),
        "break_minutes": int(breaks),
    }


# ---------- manual entries ----------

def create_manual_entry(actor, target, entry_type, timestamp, notes=None, location_id=None) -> TimeEntry:
    if entry_type not in ENTRY_TYPES:
        raise bad_request(f"entry_type must be one of {', '.join(ENTRY_TYPES)}")
    if timestamp is None:
        raise bad_request("timestamp is required")
    settings = load_section(_org(actor), "time_clock")
    if not is_privileged(actor):
        if target.id != actor.id:
            raise forbidden("You can only add entries for yourself")
        if not settings.allow_manual_time_entry:
            raise forbidden("Manual time entries are disabled")
    if settings.require_notes_for_manual_entry and not (notes or "").strip():
        raise bad_request("notes are required for manual entries")
    if location_id is not None:
        _check_location(actor, location_id)

    entry = TimeEntry(
        organization_id=actor.organization_id,
        user_id=target.id,
        location_id=location_id,
        entry_type=entry_type,
        timestamp=timestamp,
        notes=notes,
        is_manual=True,
        created_by=actor.id,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


# ---------- review / edits ----------

def _set_status(entry, status, reviewer, now):
    entry.status = status
    if status == "approved":
        entry.approved_by = reviewer.id
        entry.approved_at = now
    else:
        entry.approved_by = None
        entry.approved_at = None


def update_entry(actor, entry, changes, now=None) -> TimeEntry:
    """
    Edit one punch. Moving the timestamp marks the entry manual and is
    subject to the same rules as adding a manual entry; only privileged
    members may change the review status.
    """
    now = now or _utcnow()
    privileged = is_privileged(actor)
    if entry.user_id != actor.id and not privileged:
        raise forbidden("You can only edit your own time entries")

    notes = changes.get("notes", entry.notes)
    if notes is not None and not isinstance(notes, str):
        raise bad_request("notes must be a string")

    if "timestamp" in changes:
        ts = changes["timestamp"]
        if ts is None:
            raise bad_request("timestamp cannot be empty")
        settings = load_section(_org(actor), "time_clock")
        if not privileged:
            if actor.allow_time_edit is False:
                raise forbidden("You are not allowed to edit time entries")
            if not settings.allow_manual_time_entry:
                raise forbidden("Manual time entries are disabled")
        if settings.require_notes_for_manual_entry and not (notes or "").strip():
            raise bad_request("Notes are required when editing time entries")
        if ts != entry.timestamp:
            entry.timestamp = ts
            entry.is_manual = True

    if "notes" in changes:
        entry.notes = notes

    if changes.get("status") is not None:
        if not privileged:
            raise forbidden("Only managers can change the review status")
        if changes["status"] not in ENTRY_STATUSES:
            raise bad_request(f"status must be one of {', '.join(ENTRY_STATUSES)}")
        _set_status(entry, changes["status"], actor, now)

    db.session.commit()
    return entry


def bulk_set_status(actor, entry_ids, status, now=None) -> int:
    now = now or _utcnow()
    if not is_privileged(actor):
        raise forbidden("Only managers can review time entries")
    if not entry_ids:
        raise bad_request("entry_ids is required and cannot be empty")
    ids = as_int_list(entry_ids, "entry_ids")
    if not status:
        raise bad_request("status is required")
    if status not in ENTRY_STATUSES:
        raise bad_request(f"status must be one of {', '.join(ENTRY_STATUSES)}")

    rows = TimeEntry.query.filter(TimeEntry.organization_id == actor.organization_id,
                                  TimeEntry.id.in_(ids)).all()
    for e in rows:
        _set_status(e, status, actor, now)
    db.session.commit()
    log.info("time entries: %s set %s on %s of %s requested", actor.id, status, len(rows), len(ids))
    return len(rows)


# ---------- automatic clock-out ----------

def _cutoff(profile, settings, clock_in_at):
    hhmm = (profile.auto_clock_out_time or "").strip()
    if hhmm:
        try:
            hh, mm = (int(x) for x in hhmm.split(":", 1))
            at = clock_in_at.replace(hour=hh, minute=mm, second=0, microsecond=0)
            if at <= clock_in_at:
                at += timedelta(days=1)
            return at
        except ValueError:
            log.warning("profile %s: bad auto_clock_out_time %r", profile.id, hhmm)
    return clock_in_at + timedelta(hours=float(settings.auto_clock_out_hours))


def auto_clock_out(now=None) -> dict:
    """
    Close sessions left open past their cutoff in every organization that
    enabled it. The clock_out is stamped at the cutoff, not at run time.
    """
    now = now or _utcnow()
    processed = clocked_out = 0
    errors = []

    for org in Organization.query.order_by(Organization.id.asc()).all():
        settings = load_section(org, "time_clock")
        if not settings.auto_clock_out_enabled:
            continue

        for profile in Profile.query.filter_by(organization_id=org.id, status="active").all():
            if profile.auto_clock_out_enabled is False:
                continue
            last_in = (TimeEntry.query
                       .filter_by(user_id=profile.id, entry_type="clock_in")
                       .order_by(TimeEntry.timestamp.desc(), TimeEntry.id.desc())
                       .first())
            if last_in is None:
                continue
            closed = TimeEntry.query.filter(and_(
                TimeEntry.user_id == profile.id,
                TimeEntry.entry_type == "clock_out",
                TimeEntry.timestamp >= last_in.timestamp,
            )).first()
            if closed is not None:
                continue

            processed += 1
            cutoff = _cutoff(profile, settings, last_in.timestamp)
            if now < cutoff:
                continue
            try:
                latest = (TimeEntry.query
                          .filter(TimeEntry.user_id == profile.id)
                          .order_by(TimeEntry.timestamp.desc(), TimeEntry.id.desc())
                          .first())
                if latest is not None and latest.entry_type == "break_start":
                    db.session.add(_auto_entry(profile, last_in, "break_end", cutoff))
                db.session.add(_auto_entry(profile, last_in, "clock_out", cutoff))
                db.session.commit()
                clocked_out += 1
            except Exception as e:
                db.session.rollback()
                log.exception("auto clock-out failed for profile %s", profile.id)
                errors.append({"user_id": profile.id, "error": str(e)})

    log.info("auto clock-out: processed=%s clocked_out=%s errors=%s", processed, clocked_out, len(errors))
    return {"processed": processed, "clocked_out": clocked_out, "errors": errors}


def _auto_entry(profile, last_in, entry_type, at):
    return TimeEntry(
        organization_id=profile.organization_id,
        user_id=profile.id,
        shift_id=last_in.shift_id,
        location_id=last_in.location_id,
        entry_type=entry_type,
        timestamp=at,
        notes="Automatic clock-out",
        is_auto=True,
    )
