# wfm_api/services/org_settings.py
"""
Typed per-organization feature settings.

Organization.settings is a JSON blob holding one sub-object per section.
Reads merge the stored sub-object over the section defaults; writes
shallow-merge a validated patch into the stored sub-object.
"""
import logging
from dataclasses import dataclass, asdict, fields
from datetime import timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wfm_api.common.errors import bad_request

log = logging.getLogger(__name__)


@dataclass
class TimeClockSettings:
    require_shift_for_clock_in: bool = False
    allow_early_clock_in_minutes: int = 30
    allow_late_clock_in_minutes: int = 60
    auto_clock_out_enabled: bool = False
    auto_clock_out_hours: float = 12
    allow_manual_time_entry: bool = True
    require_notes_for_manual_entry: bool = True
    overtime_threshold_hours: float = 8
    notify_on_overtime: bool = True


@dataclass
class ShiftSwapSettings:
    enabled: bool = True
    require_manager_approval: bool = True
    allow_cross_location: bool = False
    allow_cross_department: bool = False
    min_notice_hours: int = 24
    max_future_days: int = 30


@dataclass
class ScheduleSettings:
    week_starts_on: int = 0
    default_shift_duration_hours: float = 8
    min_shift_duration_hours: float = 2
    max_shift_duration_hours: float = 12
    min_rest_between_shifts_hours: float = 8
    max_hours_per_day: float = 10
    max_hours_per_week: float = 40
    overtime_threshold_daily: float = 8
    overtime_threshold_weekly: float = 40
    allow_overtime: bool = True
    require_break_after_hours: float = 6
    break_duration_minutes: int = 30
    auto_publish_days_ahead: int = 7
    show_unpublished_to_employees: bool = False


SECTIONS = {
    "time_clock": TimeClockSettings,
    "shift_swap": ShiftSwapSettings,
    "schedule": ScheduleSettings,
}


def _section_cls(section: str):
    cls = SECTIONS.get(section)
    if cls is None:
        raise bad_request(f"Unknown settings section: {section}")
    return cls


def _coerce(name, typ, value):
    # bool is an int subclass; keep the two apart
    if typ is bool:
        if isinstance(value, bool):
            return value
        raise bad_request(f"{name} must be a boolean")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise bad_request(f"{name} must be a number")
    if value < 0:
        raise bad_request(f"{name} must not be negative")
    if typ is int:
        if isinstance(value, float) and not value.is_integer():
            raise bad_request(f"{name} must be a whole number")
        return int(value)
    return value


def _stored(org, section: str) -> dict:
    blob = org.settings or {}
    sub = blob.get(section) or {}
    return sub if isinstance(sub, dict) else {}


def load_section(org, section: str):
    """Stored values over defaults. Unknown or ill-typed stored keys are ignored."""
    cls = _section_cls(section)
    merged = {}
    stored = _stored(org, section)
    for f in fields(cls):
        if f.name not in stored:
            continue
        try:
            merged[f.name] = _coerce(f.name, f.type, stored[f.name])
        except Exception:
            log.warning("org %s: ignoring bad %s.%s=%r", getattr(org, "id", None), section, f.name, stored[f.name])
    return cls(**merged)


def validate_patch(section: str, patch) -> dict:
    cls = _section_cls(section)
    if not isinstance(patch, dict):
        raise bad_request("settings body must be an object")
    types = {f.name: f.type for f in fields(cls)}
    unknown = sorted(set(patch) - set(types))
    if unknown:
        raise bad_request(f"Unknown {section} setting(s): {', '.join(unknown)}", {"unknown_keys": unknown})
    return {k: _coerce(k, types[k], v) for k, v in patch.items()}


def update_section(org, section: str, patch: dict):
    """
    Shallow-merge `patch` into the section: defaults, then stored, then patch.
    Other sections of the blob are left untouched. Caller commits.
    """
    clean = validate_patch(section, patch)
    current = asdict(load_section(org, section))
    blob = dict(org.settings or {})
    blob[section] = {**current, **clean}
    # new dict object so the JSON column is flagged dirty
    org.settings = blob
    return load_section(org, section)


def org_zone(org):
    """tzinfo for the organization's local calendar day; unknown names read as UTC."""
    name = (getattr(org, "timezone", None) or "UTC").strip()
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("org %s: unknown timezone %r, using UTC", getattr(org, "id", None), name)
        return timezone.utc


def validate_timezone(name):
    if not name or name.strip().upper() == "UTC":
        return "UTC"
    try:
        ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise bad_request("Invalid timezone")
    return name.strip()
