# wfm_api/common/paging.py
import math
from datetime import date, datetime, timedelta

from flask import request

from wfm_api.common.errors import bad_request

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def limit_offset(default=DEFAULT_LIMIT, maximum=MAX_LIMIT):
    try:
        limit = int(request.args.get("limit", default))
        limit = max(1, min(limit, maximum))
    except (TypeError, ValueError):
        limit = default
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (TypeError, ValueError):
        offset = 0
    return limit, offset


def page_meta(total: int, limit: int, offset: int) -> dict:
    return {"total": total, "limit": limit, "offset": offset, "has_more": offset + limit < total}


def arg_bool(name):
    """?flag=true/false -> True/False, absent -> None."""
    raw = request.args.get(name)
    if raw is None:
        return None
    v = raw.strip().lower()
    if v in ("true", "1", "yes"):
        return True
    if v in ("false", "0", "no"):
        return False
    raise bad_request(f"{name} must be true/false")


_DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y")
_DT_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
)


def parse_date(s, field="date"):
    if s is None or s == "":
        return None
    if isinstance(s, date) and not isinstance(s, datetime):
        return s
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(str(s)[:10], fmt).date()
        except ValueError:
            pass
    raise bad_request(f"Invalid {field}: {s}")


def parse_datetime(s, field="datetime"):
    """ISO-ish timestamp -> naive UTC datetime. A trailing Z / offset is folded into UTC."""
    if s is None or s == "":
        return None
    if isinstance(s, datetime):
        return s
    raw = str(s).strip()
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if dt.tzinfo is not None:
            dt = (dt - dt.utcoffset()).replace(tzinfo=None)
        return dt
    except ValueError:
        pass
    for fmt in _DT_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            pass
    raise bad_request(f"Invalid {field}: {s}")


def iso(v):
    return v.isoformat() if v is not None else None


def day_start(d):
    return datetime(d.year, d.month, d.day)


def day_after(d):
    return day_start(d) + timedelta(days=1)


# ---------- body / query coercion ----------
def as_int(value, field, required=False):
    """JSON value -> int; None/"" stays None unless required. Anything else non-numeric is a 400."""
    if value is None or value == "":
        if required:
            raise bad_request(f"{field} is required")
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise bad_request(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise bad_request(f"{field} must be an integer")


def as_float(value, field, required=False):
    if value is None or value == "":
        if required:
            raise bad_request(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise bad_request(f"{field} must be a number")
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise bad_request(f"{field} must be a number")
    if not math.isfinite(out):
        raise bad_request(f"{field} must be a number")
    return out


def as_int_list(values, field):
    if not isinstance(values, list):
        raise bad_request(f"{field} must be a list")
    return [as_int(v, field, required=True) for v in values]


def as_bool(value, field, default=None):
    """Only real JSON booleans; "false" and friends are rejected."""
    if value is None:
        return default
    if not isinstance(value, bool):
        raise bad_request(f"{field} must be true or false")
    return value


def as_hhmm(value, field, required=False):
    """'HH:MM' wall-clock string, normalised to two-digit parts."""
    if value is None or value == "":
        if required:
            raise bad_request(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise bad_request(f"{field} must be HH:MM")
    try:
        t = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        raise bad_request(f"{field} must be HH:MM")
    return t.strftime("%H:%M")
