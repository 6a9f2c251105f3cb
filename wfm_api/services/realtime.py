# wfm_api/services/realtime.py
"""
In-process change feed.

ORM flushes are captured per session and published to subscribers only
after the transaction commits; a rollback discards them. Each subscriber
owns a bounded queue: when it is full new events for that subscriber are
dropped and counted, publishers never block.
"""
import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

log = logging.getLogger(__name__)

WATCHED_TABLES = (
    "shifts",
    "time_entries",
    "shift_swaps",
    "timesheets",
    "pto_requests",
    "notifications",
    "chat_messages",
    "chat_participants",
)

_PENDING_KEY = "wfm_pending_changes"


@dataclass
class ChangeEvent:
    table: str
    type: str  # INSERT / UPDATE / DELETE
    record: dict
    organization_id: Optional[int] = None
    at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self):
        return {
            "table": self.table,
            "type": self.type,
            "record": self.record,
            "organization_id": self.organization_id,
            "at": self.at.isoformat(),
        }


class Subscription:
    """Handle returned by ChangeFeed.subscribe; close() it when done."""

    def __init__(self, feed, table: str, predicate: Optional[Callable] = None, maxsize: int = 256):
        self.feed = feed
        self.table = table
        self.predicate = predicate
        self.queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def offer(self, ev: ChangeEvent):
        if self.closed or ev.table != self.table:
            return
        if self.predicate is not None and not self.predicate(ev):
            return
        try:
            self.queue.put_nowait(ev)
        except queue.Full:
            self.dropped += 1

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        if not self.closed:
            self.closed = True
            self.feed._remove(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ChangeFeed:
    def __init__(self, maxsize: int = 256):
        self.maxsize = maxsize
        self._subs = []
        self._lock = threading.Lock()

    def subscribe(self, table: str, predicate: Optional[Callable] = None) -> Subscription:
        if table not in WATCHED_TABLES:
            raise ValueError(f"table {table!r} is not published")
        sub = Subscription(self, table, predicate, self.maxsize)
        with self._lock:
            self._subs.append(sub)
        return sub

    def _remove(self, sub):
        with self._lock:
            if sub in self._subs:
                self._subs.remove(sub)

    @property
    def subscriber_count(self):
        with self._lock:
            return len(self._subs)

    def publish(self, ev: ChangeEvent):
        with self._lock:
            subs = list(self._subs)
        for s in subs:
            try:
                s.offer(ev)
            except Exception:
                log.exception("subscriber predicate failed for %s", ev.table)


feed = ChangeFeed()


# ---------- ORM capture ----------

def _plain(v):
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, Decimal):
        return float(v)
    return v


def _snapshot(obj, loaded_only=False) -> dict:
    state = inspect(obj)
    if loaded_only:
        # deleted rows cannot be refreshed; keep what was already loaded
        loaded = state.dict
        return {attr.key: _plain(loaded.get(attr.key)) for attr in state.mapper.column_attrs}
    return {attr.key: _plain(getattr(obj, attr.key, None)) for attr in state.mapper.column_attrs}


def _capture(session, obj, kind):
    table = getattr(obj, "__tablename__", None)
    if table not in WATCHED_TABLES:
        return
    record = _snapshot(obj, loaded_only=kind == "DELETE")
    session.info.setdefault(_PENDING_KEY, []).append(
        ChangeEvent(
            table=table,
            type=kind,
            record=record,
            organization_id=record.get("organization_id"),
        )
    )


def _after_flush(session, flush_context):
    for obj in session.new:
        _capture(session, obj, "INSERT")
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            _capture(session, obj, "UPDATE")
    for obj in session.deleted:
        _capture(session, obj, "DELETE")


def _after_commit(session):
    pending = session.info.pop(_PENDING_KEY, None) or []
    for ev in pending:
        feed.publish(ev)


def _after_rollback(session):
    session.info.pop(_PENDING_KEY, None)


def install():
    """Hook the ORM session events once per process."""
    for name, fn in (("after_flush", _after_flush),
                     ("after_commit", _after_commit),
                     ("after_rollback", _after_rollback)):
        if not event.contains(Session, name, fn):
            event.listen(Session, name, fn)
