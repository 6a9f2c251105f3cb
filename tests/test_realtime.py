import pytest

from wfm_api.blueprints.realtime import build_predicate
from wfm_api.extensions import db
from wfm_api.models.notification import Notification
from wfm_api.services.realtime import ChangeEvent, ChangeFeed, feed

from conftest import auth_headers


def test_commit_publishes_insert(org, make_member):
    emp = make_member("employee")
    with feed.subscribe("notifications", lambda ev: ev.record.get("user_id") == emp.id) as sub:
        db.session.add(Notification(organization_id=org.id, user_id=emp.id, type="t", title="hello"))
        db.session.commit()
        ev = sub.get(timeout=1)
        assert ev is not None
        assert ev.type == "INSERT"
        assert ev.table == "notifications"
        assert ev.record["title"] == "hello"
        assert ev.organization_id == org.id
        assert sub.get(timeout=0.01) is None


def test_update_and_delete_are_published(org, make_member):
    emp = make_member("employee")
    n = Notification(organization_id=org.id, user_id=emp.id, type="t", title="x")
    db.session.add(n)
    db.session.commit()
    with feed.subscribe("notifications") as sub:
        n.is_read = True
        db.session.commit()
        assert sub.get(timeout=1).type == "UPDATE"
        db.session.delete(n)
        db.session.commit()
        assert sub.get(timeout=1).type == "DELETE"


def test_rollback_discards(org, make_member):
    emp = make_member("employee")
    with feed.subscribe("notifications") as sub:
        db.session.add(Notification(organization_id=org.id, user_id=emp.id, type="t", title="never"))
        db.session.flush()
        db.session.rollback()
        assert sub.get(timeout=0.05) is None


def test_full_queue_drops_instead_of_blocking():
    f = ChangeFeed(maxsize=2)
    sub = f.subscribe("shifts")
    for i in range(5):
        f.publish(ChangeEvent(table="shifts", type="INSERT", record={"id": i}))
    assert sub.dropped == 3
    assert sub.get(timeout=0).record == {"id": 0}


def test_close_removes_subscriber():
    f = ChangeFeed()
    sub = f.subscribe("shifts")
    assert f.subscriber_count == 1
    sub.close()
    sub.close()
    assert f.subscriber_count == 0
    f.publish(ChangeEvent(table="shifts", type="INSERT", record={}))
    assert sub.get(timeout=0) is None


def test_subscription_ignores_other_tables():
    f = ChangeFeed()
    sub = f.subscribe("shifts")
    f.publish(ChangeEvent(table="timesheets", type="INSERT", record={}))
    assert sub.get(timeout=0) is None


def test_unknown_table_rejected():
    with pytest.raises(ValueError):
        ChangeFeed().subscribe("users")


def _ev(table, org_id=1, **record):
    return ChangeEvent(table=table, type="INSERT", record=record, organization_id=org_id)


def test_predicates():
    own = build_predicate("notifications", 5, 1, privileged=True)
    assert own(_ev("notifications", user_id=5))
    assert not own(_ev("notifications", user_id=6))

    emp = build_predicate("shifts", 5, 1, privileged=False)
    assert emp(_ev("shifts", user_id=5))
    assert not emp(_ev("shifts", user_id=6))
    assert not emp(_ev("shifts", org_id=2, user_id=5))

    mgr = build_predicate("time_entries", 9, 1, privileged=True)
    assert mgr(_ev("time_entries", user_id=6))
    assert not mgr(_ev("time_entries", org_id=2, user_id=6))

    swaps = build_predicate("shift_swaps", 5, 1, privileged=False)
    assert swaps(_ev("shift_swaps", requester_id=3, target_id=5))

    chat = build_predicate("chat_messages", 5, 1, privileged=False, room_ids={10})
    assert chat(_ev("chat_messages", org_id=None, room_id=10))
    assert not chat(_ev("chat_messages", org_id=None, room_id=11))


def test_stream_rejects_unknown_table(client, make_member):
    emp = make_member("employee")
    r = client.get("/api/v1/realtime/users", headers=auth_headers(emp))
    assert r.status_code == 404
