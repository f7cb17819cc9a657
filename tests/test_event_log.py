from datetime import datetime, timedelta, timezone

import pytest

from bookstore_requests.models.request import Event
from bookstore_requests.repositories.events_repo import (
    CompositeEventLog,
    EventLog,
    FileAuditLog,
    InMemoryEventLog,
    replay_status,
)

from conftest import run

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class BrokenSink(EventLog):
    async def append(self, event):
        raise OSError("read-only filesystem")


def _event(action, new_status=None, previous_status=None, minutes=0, **metadata):
    return Event(
        request_id="REQ-1-abcdef",
        request_type="special_order",
        action=action,
        previous_status=previous_status,
        new_status=new_status,
        timestamp=T0 + timedelta(minutes=minutes),
        actor="U1",
        metadata=metadata,
    )


def test_replay_follows_timestamps_not_arrival_order():
    events = [
        _event("STATUS_CHANGE", "RECEIVED", "ORDERED", minutes=20),
        _event("REQUEST_CREATED", "NEW", minutes=0),
        _event("FIELDS_ADDED", "ORDERED", "ORDERED", minutes=30),
        _event("STATUS_CHANGE", "ORDERED", "NEW", minutes=10),
    ]
    assert replay_status(events) == "RECEIVED"
    assert replay_status([]) is None


def test_file_audit_log_writes_one_file_per_type(tmp_path):
    log = FileAuditLog(tmp_path / "audit")
    run(log.append(_event("REQUEST_CREATED", "NEW", customer_name="Grace Hopper")))
    run(log.append(_event("STATUS_CHANGE", "ORDERED", "NEW", minutes=5, ordered_by="sam")))

    path = log.path_for("special_order")
    assert path == tmp_path / "audit" / "special_order_events.log"
    text = path.read_text(encoding="utf-8")
    assert text.count("-----------------\nREQUEST ID: REQ-1-abcdef") == 2
    assert "EVENT: REQUEST_CREATED" in text
    assert "PREVIOUS STATUS: NEW\nNEW STATUS: ORDERED" in text
    assert '"ordered_by": "sam"' in text
    assert "USER: U1" in text


def test_file_audit_log_has_no_history(tmp_path):
    log = FileAuditLog(tmp_path)
    assert run(log.history("REQ-1-abcdef")) == []


def test_composite_survives_a_failing_sink():
    memory = InMemoryEventLog()
    log = CompositeEventLog(memory, BrokenSink())

    run(log.append(_event("REQUEST_CREATED", "NEW")))

    assert len(memory.events) == 1
    assert [e.action for e in run(log.history("REQ-1-abcdef"))] == ["REQUEST_CREATED"]


def test_composite_raises_when_every_sink_fails():
    log = CompositeEventLog(BrokenSink(), BrokenSink())
    with pytest.raises(OSError):
        run(log.append(_event("REQUEST_CREATED", "NEW")))


def test_composite_needs_a_sink():
    with pytest.raises(ValueError):
        CompositeEventLog()


def test_in_memory_history_is_filtered_and_ordered():
    log = InMemoryEventLog()
    run(log.append(_event("STATUS_CHANGE", "ORDERED", "NEW", minutes=10)))
    run(log.append(_event("REQUEST_CREATED", "NEW")))
    other = _event("REQUEST_CREATED", "NEW")
    other.request_id = "REQ-2-fedcba"
    run(log.append(other))

    history = run(log.history("REQ-1-abcdef"))
    assert [e.action for e in history] == ["REQUEST_CREATED", "STATUS_CHANGE"]
