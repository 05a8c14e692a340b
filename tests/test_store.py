import json
import threading
import time

import pytest
from sqlalchemy import text

from agentmem.errors import ConsistencyFailure, UnknownKindError, ValidationError
from agentmem.services import memory_service, memory_storage
from agentmem.services.memory_index import index_document


def _event(title="Event", content="content", **extra):
    return {"type": "work_session", "title": title, "content": content, **extra}


def test_store_event_round_trip(store):
    result = memory_service.store_event(store, "myagent", _event("Auth work", "Implemented JWT tokens"))

    assert result == {"id": "2026-01-29-001", "timestamp": "2026-01-29T12:00:00.000000Z"}

    record = memory_service.get_record(store, "event", result["id"])
    assert record["type"] == "work_session"
    assert record["title"] == "Auth work"
    assert record["content"] == "Implemented JWT tokens"
    assert record["metadata"] == {}
    assert record["tier"] == "hot"


def test_get_record_missing_returns_none(store):
    assert memory_service.get_record(store, "event", "nope") is None


def test_same_day_ids_increase_without_gaps(store):
    ids = [memory_service.store_event(store, "myagent", _event(str(n)))["id"] for n in range(3)]
    assert ids == ["2026-01-29-001", "2026-01-29-002", "2026-01-29-003"]


def test_id_sequence_is_shared_across_agents(store):
    first = memory_service.store_lesson(store, "agent-a", _event())
    second = memory_service.store_lesson(store, "agent-b", _event())
    assert first["id"] == "2026-01-29-001"
    assert second["id"] == "2026-01-29-002"


def test_id_sequence_continues_past_999(store):
    memory_service.store_event(store, "myagent", _event(id="2026-01-29-999"))
    result = memory_service.store_event(store, "myagent", _event())
    assert result["id"] == "2026-01-29-1000"


def test_id_sequence_restarts_on_new_day(store, clock):
    memory_service.store_event(store, "myagent", _event())
    clock.advance(days=1)
    result = memory_service.store_event(store, "myagent", _event())
    assert result["id"] == "2026-01-30-001"


def test_restore_same_id_keeps_one_row_and_one_document(store):
    payload = _event("Database Migration", "Migrated to SQLite", id="evt-db")
    memory_service.store_event(store, "myagent", payload)
    memory_service.store_event(store, "myagent", payload)

    assert len(memory_service.recall(store, "myagent", "events")) == 1
    assert len(memory_service.search(store, "myagent", "Migrated")) == 1


def test_update_replaces_search_document(store):
    memory_service.store_event(store, "myagent", _event("Notes", "original zebra content", id="evt-1"))
    memory_service.store_event(store, "myagent", _event("Notes", "replacement giraffe content", id="evt-1"))

    assert memory_service.search(store, "myagent", "zebra") == []
    hits = memory_service.search(store, "myagent", "giraffe")
    assert [hit["id"] for hit in hits] == ["evt-1"]


def test_restore_without_timestamp_resets_to_now(store, clock):
    memory_service.store_event(store, "myagent", _event(id="evt-1", timestamp="2026-01-01T00:00:00Z"))
    clock.advance(minutes=5)
    result = memory_service.store_event(store, "myagent", _event(id="evt-1"))
    assert result["timestamp"] == "2026-01-29T12:05:00.000000Z"


def test_event_timestamp_is_normalized_to_utc(store):
    result = memory_service.store_event(store, "myagent", _event(timestamp="2026-01-28T12:00:00+02:00"))
    assert result["timestamp"] == "2026-01-28T10:00:00.000000Z"


def test_caller_tier_is_ignored(store):
    result = memory_service.store_event(store, "myagent", _event(tier="cold"))
    assert memory_service.get_record(store, "event", result["id"])["tier"] == "hot"


def test_store_accepts_json_string_payload(store):
    payload = json.dumps(_event("From JSON", "json body", metadata={"source": "cli"}))
    result = memory_service.memory_store(store, "myagent", "event", payload)
    record = memory_service.get_record(store, "event", result["id"])
    assert record["metadata"] == {"source": "cli"}


def test_malformed_json_payload_writes_nothing(store):
    with pytest.raises(ValidationError) as exc_info:
        memory_service.memory_store(store, "myagent", "event", "{not json")
    assert exc_info.value.error_type == "malformed_json"
    assert memory_service.recall(store, "myagent", "events") == []


def test_missing_required_field(store):
    with pytest.raises(ValidationError) as exc_info:
        memory_service.store_event(store, "myagent", {"title": "No type", "content": "x"})
    assert exc_info.value.field == "type"


def test_missing_store_type(store):
    with pytest.raises(ValidationError) as exc_info:
        memory_service.memory_store(store, "myagent", "", _event())
    assert exc_info.value.error_type == "required"


def test_unknown_store_type(store):
    with pytest.raises(UnknownKindError, match="Unknown store type: bogus"):
        memory_service.memory_store(store, "myagent", "bogus", _event())


def test_metadata_must_be_an_object(store):
    with pytest.raises(ValidationError) as exc_info:
        memory_service.store_event(store, "myagent", _event(metadata=["not", "a", "dict"]))
    assert exc_info.value.field == "metadata"


def test_blank_agent_rejected(store):
    with pytest.raises(ValidationError) as exc_info:
        memory_service.store_event(store, "  ", _event())
    assert exc_info.value.field == "agent_id"


def test_id_owned_by_other_agent_is_rejected(store):
    memory_service.store_event(store, "agent-a", _event(id="shared-id"))
    with pytest.raises(ValidationError) as exc_info:
        memory_service.store_event(store, "agent-b", _event("Hijack", "other agent", id="shared-id"))
    assert exc_info.value.error_type == "conflict"
    assert memory_service.get_record(store, "event", "shared-id")["title"] == "Event"


def test_entity_default_id_and_update(store, clock):
    created = memory_service.store_entity(
        store,
        "myagent",
        {"type": "project", "name": "memory-cli", "content": "CLI tool", "metadata": {"lang": "py"}},
    )
    assert created == {"id": "myagent/projects/memory-cli", "updated_at": "2026-01-29T12:00:00.000000Z"}

    clock.advance(hours=1)
    updated = memory_service.store_entity(
        store,
        "myagent",
        {"type": "project", "name": "memory-cli", "content": "CLI tool, now with search"},
    )
    assert updated["updated_at"] == "2026-01-29T13:00:00.000000Z"

    entities = memory_service.recall(store, "myagent", "entities")
    assert len(entities) == 1
    assert entities[0]["content"] == "CLI tool, now with search"
    assert entities[0]["metadata"] == {}


def test_entity_update_keeps_name_and_type(store):
    memory_service.store_entity(
        store, "myagent", {"id": "ent-1", "type": "tool", "name": "cursor", "content": "IDE"}
    )
    memory_service.store_entity(
        store, "myagent", {"id": "ent-1", "type": "person", "name": "renamed", "content": "AI IDE"}
    )

    record = memory_service.get_record(store, "entity", "ent-1")
    assert (record["type"], record["name"], record["content"]) == ("tool", "cursor", "AI IDE")
    hits = memory_service.search(store, "myagent", "cursor", kinds=["entity"])
    assert [hit["id"] for hit in hits] == ["ent-1"]
    assert memory_service.search(store, "myagent", "renamed", kinds=["entity"]) == []


def test_same_entity_name_under_different_agents(store):
    memory_service.store_entity(store, "agent1", {"type": "project", "name": "shared", "content": "Agent1 version"})
    memory_service.store_entity(store, "agent2", {"type": "project", "name": "shared", "content": "Agent2 version"})

    assert memory_service.recall(store, "agent1", "entities")[0]["content"] == "Agent1 version"
    assert memory_service.recall(store, "agent2", "entities")[0]["content"] == "Agent2 version"


def test_lesson_fields(store):
    result = memory_service.store_lesson(
        store,
        "myagent",
        {
            "type": "failure",
            "title": "Benchmark first",
            "content": "Capture a baseline",
            "source_event_id": "evt-missing",
            "timestamp": "2026-01-28T10:00:00Z",
        },
    )
    assert result["timestamp"] == "2026-01-28T10:00:00.000000Z"

    record = memory_service.get_record(store, "lesson", result["id"])
    assert record["source_event_id"] == "evt-missing"
    assert record["consolidated_to"] is None


def test_principle_default_id_and_update(store, clock):
    created = memory_service.store_principle(
        store,
        "myagent",
        {"name": "Infrastructure", "content": "Automate it", "source_lessons": ["l1"]},
    )
    assert created["id"] == "myagent/Infrastructure"

    clock.advance(hours=2)
    memory_service.store_principle(
        store,
        "myagent",
        {"name": "Infrastructure", "content": "Automate everything", "source_lessons": ["l1", "l2"]},
    )

    record = memory_service.get_record(store, "principle", created["id"])
    assert record["content"] == "Automate everything"
    assert record["source_lessons"] == ["l1", "l2"]
    assert record["created_at"] == "2026-01-29T12:00:00.000000Z"
    assert record["updated_at"] == "2026-01-29T14:00:00.000000Z"


def test_summary_keeps_first_created_at(store, clock):
    first = memory_service.store_summary(
        store,
        "myagent",
        {"type": "daily", "period": "2026-01-28", "content": "First draft", "event_count": 3},
    )
    assert first == {"id": "myagent/dailys/2026-01-28", "created_at": "2026-01-29T12:00:00.000000Z"}

    clock.advance(hours=6)
    second = memory_service.store_summary(
        store,
        "myagent",
        {"type": "daily", "period": "2026-01-28", "content": "Final", "event_count": 5},
    )
    assert second["created_at"] == first["created_at"]

    record = memory_service.get_record(store, "summary", first["id"])
    assert (record["content"], record["event_count"]) == ("Final", 5)


def test_index_failure_rolls_back_primary_write(store):
    with store.engine.begin() as conn:
        conn.execute(text("DROP TABLE events_fts"))

    with pytest.raises(ConsistencyFailure):
        memory_service.store_event(store, "myagent", _event(id="evt-lost"))

    assert memory_service.get_record(store, "event", "evt-lost") is None


def test_failed_update_keeps_old_row_and_document(store, monkeypatch):
    memory_service.store_event(store, "myagent", _event("Notes", "original zebra content", id="evt-1"))

    def _retract_then_fail(db, kind, pk, new_fields, old_fields=None):
        index_document(db, kind, pk, new_fields, old_fields)
        raise ConsistencyFailure(f"Search index update failed for {kind} {pk}")

    monkeypatch.setattr(memory_storage, "index_document", _retract_then_fail)
    with pytest.raises(ConsistencyFailure):
        memory_service.store_event(store, "myagent", _event("Notes", "replacement giraffe content", id="evt-1"))
    monkeypatch.undo()

    assert memory_service.get_record(store, "event", "evt-1")["content"] == "original zebra content"
    assert [hit["id"] for hit in memory_service.search(store, "myagent", "zebra")] == ["evt-1"]
    assert memory_service.search(store, "myagent", "giraffe") == []
    assert set(memory_service.check_index_integrity(store).values()) == {"ok"}


@pytest.mark.parametrize("store_fixture", ["store", "file_store"])
def test_concurrent_read_does_not_commit_failed_write(request, monkeypatch, store_fixture):
    target = request.getfixturevalue(store_fixture)
    memory_service.store_event(target, "a", _event("Seed", "seed"))
    entered = threading.Event()

    def _slow_failure(db, kind, pk, new_fields, old_fields=None):
        entered.set()
        time.sleep(0.2)
        raise ConsistencyFailure(f"Search index update failed for {kind} {pk}")

    monkeypatch.setattr(memory_storage, "index_document", _slow_failure)
    errors = []

    def _write():
        try:
            memory_service.store_event(target, "a", _event("T", "zebra", id="evt-x"))
        except ConsistencyFailure as exc:
            errors.append(exc)

    writer = threading.Thread(target=_write)
    writer.start()
    assert entered.wait(timeout=5)
    memory_service.recall(target, "a", "events")
    writer.join(timeout=5)

    assert len(errors) == 1
    assert memory_service.get_record(target, "event", "evt-x") is None
