import pytest

from agentmem.errors import ValidationError
from agentmem.models import Agent
from agentmem.services import memory_service


def _agent_exists(store, agent_id: str) -> bool:
    with store.session_scope() as db:
        return db.get(Agent, agent_id) is not None


def test_state_absent_returns_empty_default(store):
    assert memory_service.get_state(store, "myagent") == {"content": "", "updated_at": None}
    assert _agent_exists(store, "myagent")


def test_set_state_overwrites(store, clock):
    first = memory_service.set_state(store, "myagent", "Working on auth")
    assert first == {"updated_at": "2026-01-29T12:00:00.000000Z"}

    clock.advance(minutes=30)
    memory_service.set_state(store, "myagent", "Switched to search")

    assert memory_service.get_state(store, "myagent") == {
        "content": "Switched to search",
        "updated_at": "2026-01-29T12:30:00.000000Z",
    }


def test_set_state_allows_empty_content(store):
    memory_service.set_state(store, "myagent", "something")
    memory_service.set_state(store, "myagent", "")
    assert memory_service.get_state(store, "myagent")["content"] == ""


def test_set_state_requires_string(store):
    with pytest.raises(ValidationError) as exc_info:
        memory_service.set_state(store, "myagent", None)
    assert exc_info.value.field == "content"


def test_state_is_per_agent(store):
    memory_service.set_state(store, "agent-a", "A state")
    assert memory_service.get_state(store, "agent-b")["content"] == ""


def test_session_for_new_agent(store):
    assert not _agent_exists(store, "fresh")

    session = memory_service.get_session(store, "fresh")

    assert session == {
        "state": {"content": "", "updated_at": None},
        "hot_events": [],
        "principles": [],
        "recent_summary": None,
        "recent_lessons": [],
        "counts": {"hot_events": 0, "principles": 0, "recent_lessons": 0},
    }
    assert _agent_exists(store, "fresh")


def test_session_bundle(store, clock):
    memory_service.set_state(store, "myagent", "Current focus")
    memory_service.store_event(store, "myagent", {
        "id": "old", "type": "t", "title": "Old", "content": "c", "timestamp": "2026-01-01T00:00:00Z",
    })
    for n in range(3):
        memory_service.store_event(store, "myagent", {"id": f"hot-{n}", "type": "t", "title": f"Hot {n}", "content": "c"})
        clock.advance(minutes=1)
    memory_service.store_summary(store, "myagent", {"type": "daily", "period": "d1", "content": "first"})
    clock.advance(minutes=1)
    memory_service.store_summary(store, "myagent", {"type": "daily", "period": "d2", "content": "second"})
    memory_service.store_lesson(store, "myagent", {"id": "l1", "type": "feedback", "title": "L1", "content": "c"})
    memory_service.store_lesson(store, "myagent", {
        "id": "l2", "type": "failure", "title": "L2", "content": "c", "consolidated_to": "myagent/P",
    })

    session = memory_service.get_session(store, "myagent")

    assert session["state"]["content"] == "Current focus"
    assert [e["id"] for e in session["hot_events"]] == ["hot-2", "hot-1", "hot-0"]
    assert session["recent_summary"]["period"] == "d2"
    assert [lesson["id"] for lesson in session["recent_lessons"]] == ["l1"]
    assert session["counts"] == {"hot_events": 3, "principles": 0, "recent_lessons": 1}

    all_lessons = memory_service.recall(store, "myagent", "lessons", {})
    assert {lesson["id"] for lesson in all_lessons} == {"l1", "l2"}


def test_session_principles_are_uncapped_and_lists_capped(store, clock):
    for n in range(25):
        memory_service.store_principle(store, "myagent", {"name": f"p{n}", "content": "c"})
        memory_service.store_event(store, "myagent", {"type": "t", "title": f"e{n}", "content": "c"})
        memory_service.store_lesson(store, "myagent", {"type": "t", "title": f"l{n}", "content": "c"})
        clock.advance(seconds=1)

    session = memory_service.get_session(store, "myagent")

    assert session["counts"] == {"hot_events": 20, "principles": 25, "recent_lessons": 10}
    assert session["hot_events"][0]["title"] == "e24"
    assert session["recent_lessons"][0]["title"] == "l24"


def test_session_excludes_other_agents(store):
    memory_service.store_event(store, "myagent", {"id": "my-evt", "type": "t", "title": "Mine", "content": "c"})
    memory_service.store_event(store, "otheragent", {"id": "other-evt", "type": "t", "title": "Theirs", "content": "c"})

    session = memory_service.get_session(store, "myagent")
    assert [e["id"] for e in session["hot_events"]] == ["my-evt"]
