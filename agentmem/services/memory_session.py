"""
Session bundle: everything an agent needs to start working, in one read.
"""

from __future__ import annotations

from agentmem.config import SESSION_HOT_EVENTS_LIMIT, SESSION_LESSONS_LIMIT
from agentmem.services.memory_recall import latest_summary, recall_records, unconsolidated_lessons
from agentmem.services.memory_shared import _validate_agent_id, ensure_agent, logger
from agentmem.services.memory_state import read_state


def get_session(store, agent_id: str) -> dict:
    """
    State, hot events, all principles, latest summary and unconsolidated
    lessons for one agent. The agent is created if unknown.

    Counts are the lengths of the returned (capped) lists.
    """
    _validate_agent_id(agent_id)

    with store.write_lock, store.session_scope() as db:
        ensure_agent(db, agent_id, store.now())
        state = read_state(db, agent_id)
        hot_events = recall_records(db, agent_id, "events", {"tier": "hot"}, SESSION_HOT_EVENTS_LIMIT)
        principles = recall_records(db, agent_id, "principles", {}, None)
        recent_summary = latest_summary(db, agent_id)
        recent_lessons = unconsolidated_lessons(db, agent_id, SESSION_LESSONS_LIMIT)

    logger.debug("session_loaded", extra={"agent_id": agent_id})
    return {
        "state": state,
        "hot_events": hot_events,
        "principles": principles,
        "recent_summary": recent_summary,
        "recent_lessons": recent_lessons,
        "counts": {
            "hot_events": len(hot_events),
            "principles": len(principles),
            "recent_lessons": len(recent_lessons),
        },
    }
