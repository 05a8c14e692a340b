"""
Per-agent working state: one free-text document, overwritten wholesale.
"""

from __future__ import annotations

from agentmem.models import AgentState
from agentmem.services.memory_shared import (
    _validate_agent_id,
    _validate_content,
    MAX_TEXT_LENGTH,
    ensure_agent,
    format_timestamp,
    logger,
    serialize_state,
)


def read_state(db, agent_id: str) -> dict:
    return serialize_state(db.get(AgentState, agent_id))


def get_state(store, agent_id: str) -> dict:
    """Current state, or empty content with a null updated_at."""
    _validate_agent_id(agent_id)
    with store.write_lock, store.session_scope() as db:
        ensure_agent(db, agent_id, store.now())
        return read_state(db, agent_id)


def set_state(store, agent_id: str, content: str) -> dict:
    _validate_agent_id(agent_id)
    _validate_content(content, "content", MAX_TEXT_LENGTH)

    with store.write_lock, store.session_scope() as db:
        now = store.now()
        ensure_agent(db, agent_id, now)
        row = db.get(AgentState, agent_id)
        if row is None:
            db.add(AgentState(agent_id=agent_id, content=content, updated_at=now))
        else:
            row.content = content
            row.updated_at = now

    logger.info("state_updated", extra={"agent_id": agent_id})
    return {"updated_at": format_timestamp(now)}
