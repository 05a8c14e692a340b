"""
Shared helpers and configuration for memory services.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import agentmem.config as config
from agentmem.errors import UnknownKindError
from agentmem.models import (
    Agent,
    AgentState,
    Entity,
    Event,
    Lesson,
    Principle,
    Summary,
)
from agentmem.validators import (
    validate_required_text as _validate_required_text,
    validate_optional_text as _validate_optional_text,
    validate_content as _validate_content,
    validate_agent_id as _validate_agent_id,
    validate_limit as _validate_limit,
    validate_string_list as _validate_string_list,
    validate_metadata as _validate_metadata,
    validate_non_negative_int as _validate_non_negative_int,
    parse_timestamp as _parse_timestamp,
    parse_json_object as _parse_json_object,
)

# =============================================================================
# Configuration
# =============================================================================

logger = config.logger

MAX_RESULT_LIMIT = config.MAX_RESULT_LIMIT
MAX_QUERY_LENGTH = config.MAX_QUERY_LENGTH
MAX_TEXT_LENGTH = config.MAX_TEXT_LENGTH
MAX_SHORT_TEXT_LENGTH = config.MAX_SHORT_TEXT_LENGTH
MAX_TITLE_LENGTH = config.MAX_TITLE_LENGTH
MAX_LIST_ITEMS = config.MAX_LIST_ITEMS

STORE_KINDS = ("event", "entity", "lesson", "principle", "summary")
RECALL_KINDS = ("events", "entities", "lessons", "principles", "summaries")
SEARCH_KINDS = ("event", "entity", "lesson")

_SEARCH_KIND_ALIASES = {
    "event": "event",
    "events": "event",
    "entity": "entity",
    "entities": "entity",
    "lesson": "lesson",
    "lessons": "lesson",
}


# =============================================================================
# Helper Functions
# =============================================================================

def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat(timespec="microseconds") + "Z"


def normalize_search_kind(kind: str) -> str:
    normalized = _SEARCH_KIND_ALIASES.get(kind.strip().lower()) if isinstance(kind, str) else None
    if normalized is None:
        raise UnknownKindError(f"Unknown search type: {kind}", kind=kind)
    return normalized


def ensure_agent(db, agent_id: str, now: datetime) -> Agent:
    """Get or lazily create the agent row."""
    _validate_agent_id(agent_id)
    agent = db.get(Agent, agent_id)
    if agent is None:
        agent = Agent(id=agent_id, created_at=now, metadata_={})
        db.add(agent)
        db.flush()
        logger.info("agent_created", extra={"agent_id": agent_id})
    return agent


# =============================================================================
# Serializers
# =============================================================================

def serialize_event(row: Event) -> dict:
    return {
        "id": row.id,
        "type": row.type,
        "timestamp": format_timestamp(row.timestamp),
        "title": row.title,
        "content": row.content,
        "metadata": row.metadata_ or {},
        "tier": row.tier.value if row.tier is not None else None,
    }


def serialize_entity(row: Entity) -> dict:
    return {
        "id": row.id,
        "type": row.type,
        "name": row.name,
        "content": row.content,
        "updated_at": format_timestamp(row.updated_at),
        "metadata": row.metadata_ or {},
    }


def serialize_lesson(row: Lesson) -> dict:
    return {
        "id": row.id,
        "type": row.type,
        "timestamp": format_timestamp(row.timestamp),
        "title": row.title,
        "content": row.content,
        "source_event_id": row.source_event_id,
        "consolidated_to": row.consolidated_to,
        "metadata": row.metadata_ or {},
    }


def serialize_principle(row: Principle) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "content": row.content,
        "source_lessons": list(row.source_lessons or []),
        "created_at": format_timestamp(row.created_at),
        "updated_at": format_timestamp(row.updated_at),
        "metadata": row.metadata_ or {},
    }


def serialize_summary(row: Summary) -> dict:
    return {
        "id": row.id,
        "type": row.type,
        "period": row.period,
        "content": row.content,
        "event_count": row.event_count,
        "created_at": format_timestamp(row.created_at),
    }


def serialize_state(row: Optional[AgentState]) -> dict:
    if row is None:
        return {"content": "", "updated_at": None}
    return {"content": row.content, "updated_at": format_timestamp(row.updated_at)}


SERIALIZERS = {
    "event": serialize_event,
    "entity": serialize_entity,
    "lesson": serialize_lesson,
    "principle": serialize_principle,
    "summary": serialize_summary,
}
