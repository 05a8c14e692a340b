"""
Filtered recall: exact and range predicates, newest first, scoped to one agent.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import desc

from agentmem.config import RECALL_DEFAULT_LIMIT
from agentmem.errors import UnknownKindError, ValidationError
from agentmem.models import Entity, Event, EventTier, Lesson, Principle, Summary
from agentmem.services.memory_shared import (
    _parse_json_object,
    _parse_timestamp,
    _validate_agent_id,
    _validate_limit,
    MAX_RESULT_LIMIT,
    MAX_SHORT_TEXT_LENGTH,
    logger,
    serialize_entity,
    serialize_event,
    serialize_lesson,
    serialize_principle,
    serialize_summary,
)


def _text_filter(filters: dict, key: str) -> Optional[str]:
    value = filters.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str) or len(value) > MAX_SHORT_TEXT_LENGTH:
        raise ValidationError(f"filter {key} must be a string", field=key, error_type="invalid_type")
    return value


def _time_filter(filters: dict, key: str):
    value = filters.get(key)
    if value is None or value == "":
        return None
    return _parse_timestamp(value, key)


def _tier_filter(filters: dict) -> Optional[EventTier]:
    value = _text_filter(filters, "tier")
    if value is None:
        return None
    try:
        return EventTier(value)
    except ValueError:
        raise ValidationError(
            f"tier must be one of: {', '.join(tier.value for tier in EventTier)}",
            field="tier",
            error_type="invalid_value",
        ) from None


# =============================================================================
# Per-kind queries
# =============================================================================

def _events_query(db, agent_id: str, filters: dict):
    query = db.query(Event).filter(Event.agent_id == agent_id)
    tier = _tier_filter(filters)
    if tier is not None:
        query = query.filter(Event.tier == tier)
    event_type = _text_filter(filters, "event_type")
    if event_type:
        query = query.filter(Event.type == event_type)
    since = _time_filter(filters, "since")
    if since is not None:
        query = query.filter(Event.timestamp >= since)
    until = _time_filter(filters, "until")
    if until is not None:
        query = query.filter(Event.timestamp <= until)
    return query.order_by(desc(Event.timestamp), desc(Event.pk))


def _entities_query(db, agent_id: str, filters: dict):
    query = db.query(Entity).filter(Entity.agent_id == agent_id)
    entity_type = _text_filter(filters, "entity_type")
    if entity_type:
        query = query.filter(Entity.type == entity_type)
    return query.order_by(desc(Entity.updated_at), desc(Entity.pk))


def _lessons_query(db, agent_id: str, filters: dict, unconsolidated_only: bool = False):
    query = db.query(Lesson).filter(Lesson.agent_id == agent_id)
    lesson_type = _text_filter(filters, "lesson_type")
    if lesson_type:
        query = query.filter(Lesson.type == lesson_type)
    since = _time_filter(filters, "since")
    if since is not None:
        query = query.filter(Lesson.timestamp >= since)
    if unconsolidated_only:
        query = query.filter(Lesson.consolidated_to.is_(None))
    return query.order_by(desc(Lesson.timestamp), desc(Lesson.pk))


def _principles_query(db, agent_id: str, filters: dict):
    return (
        db.query(Principle)
        .filter(Principle.agent_id == agent_id)
        .order_by(desc(Principle.updated_at), desc(Principle.id))
    )


def _summaries_query(db, agent_id: str, filters: dict):
    query = db.query(Summary).filter(Summary.agent_id == agent_id)
    summary_type = _text_filter(filters, "summary_type")
    if summary_type:
        query = query.filter(Summary.type == summary_type)
    since = _time_filter(filters, "since")
    if since is not None:
        query = query.filter(Summary.created_at >= since)
    return query.order_by(desc(Summary.created_at), desc(Summary.id))


_RECALL_QUERIES = {
    "events": (_events_query, serialize_event),
    "entities": (_entities_query, serialize_entity),
    "lessons": (_lessons_query, serialize_lesson),
    "principles": (_principles_query, serialize_principle),
    "summaries": (_summaries_query, serialize_summary),
}


def _apply_limit(query, limit: Optional[int]):
    return query.limit(limit) if limit is not None else query


# =============================================================================
# Session-scoped helpers (caller owns the transaction)
# =============================================================================

def recall_records(db, agent_id: str, kind: str, filters: dict, limit: Optional[int]) -> list[dict]:
    build, serialize = _RECALL_QUERIES[kind]
    return [serialize(row) for row in _apply_limit(build(db, agent_id, filters), limit).all()]


def unconsolidated_lessons(db, agent_id: str, limit: Optional[int]) -> list[dict]:
    """Lessons with no consolidated_to, newest first."""
    query = _lessons_query(db, agent_id, {}, unconsolidated_only=True)
    return [serialize_lesson(row) for row in _apply_limit(query, limit).all()]


def latest_summary(db, agent_id: str) -> Optional[dict]:
    row = _summaries_query(db, agent_id, {}).first()
    return serialize_summary(row) if row is not None else None


# =============================================================================
# Public API
# =============================================================================

def recall(
    store,
    agent_id: str,
    kind: str,
    filters: Any = None,
    limit: Optional[int] = RECALL_DEFAULT_LIMIT,
) -> list[dict]:
    """
    Filtered retrieval of one record kind for one agent.

    Args:
        store: Open MemoryDB handle
        agent_id: Agent to read from (not created if unknown)
        kind: events, entities, lessons, principles or summaries
        filters: Dict or JSON object string; unknown keys are ignored
        limit: Max rows (1..MAX_RESULT_LIMIT), None for no cap

    Returns:
        Serialized records, newest first
    """
    if not kind:
        raise ValidationError("type is required for recall", field="type", error_type="required")
    if kind not in _RECALL_QUERIES:
        raise UnknownKindError(f"Unknown recall type: {kind}", kind=kind)
    _validate_agent_id(agent_id)
    if limit is not None:
        _validate_limit(limit, "limit", MAX_RESULT_LIMIT)
    parsed_filters = _parse_json_object(filters, "filters")

    with store.session_scope() as db:
        records = recall_records(db, agent_id, kind, parsed_filters, limit)

    logger.debug("memory_recalled", extra={"kind": kind, "agent_id": agent_id, "count": len(records)})
    return records

