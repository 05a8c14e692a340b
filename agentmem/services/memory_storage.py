"""
Memory storage services: upserts for events, entities, lessons, principles
and summaries.

Every store call runs a tiering pass, the primary write and the search index
update in one transaction under the store's writer lock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from agentmem.errors import UnknownKindError, ValidationError
from agentmem.models import MEMORY_MODELS, Entity, Event, EventTier, Lesson, Principle, Summary
from agentmem.services.memory_index import index_document, index_fields
from agentmem.services.memory_shared import (
    _parse_json_object,
    _parse_timestamp,
    _validate_agent_id,
    _validate_content,
    _validate_metadata,
    _validate_non_negative_int,
    _validate_optional_text,
    _validate_required_text,
    _validate_string_list,
    MAX_LIST_ITEMS,
    MAX_SHORT_TEXT_LENGTH,
    MAX_TEXT_LENGTH,
    MAX_TITLE_LENGTH,
    SERIALIZERS,
    ensure_agent,
    format_timestamp,
    logger,
)
from agentmem.services.memory_tiering import update_tiers

MAX_ID_LENGTH = 1000


def generate_id(db, model, now: datetime) -> str:
    """
    Next ``YYYY-MM-DD-NNN`` id for today.

    The sequence is per kind and per day across all agents in the store; it
    continues past 999 with wider numbers.
    """
    date_prefix = now.strftime("%Y-%m-%d")
    max_seq = 0
    for (value,) in db.query(model.id).filter(model.id.like(f"{date_prefix}-%")).all():
        suffix = value[len(date_prefix) + 1:]
        if suffix.isascii() and suffix.isdigit():
            max_seq = max(max_seq, int(suffix))
    return f"{date_prefix}-{max_seq + 1:03d}"


def _optional_id(data: dict) -> Optional[str]:
    record_id = data.get("id") or None
    _validate_optional_text(record_id, "id", MAX_ID_LENGTH)
    return record_id


def _timestamp_or_now(data: dict, now: datetime) -> datetime:
    value = data.get("timestamp")
    if value is None or value == "":
        return now
    return _parse_timestamp(value, "timestamp")


def _guard_owner(row, agent_id: str, kind: str) -> None:
    if row.agent_id != agent_id:
        raise ValidationError(
            f"{kind} id {row.id} belongs to another agent",
            field="id",
            error_type="conflict",
        )


# =============================================================================
# Payload validation (runs before any write)
# =============================================================================

def _clean_event(data: dict) -> dict:
    _validate_required_text(data.get("type"), "type", MAX_SHORT_TEXT_LENGTH)
    _validate_content(data.get("title"), "title", MAX_TITLE_LENGTH)
    _validate_content(data.get("content"), "content", MAX_TEXT_LENGTH)
    _validate_metadata(data.get("metadata"), "metadata")
    return {
        "id": _optional_id(data),
        "type": data["type"],
        "title": data["title"],
        "content": data["content"],
        "metadata": data.get("metadata") or {},
        "timestamp": data.get("timestamp"),
    }


def _clean_entity(data: dict) -> dict:
    _validate_required_text(data.get("type"), "type", MAX_SHORT_TEXT_LENGTH)
    _validate_required_text(data.get("name"), "name", MAX_SHORT_TEXT_LENGTH)
    _validate_content(data.get("content"), "content", MAX_TEXT_LENGTH)
    _validate_metadata(data.get("metadata"), "metadata")
    return {
        "id": _optional_id(data),
        "type": data["type"],
        "name": data["name"],
        "content": data["content"],
        "metadata": data.get("metadata") or {},
    }


def _clean_lesson(data: dict) -> dict:
    cleaned = _clean_event(data)
    source_event_id = data.get("source_event_id") or None
    consolidated_to = data.get("consolidated_to") or None
    _validate_optional_text(source_event_id, "source_event_id", MAX_ID_LENGTH)
    _validate_optional_text(consolidated_to, "consolidated_to", MAX_ID_LENGTH)
    cleaned["source_event_id"] = source_event_id
    cleaned["consolidated_to"] = consolidated_to
    return cleaned


def _clean_principle(data: dict) -> dict:
    _validate_required_text(data.get("name"), "name", MAX_SHORT_TEXT_LENGTH)
    _validate_content(data.get("content"), "content", MAX_TEXT_LENGTH)
    _validate_string_list(data.get("source_lessons"), "source_lessons", MAX_LIST_ITEMS, MAX_ID_LENGTH)
    _validate_metadata(data.get("metadata"), "metadata")
    return {
        "id": _optional_id(data),
        "name": data["name"],
        "content": data["content"],
        "source_lessons": list(data.get("source_lessons") or []),
        "metadata": data.get("metadata") or {},
    }


def _clean_summary(data: dict) -> dict:
    _validate_required_text(data.get("type"), "type", MAX_SHORT_TEXT_LENGTH)
    _validate_required_text(data.get("period"), "period", MAX_SHORT_TEXT_LENGTH)
    _validate_content(data.get("content"), "content", MAX_TEXT_LENGTH)
    event_count = data.get("event_count") or 0
    _validate_non_negative_int(event_count, "event_count")
    return {
        "id": _optional_id(data),
        "type": data["type"],
        "period": data["period"],
        "content": data["content"],
        "event_count": event_count,
    }


# =============================================================================
# Writers (inside an open transaction)
# =============================================================================

def _write_event(db, agent_id: str, data: dict, now: datetime) -> dict:
    record_id = data["id"] or generate_id(db, Event, now)
    timestamp = _timestamp_or_now(data, now)

    existing = db.query(Event).filter(Event.id == record_id).first()
    if existing:
        _guard_owner(existing, agent_id, "event")
        old_fields = index_fields("event", existing)
        existing.type = data["type"]
        existing.timestamp = timestamp
        existing.title = data["title"]
        existing.content = data["content"]
        existing.metadata_ = data["metadata"]
        db.flush()
        index_document(db, "event", existing.pk, index_fields("event", existing), old_fields)
    else:
        row = Event(
            id=record_id,
            agent_id=agent_id,
            type=data["type"],
            timestamp=timestamp,
            title=data["title"],
            content=data["content"],
            metadata_=data["metadata"],
            tier=EventTier.hot,
        )
        db.add(row)
        db.flush()
        index_document(db, "event", row.pk, index_fields("event", row))

    return {"id": record_id, "timestamp": format_timestamp(timestamp)}


def _write_entity(db, agent_id: str, data: dict, now: datetime) -> dict:
    record_id = data["id"] or f"{agent_id}/{data['type']}s/{data['name']}"

    existing = db.query(Entity).filter(Entity.id == record_id).first()
    if existing:
        _guard_owner(existing, agent_id, "entity")
        # type and name are fixed at creation
        old_fields = index_fields("entity", existing)
        existing.content = data["content"]
        existing.updated_at = now
        existing.metadata_ = data["metadata"]
        db.flush()
        index_document(db, "entity", existing.pk, index_fields("entity", existing), old_fields)
    else:
        row = Entity(
            id=record_id,
            agent_id=agent_id,
            type=data["type"],
            name=data["name"],
            content=data["content"],
            updated_at=now,
            metadata_=data["metadata"],
        )
        db.add(row)
        db.flush()
        index_document(db, "entity", row.pk, index_fields("entity", row))

    return {"id": record_id, "updated_at": format_timestamp(now)}


def _write_lesson(db, agent_id: str, data: dict, now: datetime) -> dict:
    record_id = data["id"] or generate_id(db, Lesson, now)
    timestamp = _timestamp_or_now(data, now)

    existing = db.query(Lesson).filter(Lesson.id == record_id).first()
    if existing:
        _guard_owner(existing, agent_id, "lesson")
        old_fields = index_fields("lesson", existing)
        existing.type = data["type"]
        existing.timestamp = timestamp
        existing.title = data["title"]
        existing.content = data["content"]
        existing.source_event_id = data["source_event_id"]
        existing.consolidated_to = data["consolidated_to"]
        existing.metadata_ = data["metadata"]
        db.flush()
        index_document(db, "lesson", existing.pk, index_fields("lesson", existing), old_fields)
    else:
        row = Lesson(
            id=record_id,
            agent_id=agent_id,
            type=data["type"],
            timestamp=timestamp,
            title=data["title"],
            content=data["content"],
            source_event_id=data["source_event_id"],
            consolidated_to=data["consolidated_to"],
            metadata_=data["metadata"],
        )
        db.add(row)
        db.flush()
        index_document(db, "lesson", row.pk, index_fields("lesson", row))

    return {"id": record_id, "timestamp": format_timestamp(timestamp)}


def _write_principle(db, agent_id: str, data: dict, now: datetime) -> dict:
    record_id = data["id"] or f"{agent_id}/{data['name']}"

    existing = db.get(Principle, record_id)
    if existing:
        _guard_owner(existing, agent_id, "principle")
        existing.content = data["content"]
        existing.source_lessons = data["source_lessons"]
        existing.metadata_ = data["metadata"]
        existing.updated_at = now
    else:
        db.add(
            Principle(
                id=record_id,
                agent_id=agent_id,
                name=data["name"],
                content=data["content"],
                source_lessons=data["source_lessons"],
                created_at=now,
                updated_at=now,
                metadata_=data["metadata"],
            )
        )
    db.flush()
    return {"id": record_id, "updated_at": format_timestamp(now)}


def _write_summary(db, agent_id: str, data: dict, now: datetime) -> dict:
    record_id = data["id"] or f"{agent_id}/{data['type']}s/{data['period']}"

    existing = db.get(Summary, record_id)
    if existing:
        _guard_owner(existing, agent_id, "summary")
        existing.content = data["content"]
        existing.event_count = data["event_count"]
        created_at = existing.created_at
    else:
        db.add(
            Summary(
                id=record_id,
                agent_id=agent_id,
                type=data["type"],
                period=data["period"],
                content=data["content"],
                event_count=data["event_count"],
                created_at=now,
            )
        )
        created_at = now
    db.flush()
    return {"id": record_id, "created_at": format_timestamp(created_at)}


_STORE_HANDLERS: dict[str, tuple[Callable[[dict], dict], Callable[..., dict]]] = {
    "event": (_clean_event, _write_event),
    "entity": (_clean_entity, _write_entity),
    "lesson": (_clean_lesson, _write_lesson),
    "principle": (_clean_principle, _write_principle),
    "summary": (_clean_summary, _write_summary),
}


# =============================================================================
# Public API
# =============================================================================

def memory_store(store, agent_id: str, kind: str, payload: Any) -> dict:
    """
    Create or replace one record.

    Args:
        store: Open MemoryDB handle
        agent_id: Owning agent (created on first use)
        kind: One of event, entity, lesson, principle, summary
        payload: Record fields as a dict or a JSON object string

    Returns:
        {id, timestamp} for events and lessons, {id, updated_at} for entities
        and principles, {id, created_at} for summaries
    """
    if not kind:
        raise ValidationError("type is required for store", field="type", error_type="required")
    handlers = _STORE_HANDLERS.get(kind)
    if handlers is None:
        raise UnknownKindError(f"Unknown store type: {kind}", kind=kind)
    clean, write = handlers

    _validate_agent_id(agent_id)
    data = clean(_parse_json_object(payload, "payload"))

    with store.write_lock:
        with store.session_scope() as db:
            now = store.now()
            update_tiers(db, now)
            ensure_agent(db, agent_id, now)
            result = write(db, agent_id, data, now)

    logger.info("memory_stored", extra={"kind": kind, "agent_id": agent_id, "record_id": result["id"]})
    return result


def store_event(store, agent_id: str, data: Any) -> dict:
    return memory_store(store, agent_id, "event", data)


def store_entity(store, agent_id: str, data: Any) -> dict:
    return memory_store(store, agent_id, "entity", data)


def store_lesson(store, agent_id: str, data: Any) -> dict:
    return memory_store(store, agent_id, "lesson", data)


def store_principle(store, agent_id: str, data: Any) -> dict:
    return memory_store(store, agent_id, "principle", data)


def store_summary(store, agent_id: str, data: Any) -> dict:
    return memory_store(store, agent_id, "summary", data)


def get_record(store, kind: str, record_id: str) -> Optional[dict]:
    """Fetch one record by id, or None when absent."""
    model = MEMORY_MODELS.get(kind)
    if model is None:
        raise UnknownKindError(f"Unknown store type: {kind}", kind=kind)
    with store.session_scope() as db:
        row = db.query(model).filter(model.id == record_id).first()
        return SERIALIZERS[kind](row) if row is not None else None
