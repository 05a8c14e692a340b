"""
agentmem Database Models
SQLite + FTS5 schema
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Index, Enum, JSON, DDL, event
)
from sqlalchemy.orm import declarative_base

from agentmem.errors import ValidationError

Base = declarative_base()

# =============================================================================
# Enums
# =============================================================================

class EventTier(str, PyEnum):
    hot = "hot"
    warm = "warm"
    cold = "cold"


# =============================================================================
# Agents (tenants)
# =============================================================================

class Agent(Base):
    __tablename__ = "agents"

    id = Column(String(255), primary_key=True)
    created_at = Column(DateTime, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)


# =============================================================================
# Events
# =============================================================================

class Event(Base):
    __tablename__ = "events"

    pk = Column(Integer, primary_key=True)  # rowid alias, bound to events_fts
    id = Column(String(255), nullable=False, unique=True)
    agent_id = Column(String(255), ForeignKey("agents.id"), nullable=False)
    type = Column(String(255), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)
    tier = Column(Enum(EventTier, name="event_tier"), default=EventTier.hot, nullable=False)

    __table_args__ = (
        Index("ix_events_agent_timestamp", "agent_id", "timestamp"),
        Index("ix_events_tier", "tier"),
    )


# =============================================================================
# Entities
# =============================================================================

class Entity(Base):
    __tablename__ = "entities"

    pk = Column(Integer, primary_key=True)
    id = Column(String(1000), nullable=False, unique=True)
    agent_id = Column(String(255), ForeignKey("agents.id"), nullable=False)
    type = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)

    __table_args__ = (
        Index("ix_entities_agent_type", "agent_id", "type"),
        Index("ix_entities_agent_updated", "agent_id", "updated_at"),
    )


# =============================================================================
# Lessons
# =============================================================================

class Lesson(Base):
    __tablename__ = "lessons"

    pk = Column(Integer, primary_key=True)
    id = Column(String(255), nullable=False, unique=True)
    agent_id = Column(String(255), ForeignKey("agents.id"), nullable=False)
    type = Column(String(255), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    # Soft references: never enforced
    source_event_id = Column(String(255))
    consolidated_to = Column(String(1000))
    metadata_ = Column("metadata", JSON, default=dict)

    __table_args__ = (
        Index("ix_lessons_agent_timestamp", "agent_id", "timestamp"),
    )


# =============================================================================
# Principles
# =============================================================================

class Principle(Base):
    __tablename__ = "principles"

    id = Column(String(1000), primary_key=True)
    agent_id = Column(String(255), ForeignKey("agents.id"), nullable=False)
    name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    source_lessons = Column(JSON, default=list)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    metadata_ = Column("metadata", JSON, default=dict)

    __table_args__ = (
        Index("ix_principles_agent_updated", "agent_id", "updated_at"),
    )


# =============================================================================
# Summaries
# =============================================================================

class Summary(Base):
    __tablename__ = "summaries"

    id = Column(String(1000), primary_key=True)
    agent_id = Column(String(255), ForeignKey("agents.id"), nullable=False)
    type = Column(String(255), nullable=False)
    period = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    event_count = Column(Integer, default=0)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_summaries_agent_created", "agent_id", "created_at"),
    )


# =============================================================================
# Agent state (singleton per agent)
# =============================================================================

class AgentState(Base):
    __tablename__ = "state"

    agent_id = Column(String(255), ForeignKey("agents.id"), primary_key=True)
    content = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)


# =============================================================================
# Full-text indexes (external content FTS5 tables)
# =============================================================================

SEARCH_INDEXES = {
    "event": {"model": Event, "fts_table": "events_fts", "columns": ("title", "content")},
    "entity": {"model": Entity, "fts_table": "entities_fts", "columns": ("name", "content")},
    "lesson": {"model": Lesson, "fts_table": "lessons_fts", "columns": ("title", "content")},
}


def fts_create_statement(kind: str) -> str:
    spec = SEARCH_INDEXES[kind]
    columns = ", ".join(spec["columns"])
    return (
        f"CREATE VIRTUAL TABLE IF NOT EXISTS {spec['fts_table']} USING fts5("
        f"{columns}, content='{spec['model'].__tablename__}', content_rowid='pk')"
    )


for _kind in SEARCH_INDEXES:
    event.listen(
        Base.metadata,
        "after_create",
        DDL(fts_create_statement(_kind)).execute_if(dialect="sqlite"),
    )


MEMORY_MODELS = {
    "event": Event,
    "entity": Entity,
    "lesson": Lesson,
    "principle": Principle,
    "summary": Summary,
}

@event.listens_for(Base, "before_insert", propagate=True)
def _validate_agent_id_before_insert(mapper, connection, target) -> None:
    if not hasattr(target, "agent_id"):
        return
    agent_id = getattr(target, "agent_id", None)
    if not isinstance(agent_id, str) or not agent_id.strip():
        raise ValidationError(
            "agent_id is required for this operation",
            field="agent_id",
            error_type="required",
        )

__all__ = [
    "Base",
    "EventTier",
    "Agent",
    "Event",
    "Entity",
    "Lesson",
    "Principle",
    "Summary",
    "AgentState",
    "SEARCH_INDEXES",
    "MEMORY_MODELS",
    "fts_create_statement",
]
