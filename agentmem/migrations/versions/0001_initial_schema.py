"""Initial agentmem schema with FTS5 indexes.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


FTS_TABLES = (
    ("events_fts", "title, content", "events"),
    ("entities_fts", "name, content", "entities"),
    ("lessons_fts", "title, content", "lessons"),
)


def upgrade() -> None:
    op.create_table(
        "agents",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("metadata", sa.JSON()),
    )

    op.create_table(
        "events",
        sa.Column("pk", sa.Integer(), primary_key=True),
        sa.Column("id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("agent_id", sa.String(length=255), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("type", sa.String(length=255), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON()),
        sa.Column(
            "tier",
            sa.Enum("hot", "warm", "cold", name="event_tier"),
            nullable=False,
            server_default="hot",
        ),
    )
    op.create_index("ix_events_agent_timestamp", "events", ["agent_id", "timestamp"])
    op.create_index("ix_events_tier", "events", ["tier"])

    op.create_table(
        "entities",
        sa.Column("pk", sa.Integer(), primary_key=True),
        sa.Column("id", sa.String(length=1000), nullable=False, unique=True),
        sa.Column("agent_id", sa.String(length=255), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("type", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("metadata", sa.JSON()),
    )
    op.create_index("ix_entities_agent_type", "entities", ["agent_id", "type"])
    op.create_index("ix_entities_agent_updated", "entities", ["agent_id", "updated_at"])

    op.create_table(
        "lessons",
        sa.Column("pk", sa.Integer(), primary_key=True),
        sa.Column("id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("agent_id", sa.String(length=255), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("type", sa.String(length=255), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("source_event_id", sa.String(length=255)),
        sa.Column("consolidated_to", sa.String(length=1000)),
        sa.Column("metadata", sa.JSON()),
    )
    op.create_index("ix_lessons_agent_timestamp", "lessons", ["agent_id", "timestamp"])

    op.create_table(
        "principles",
        sa.Column("id", sa.String(length=1000), primary_key=True),
        sa.Column("agent_id", sa.String(length=255), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("source_lessons", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("metadata", sa.JSON()),
    )
    op.create_index("ix_principles_agent_updated", "principles", ["agent_id", "updated_at"])

    op.create_table(
        "summaries",
        sa.Column("id", sa.String(length=1000), primary_key=True),
        sa.Column("agent_id", sa.String(length=255), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("type", sa.String(length=255), nullable=False),
        sa.Column("period", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("event_count", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_summaries_agent_created", "summaries", ["agent_id", "created_at"])

    op.create_table(
        "state",
        sa.Column("agent_id", sa.String(length=255), sa.ForeignKey("agents.id"), primary_key=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    for fts_table, columns, content_table in FTS_TABLES:
        op.execute(
            f"CREATE VIRTUAL TABLE IF NOT EXISTS {fts_table} USING fts5("
            f"{columns}, content='{content_table}', content_rowid='pk')"
        )


def downgrade() -> None:
    for fts_table, _, _ in FTS_TABLES:
        op.execute(f"DROP TABLE IF EXISTS {fts_table}")
    op.drop_table("state")
    op.drop_index("ix_summaries_agent_created", table_name="summaries")
    op.drop_table("summaries")
    op.drop_index("ix_principles_agent_updated", table_name="principles")
    op.drop_table("principles")
    op.drop_index("ix_lessons_agent_timestamp", table_name="lessons")
    op.drop_table("lessons")
    op.drop_index("ix_entities_agent_updated", table_name="entities")
    op.drop_index("ix_entities_agent_type", table_name="entities")
    op.drop_table("entities")
    op.drop_index("ix_events_tier", table_name="events")
    op.drop_index("ix_events_agent_timestamp", table_name="events")
    op.drop_table("events")
    op.drop_table("agents")
