"""
Full-text search index services (SQLite FTS5, external content tables).

Each indexed row is bound to its FTS document through the table's integer
``pk``. External content tables cannot be updated in place, so an update is
always a 'delete' command carrying the old column values followed by an insert
of the new ones, inside the caller's transaction.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from agentmem.errors import ConsistencyFailure, ValidationError
from agentmem.models import SEARCH_INDEXES
from agentmem.services.memory_shared import logger

_TERM_PATTERN = re.compile(r'"([^"]*)"|(\S+)')
_WORD_PATTERN = re.compile(r"\w", re.UNICODE)


def _index_spec(kind: str) -> dict:
    try:
        return SEARCH_INDEXES[kind]
    except KeyError:
        raise ValidationError(f"{kind} records are not indexed", field="kind", error_type="invalid_value") from None


def index_fields(kind: str, row) -> dict:
    """Current indexed column values of a model row."""
    return {column: getattr(row, column) for column in _index_spec(kind)["columns"]}


def index_document(
    db,
    kind: str,
    pk: int,
    new_fields: Mapping[str, str],
    old_fields: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Bring the FTS document for ``pk`` in line with ``new_fields``.

    When ``old_fields`` is given the old document is retracted first. Any
    failure is raised as ConsistencyFailure; the caller's transaction must be
    rolled back so the primary write is discarded with it.
    """
    spec = _index_spec(kind)
    fts_table = spec["fts_table"]
    columns = spec["columns"]
    column_list = ", ".join(columns)
    placeholders = ", ".join(f":{column}" for column in columns)

    try:
        if old_fields is not None:
            db.execute(
                text(
                    f"INSERT INTO {fts_table}({fts_table}, rowid, {column_list}) "
                    f"VALUES('delete', :pk, {placeholders})"
                ),
                {"pk": pk, **{column: old_fields[column] for column in columns}},
            )
        db.execute(
            text(f"INSERT INTO {fts_table}(rowid, {column_list}) VALUES(:pk, {placeholders})"),
            {"pk": pk, **{column: new_fields[column] for column in columns}},
        )
    except DBAPIError as exc:
        logger.error("search_index_write_failed", extra={"kind": kind, "pk": pk})
        raise ConsistencyFailure(f"Search index update failed for {kind} {pk}: {exc}") from exc


def build_match_query(query_text: str) -> str:
    """
    Turn free text into an FTS5 expression.

    Every whitespace-separated term is quoted so punctuation is never parsed
    as FTS5 syntax; double-quoted phrases stay phrases. Terms are AND-ed.
    """
    parts = []
    for phrase, word in _TERM_PATTERN.findall(query_text):
        term = (phrase if phrase else word.replace('"', "")).strip()
        if term and _WORD_PATTERN.search(term):
            parts.append('"' + term.replace('"', '""') + '"')
    if not parts:
        raise ValidationError("query has no searchable terms", field="query", error_type="invalid_value")
    return " ".join(parts)


def query_index(db, kind: str, agent_id: str, query_text: str, limit: int) -> list[tuple[object, float]]:
    """
    Ranked (row, score) pairs for one agent; lower score is more relevant.

    Agent scoping comes from the join onto the content table.
    """
    spec = _index_spec(kind)
    model = spec["model"]
    fts_table = spec["fts_table"]
    table = model.__tablename__
    match_query = build_match_query(query_text)

    hits = db.execute(
        text(
            f"SELECT t.pk AS pk, bm25({fts_table}) AS score "
            f"FROM {fts_table} "
            f"JOIN {table} t ON t.pk = {fts_table}.rowid "
            f"WHERE t.agent_id = :agent_id AND {fts_table} MATCH :query "
            f"ORDER BY score, t.pk "
            f"LIMIT :limit"
        ),
        {"agent_id": agent_id, "query": match_query, "limit": limit},
    ).fetchall()
    if not hits:
        return []

    rows = db.query(model).filter(model.pk.in_([hit.pk for hit in hits])).all()
    rows_by_pk = {row.pk: row for row in rows}
    return [(rows_by_pk[hit.pk], float(hit.score)) for hit in hits if hit.pk in rows_by_pk]


def check_index_integrity(store) -> dict:
    """Run the FTS5 integrity-check command on every index."""
    report = {}
    for kind, spec in SEARCH_INDEXES.items():
        fts_table = spec["fts_table"]
        try:
            with store.session_scope() as db:
                db.execute(text(f"INSERT INTO {fts_table}({fts_table}) VALUES('integrity-check')"))
            report[kind] = "ok"
        except DBAPIError as exc:
            logger.warning("search_index_integrity_failed", extra={"kind": kind})
            report[kind] = str(exc.orig) if exc.orig is not None else str(exc)
    return report


def rebuild_index(store) -> dict:
    """Rebuild every FTS5 index from its content table."""
    rebuilt = []
    with store.write_lock, store.session_scope() as db:
        for kind, spec in SEARCH_INDEXES.items():
            fts_table = spec["fts_table"]
            db.execute(text(f"INSERT INTO {fts_table}({fts_table}) VALUES('rebuild')"))
            rebuilt.append(kind)
    logger.info("search_index_rebuilt", extra={"kinds": rebuilt})
    return {"status": "rebuilt", "kinds": rebuilt}
