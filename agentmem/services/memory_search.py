"""
Full-text search across events, entities and lessons.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from agentmem.config import SEARCH_DEFAULT_LIMIT, SNIPPET_LENGTH
from agentmem.services.memory_index import query_index
from agentmem.services.memory_shared import (
    _validate_agent_id,
    _validate_limit,
    _validate_required_text,
    MAX_QUERY_LENGTH,
    MAX_RESULT_LIMIT,
    SEARCH_KINDS,
    format_timestamp,
    logger,
    normalize_search_kind,
)

ELLIPSIS = "…"

# kind -> (title attribute, time attribute, time key in the envelope)
_ENVELOPE_FIELDS = {
    "event": ("title", "timestamp", "timestamp"),
    "entity": ("name", "updated_at", "updated_at"),
    "lesson": ("title", "timestamp", "timestamp"),
}


def extract_snippet(text: str, query_text: str, length: int = SNIPPET_LENGTH) -> str:
    """
    Window of ``length`` characters centred on the earliest query term.

    Terms are the whitespace-split query, matched case-insensitively. When no
    term occurs the head of the text is returned with a trailing ellipsis.
    """
    lower_text = text.lower()
    position = -1
    for term in query_text.lower().split():
        term = term.strip('"')
        if not term:
            continue
        index = lower_text.find(term)
        if index != -1 and (position == -1 or index < position):
            position = index

    if position == -1:
        return text[:length] + ELLIPSIS

    half = length // 2
    start = max(0, position - half)
    end = min(len(text), position + half)
    snippet = text[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(text):
        snippet = snippet + ELLIPSIS
    return snippet


def _resolve_kinds(kinds: Any) -> list[str]:
    if kinds is None or kinds == "" or kinds == []:
        return list(SEARCH_KINDS)
    if isinstance(kinds, str):
        kinds = [part for part in kinds.split(",") if part.strip()]
    resolved = []
    for kind in kinds:
        normalized = normalize_search_kind(kind)
        if normalized not in resolved:
            resolved.append(normalized)
    return resolved


def _envelope(kind: str, row, score: float, query_text: str) -> dict:
    title_attr, time_attr, time_key = _ENVELOPE_FIELDS[kind]
    return {
        "type": kind,
        "id": row.id,
        "title": getattr(row, title_attr),
        "snippet": extract_snippet(row.content, query_text),
        "score": score,
        time_key: format_timestamp(getattr(row, time_attr)),
    }


def search(
    store,
    agent_id: str,
    query_text: str,
    kinds: Optional[Iterable[str]] = None,
    limit: int = SEARCH_DEFAULT_LIMIT,
) -> list[dict]:
    """
    Ranked search for one agent.

    Each kind is queried with ``limit``; the merged hits are sorted by
    ascending score (most relevant first) and cut to ``limit`` overall.
    """
    _validate_agent_id(agent_id)
    _validate_required_text(query_text, "query", MAX_QUERY_LENGTH)
    _validate_limit(limit, "limit", MAX_RESULT_LIMIT)
    resolved = _resolve_kinds(kinds)

    results = []
    with store.session_scope() as db:
        for kind_order, kind in enumerate(resolved):
            for row, score in query_index(db, kind, agent_id, query_text, limit):
                results.append((score, kind_order, row.id, _envelope(kind, row, score, query_text)))

    results.sort(key=lambda item: item[:3])
    envelopes = [item[3] for item in results[:limit]]
    logger.debug(
        "memory_searched",
        extra={"agent_id": agent_id, "kinds": resolved, "count": len(envelopes)},
    )
    return envelopes
