"""
Memory services facade: the boundary operations callers use.
"""

from agentmem.services.memory_index import check_index_integrity, rebuild_index
from agentmem.services.memory_recall import recall
from agentmem.services.memory_search import extract_snippet, search
from agentmem.services.memory_session import get_session
from agentmem.services.memory_state import get_state, set_state
from agentmem.services.memory_storage import (
    get_record,
    memory_store,
    store_entity,
    store_event,
    store_lesson,
    store_principle,
    store_summary,
)
from agentmem.services.memory_tiering import run_tiering

__all__ = [
    "memory_store",
    "store_event",
    "store_entity",
    "store_lesson",
    "store_principle",
    "store_summary",
    "get_record",
    "recall",
    "search",
    "extract_snippet",
    "get_state",
    "set_state",
    "get_session",
    "run_tiering",
    "check_index_integrity",
    "rebuild_index",
]
