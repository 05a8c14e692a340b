"""
Memory endpoints: store, recall, search, state and session per agent.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from agentmem.config import RECALL_DEFAULT_LIMIT, SEARCH_DEFAULT_LIMIT
from agentmem.db import MemoryDB
from agentmem.services import memory_service
from agentmem.validators import parse_json_object
from app.deps import get_store


router = APIRouter(prefix="/agents/{agent_id}")


@router.post("/memories/{kind}")
def store_memory(
    agent_id: str,
    kind: str,
    payload: Any = Body(None),
    store: MemoryDB = Depends(get_store),
):
    """Create or replace one record of the given kind."""
    result = memory_service.memory_store(store, agent_id, kind, payload)
    return {"status": "stored", **result}


@router.get("/memories/{kind}")
def recall_memories(
    agent_id: str,
    kind: str,
    filters: Optional[str] = None,
    limit: int = RECALL_DEFAULT_LIMIT,
    store: MemoryDB = Depends(get_store),
):
    results = memory_service.recall(store, agent_id, kind, filters, limit)
    return {"kind": kind, "count": len(results), "results": results}


@router.get("/search")
def search_memories(
    agent_id: str,
    q: str,
    types: Optional[str] = None,
    limit: int = SEARCH_DEFAULT_LIMIT,
    store: MemoryDB = Depends(get_store),
):
    results = memory_service.search(store, agent_id, q, types, limit)
    return {"query": q, "count": len(results), "results": results}


@router.get("/state")
def read_state(agent_id: str, store: MemoryDB = Depends(get_store)):
    return memory_service.get_state(store, agent_id)


@router.put("/state")
def write_state(
    agent_id: str,
    payload: Any = Body(None),
    store: MemoryDB = Depends(get_store),
):
    """Overwrite the agent's state; body is {"content": "..."}."""
    data = parse_json_object(payload, "payload")
    return memory_service.set_state(store, agent_id, data.get("content"))


@router.get("/session")
def read_session(agent_id: str, store: MemoryDB = Depends(get_store)):
    return memory_service.get_session(store, agent_id)
