"""
Health endpoint: database reachability, schema revision and index integrity.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

import agentmem.config as config
from agentmem.db import MemoryDB
from agentmem.services.memory_index import check_index_integrity
from app.deps import get_store


router = APIRouter()


def _check_db_health(store: MemoryDB) -> dict:
    try:
        store.ping()
    except SQLAlchemyError as exc:
        return {"ok": False, "error": str(exc)}

    current_rev, head_rev = store.schema_revisions()
    schema_ok = head_rev is None or current_rev == head_rev
    return {
        "ok": schema_ok,
        "path": store.path,
        "schema_revision": current_rev,
        "schema_expected": head_rev,
        "schema_up_to_date": schema_ok,
    }


@router.get("/health")
def health(store: MemoryDB = Depends(get_store)):
    """Health check endpoint."""
    db_health = _check_db_health(store)
    search_index = check_index_integrity(store) if db_health.get("ok") else {}
    index_ok = bool(search_index) and all(status == "ok" for status in search_index.values())
    if not db_health.get("ok") or not index_ok:
        raise HTTPException(
            status_code=503,
            detail={"database": db_health, "search_index": search_index},
        )

    return {
        "status": "healthy",
        "service": "agentmem",
        "version": config.VERSION,
        "database": db_health,
        "search_index": search_index,
    }
