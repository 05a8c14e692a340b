"""
Dependency helpers for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Request

from agentmem.db import MemoryDB


def get_store(request: Request) -> MemoryDB:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise RuntimeError("Store not initialized - app.state.store is None")
    return store
