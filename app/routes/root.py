"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import agentmem.config as config
from agentmem.services.memory_shared import RECALL_KINDS, SEARCH_KINDS, STORE_KINDS


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "agentmem",
        "version": config.VERSION,
        "description": "Per-agent memory store with full-text search",
        "store_kinds": list(STORE_KINDS),
        "recall_kinds": list(RECALL_KINDS),
        "search_kinds": list(SEARCH_KINDS),
        "endpoints": {
            "health": "/health",
            "store": "/agents/{agent_id}/memories/{kind}",
            "recall": "/agents/{agent_id}/memories/{kind}",
            "search": "/agents/{agent_id}/search",
            "state": "/agents/{agent_id}/state",
            "session": "/agents/{agent_id}/session",
        },
    }
