"""
FastAPI app wiring for agentmem.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import agentmem.config as config
from agentmem.db import MemoryDB, open_store
from agentmem.errors import ConsistencyFailure, ValidationError
from app.routes.health import router as health_router
from app.routes.memory import router as memory_router
from app.routes.root import router as root_router

logger = config.logger


def _tool_name(request: Request) -> str:
    endpoint = request.scope.get("endpoint")
    return getattr(endpoint, "__name__", "unknown")


def _tool_error_payload(tool_name: str, exc: Exception, error_type: str, field: Optional[str]) -> dict:
    return {
        "status": "error",
        "error_type": error_type,
        "tool": tool_name,
        "field": field,
        "message": str(exc),
    }


def _log_validation_issue(tool_name: str, exc: ValidationError) -> None:
    logger.info(
        "tool_validation_error",
        extra={
            "tool": tool_name,
            "field": exc.field,
            "error_type": exc.error_type,
            "detail": str(exc),
        },
    )


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    tool_name = _tool_name(request)
    _log_validation_issue(tool_name, exc)
    return JSONResponse(
        status_code=400,
        content=_tool_error_payload(tool_name, exc, exc.error_type, exc.field),
    )


async def _consistency_failure_handler(request: Request, exc: ConsistencyFailure) -> JSONResponse:
    tool_name = _tool_name(request)
    logger.error("tool_consistency_failure", extra={"tool": tool_name, "detail": str(exc)})
    return JSONResponse(
        status_code=500,
        content=_tool_error_payload(tool_name, exc, "consistency_failure", None),
    )


def create_app(store: Optional[MemoryDB] = None) -> FastAPI:
    """
    Build the app. With ``store`` given the caller owns its lifecycle;
    otherwise one store is opened at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the store on startup, close it on shutdown."""
        owned = store is None
        app.state.store = open_store() if owned else store
        try:
            yield
        finally:
            if owned:
                app.state.store.close()
            app.state.store = None

    app = FastAPI(title="agentmem", version=config.VERSION, redirect_slashes=False, lifespan=lifespan)
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(ConsistencyFailure, _consistency_failure_handler)

    app.include_router(health_router)
    app.include_router(root_router)
    app.include_router(memory_router)
    return app


app = create_app()
