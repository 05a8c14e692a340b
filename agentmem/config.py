"""
Shared configuration for the agentmem store.
"""

from __future__ import annotations

import logging
import os

LOG_LEVEL = os.environ.get("AGENTMEM_LOG_LEVEL", "INFO").strip().upper()

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("agentmem")

VERSION = "0.1.0"


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Database settings
DB_PATH_ENV = "AGENTMEM_DB_PATH"
DEFAULT_DB_DIR = os.path.join(os.path.expanduser("~"), ".agentmem")
DEFAULT_DB_PATH = os.path.join(DEFAULT_DB_DIR, "memory.db")
MEMORY_DB_PATH = ":memory:"

AUTO_MIGRATE_ON_STARTUP = _get_bool("AGENTMEM_AUTO_MIGRATE_ON_STARTUP", True)

# Tiering thresholds
HOT_TIER_HOURS = 72
WARM_TIER_DAYS = 30

# Query defaults
RECALL_DEFAULT_LIMIT = 20
SEARCH_DEFAULT_LIMIT = 10
SNIPPET_LENGTH = 150
SESSION_HOT_EVENTS_LIMIT = 20
SESSION_LESSONS_LIMIT = 10

# Request/input limits
MAX_RESULT_LIMIT = _get_int("AGENTMEM_MAX_RESULT_LIMIT", 1000)
MAX_QUERY_LENGTH = _get_int("AGENTMEM_MAX_QUERY_LENGTH", 4000)
MAX_TEXT_LENGTH = _get_int("AGENTMEM_MAX_TEXT_LENGTH", 100000)
MAX_SHORT_TEXT_LENGTH = _get_int("AGENTMEM_MAX_SHORT_TEXT_LENGTH", 255)
MAX_TITLE_LENGTH = _get_int("AGENTMEM_MAX_TITLE_LENGTH", 500)
MAX_METADATA_BYTES = _get_int("AGENTMEM_MAX_METADATA_BYTES", 20000)
MAX_LIST_ITEMS = _get_int("AGENTMEM_MAX_LIST_ITEMS", 200)

# HTTP server
HOST = os.environ.get("AGENTMEM_HOST", "127.0.0.1")
PORT = _get_int("AGENTMEM_PORT", 8080)


def get_db_path() -> str:
    """Resolve the store location, honouring AGENTMEM_DB_PATH at call time."""
    return os.environ.get(DB_PATH_ENV) or DEFAULT_DB_PATH


def validate_and_prepare_config() -> None:
    """Validate configuration at startup."""
    errors = []
    limits = {
        "AGENTMEM_MAX_RESULT_LIMIT": MAX_RESULT_LIMIT,
        "AGENTMEM_MAX_QUERY_LENGTH": MAX_QUERY_LENGTH,
        "AGENTMEM_MAX_TEXT_LENGTH": MAX_TEXT_LENGTH,
        "AGENTMEM_MAX_SHORT_TEXT_LENGTH": MAX_SHORT_TEXT_LENGTH,
        "AGENTMEM_MAX_TITLE_LENGTH": MAX_TITLE_LENGTH,
        "AGENTMEM_MAX_METADATA_BYTES": MAX_METADATA_BYTES,
        "AGENTMEM_MAX_LIST_ITEMS": MAX_LIST_ITEMS,
    }
    for name, value in limits.items():
        if value <= 0:
            errors.append(f"{name} must be a positive integer")

    if not 0 < PORT < 65536:
        errors.append("AGENTMEM_PORT must be between 1 and 65535")

    if not get_db_path().strip():
        errors.append(f"{DB_PATH_ENV} must not be blank")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
