"""
Store handle, connection setup and migration helpers.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import agentmem.config as config
from agentmem.models import Base

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _get_alembic_config(database_url: str):
    try:
        from alembic.config import Config
    except ImportError as exc:
        raise RuntimeError("Alembic is required for migrations") from exc

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", MIGRATIONS_DIR)
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    return alembic_cfg


def _get_schema_revisions(engine, database_url: str) -> tuple[Optional[str], Optional[str]]:
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    alembic_cfg = _get_alembic_config(database_url)
    script = ScriptDirectory.from_config(alembic_cfg)
    head_revision = script.get_current_head()
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        current_revision = context.get_current_revision()
    return current_revision, head_revision


def _run_alembic(engine, database_url: str, action: str) -> None:
    from alembic import command

    alembic_cfg = _get_alembic_config(database_url)
    with engine.begin() as connection:
        alembic_cfg.attributes["connection"] = connection
        if action == "stamp":
            command.stamp(alembic_cfg, "head")
        else:
            command.upgrade(alembic_cfg, "head")


def _ensure_schema_up_to_date(engine, database_url: str, auto_migrate: bool) -> None:
    current_rev, head_rev = _get_schema_revisions(engine, database_url)
    if current_rev == head_rev:
        return

    if auto_migrate:
        _run_alembic(engine, database_url, "upgrade")
        new_current, _ = _get_schema_revisions(engine, database_url)
        if new_current != head_rev:
            raise RuntimeError("Database migration did not reach expected revision")
    else:
        raise RuntimeError(
            f"Database schema out of date (current={current_rev}, expected={head_rev}). "
            "Run 'alembic upgrade head' or set AGENTMEM_AUTO_MIGRATE_ON_STARTUP=true."
        )


class MemoryDB:
    """
    Handle for one memory store: engine, session factory, clock and writer lock.

    Every service takes the handle as its first argument. File stores run in
    WAL mode and are migrated with Alembic; ``:memory:`` stores share a single
    connection and are created straight from the model metadata.

    Usage:
        with MemoryDB("/tmp/memory.db") as store:
            store_event(store, "agent-1", {...})
    """

    def __init__(
        self,
        path: Optional[str] = None,
        *,
        clock: Optional[Clock] = None,
        auto_migrate: Optional[bool] = None,
    ):
        raw_path = path or config.get_db_path()
        self.path = raw_path if raw_path == config.MEMORY_DB_PATH else os.path.expanduser(raw_path)
        self.clock = clock or utcnow
        self.write_lock = threading.RLock()
        self._ensure_directory()

        self.database_url = "sqlite://" if self.is_memory else f"sqlite:///{self.path}"
        self.engine = self._create_engine()
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        migrate = config.AUTO_MIGRATE_ON_STARTUP if auto_migrate is None else auto_migrate
        self._initialize_schema(migrate)
        config.logger.info("Memory store opened", extra={"db_path": self.path})

    @property
    def is_memory(self) -> bool:
        return self.path == config.MEMORY_DB_PATH

    def _ensure_directory(self) -> None:
        if self.is_memory:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _create_engine(self):
        if self.is_memory:
            engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
            )

        use_wal = not self.is_memory

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            if use_wal:
                cursor.execute("PRAGMA journal_mode = WAL")
            cursor.close()

        return engine

    def _initialize_schema(self, auto_migrate: bool) -> None:
        if self.is_memory:
            Base.metadata.create_all(self.engine)
            _run_alembic(self.engine, self.database_url, "stamp")
            return
        _ensure_schema_up_to_date(self.engine, self.database_url, auto_migrate)

    def now(self) -> datetime:
        """Current time as naive UTC."""
        value = self.clock()
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def _connection_guard(self):
        """In-memory stores share one connection; every use of it holds the writer lock."""
        return self.write_lock if self.is_memory else nullcontext()

    def schema_revisions(self) -> tuple[Optional[str], Optional[str]]:
        with self._connection_guard():
            return _get_schema_revisions(self.engine, self.database_url)

    def ping(self) -> None:
        with self._connection_guard(), self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Yield a session; commit on success, roll back on any error."""
        with self._connection_guard():
            db = self.SessionLocal()
            try:
                yield db
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            config.logger.info("Memory store closed", extra={"db_path": self.path})

    def __enter__(self) -> "MemoryDB":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_store(path: Optional[str] = None, *, clock: Optional[Clock] = None) -> MemoryDB:
    """Open the configured store (AGENTMEM_DB_PATH unless a path is given)."""
    config.validate_and_prepare_config()
    return MemoryDB(path, clock=clock)


def create_ephemeral_store(clock: Optional[Clock] = None) -> MemoryDB:
    """Isolated in-memory store, for tests."""
    return MemoryDB(config.MEMORY_DB_PATH, clock=clock)
