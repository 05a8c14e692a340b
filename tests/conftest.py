import os
from datetime import datetime, timedelta

os.environ.setdefault("AGENTMEM_LOG_LEVEL", "WARNING")

import pytest

from agentmem.db import MemoryDB, create_ephemeral_store


class FrozenClock:
    def __init__(self, current: datetime):
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 29, 12, 0, 0))


@pytest.fixture
def store(clock):
    memory_store = create_ephemeral_store(clock=clock)
    try:
        yield memory_store
    finally:
        memory_store.close()


@pytest.fixture
def file_store(tmp_path, clock):
    memory_store = MemoryDB(str(tmp_path / "memory.db"), clock=clock, auto_migrate=True)
    try:
        yield memory_store
    finally:
        memory_store.close()
