"""
Pytest configuration and fixtures for persistent-memoize tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from pmemo.config import clear_settings_cache
from pmemo.record import CacheRecordEngine
from pmemo.store import MemoryBlobStore

POEM = """Whose woods these are I think I know.
His house is in the village though;

He will not see me stopping here
To watch his woods fill up with snow.
"""


class FrozenClock:
    """Deterministic clock for expiry tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FrozenClock:
    """Provide a clock frozen at 2024-01-01T00:00:00Z."""
    return FrozenClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def memory_store() -> MemoryBlobStore:
    """Provide an empty in-memory blob store."""
    return MemoryBlobStore()


@pytest.fixture
def engine(memory_store: MemoryBlobStore, clock: FrozenClock) -> CacheRecordEngine:
    """Provide a record engine over the memory store with a frozen clock."""
    return CacheRecordEngine(memory_store, clock=clock)


@pytest.fixture
def poem() -> str:
    """Multi-line text containing blank lines."""
    return POEM


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide PMEMO_* environment variables for testing."""
    env_vars = {
        "PMEMO_PREFIX": "test-prefix",
        "PMEMO_NAME": "test-app",
        "PMEMO_VERSION": "9.9.9",
        "PMEMO_MAX_AGE": "3600",
        "PMEMO_STORE_BACKEND": "filesystem",
        "PMEMO_CACHE_DIR": str(temp_dir / "cache"),
        "PMEMO_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
