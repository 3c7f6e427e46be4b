"""Shared pytest fixtures for tickerbase."""

from __future__ import annotations

import pytest

from fakes import FakeQuoteSource, RecordingPacer
from tickerbase.core.config import StorageConfig
from tickerbase.core.models import StorageBackend
from tickerbase.storage.store import SqliteStore


@pytest.fixture
async def store():
    """Create an in-memory SqliteStore for testing."""
    config = StorageConfig(backend=StorageBackend.SQLITE, sqlite_path=":memory:")
    s = SqliteStore(config)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def fake_source() -> FakeQuoteSource:
    return FakeQuoteSource()


@pytest.fixture
def pacer() -> RecordingPacer:
    return RecordingPacer()
