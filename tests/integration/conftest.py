"""Integration test fixtures: real sqlite file and full wiring, provider mocked."""

from __future__ import annotations

from pathlib import Path

import pytest

from tickerbase.core.config import (
    IngestionConfig,
    SchedulerConfig,
    StorageConfig,
    TickerbaseConfig,
)
from tickerbase.ingestion.pacing import FixedDelayPacer
from tickerbase.service import build_service


@pytest.fixture
def integration_config(tmp_path: Path) -> TickerbaseConfig:
    """Full config against a temp database with every pause disabled."""
    return TickerbaseConfig(
        storage=StorageConfig(sqlite_path=str(tmp_path / "integration.db")),
        ingestion=IngestionConfig(
            symbol_delay=0,
            registration_pause=0,
            history_batch_pause=0,
            daily_batch_pause=0,
            history_batch_size=2,
        ),
        scheduler=SchedulerConfig(enabled=False),
    )


@pytest.fixture
async def service(integration_config: TickerbaseConfig):
    svc = await build_service(integration_config, pacer=FixedDelayPacer(0))
    yield svc
    await svc.close()
