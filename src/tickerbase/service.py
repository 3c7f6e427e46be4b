"""The service object: every long-lived collaborator, built once per process.

The HTTP layer, the scheduler and the CLI commands all receive the same
``TickerbaseService`` instead of reaching for module-level singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tickerbase.core.config import TickerbaseConfig
from tickerbase.ingestion.engine import IngestionEngine
from tickerbase.ingestion.pacing import Pacer, create_pacer
from tickerbase.quotes.source import QuoteSource
from tickerbase.quotes.yahoo import YahooQuoteSource
from tickerbase.scheduler.service import IngestionScheduler
from tickerbase.storage.store import SqliteStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class TickerbaseService:
    """Wired-up store, quote source, engine and scheduler."""

    config: TickerbaseConfig
    store: SqliteStore
    source: QuoteSource
    pacer: Pacer
    engine: IngestionEngine
    scheduler: IngestionScheduler

    async def close(self) -> None:
        """Stop the scheduler and release network and database handles."""
        self.scheduler.stop()
        await self.source.close()
        await self.store.close()


async def build_service(
    config: TickerbaseConfig,
    source: QuoteSource | None = None,
    pacer: Pacer | None = None,
) -> TickerbaseService:
    """Open storage and wire every component from ``config``.

    Raises:
        StorageError: If the database cannot be opened.
    """
    store = await create_store(config.storage)
    source = source or YahooQuoteSource(config.provider)
    pacer = pacer or create_pacer(config.ingestion)
    engine = IngestionEngine(
        source=source,
        registry=store,
        prices=store,
        pacer=pacer,
        config=config.ingestion,
    )
    scheduler = IngestionScheduler(
        engine=engine,
        registry=store,
        prices=store,
        config=config.scheduler,
    )
    logger.debug("Service built (storage=%s)", config.storage.sqlite_path)
    return TickerbaseService(
        config=config,
        store=store,
        source=source,
        pacer=pacer,
        engine=engine,
        scheduler=scheduler,
    )
