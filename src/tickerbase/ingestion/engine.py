"""Batch ingestion engine: fetch -> normalize -> store, one symbol at a time.

Per run::

    PENDING -> PROCESSING(symbol) -> SUCCESS | FAILED -> next symbol -> COMPLETED

Symbols are processed strictly sequentially and every provider call goes
through the shared pacer. A symbol's failure becomes a ``failed`` outcome
and the run moves on; only errors outside the per-symbol step (for example
listing the registered symbols) propagate to the caller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Sequence
from datetime import datetime

from tickerbase.core.config import IngestionConfig
from tickerbase.core.exceptions import StorageError
from tickerbase.core.models import (
    BatchOutcome,
    BulkLoadSummary,
    DailyCloseSummary,
    QuoteSnapshot,
)
from tickerbase.ingestion.pacing import Pacer
from tickerbase.quotes.source import QuoteSource
from tickerbase.storage.store import AssetRegistry, PriceStore

logger = logging.getLogger(__name__)


class IngestionEngine:
    """Orchestrates the quote source, asset registry and price store.

    Parameters
    ----------
    source : QuoteSource
        Provider client.
    registry : AssetRegistry
        Get-or-create for symbols.
    prices : PriceStore
        Price persistence.
    pacer : Pacer
        Throttle awaited before every provider call.
    config : IngestionConfig
        Batch sizes, pauses and the default range key.
    """

    def __init__(
        self,
        source: QuoteSource,
        registry: AssetRegistry,
        prices: PriceStore,
        pacer: Pacer,
        config: IngestionConfig | None = None,
    ) -> None:
        self._source = source
        self._registry = registry
        self._prices = prices
        self._pacer = pacer
        self._config = config or IngestionConfig()

    @property
    def config(self) -> IngestionConfig:
        return self._config

    # --- Registration ---

    async def ensure_assets_exist(self, symbols: Sequence[str]) -> list[BatchOutcome]:
        """Register every symbol, tolerating individual failures."""
        outcomes: list[BatchOutcome] = []
        for symbol in symbols:
            try:
                await self._registry.ensure_asset(symbol)
                outcomes.append(BatchOutcome.success(_normalize(symbol)))
            except Exception as e:
                logger.warning("Could not register %s: %s", symbol, e)
                outcomes.append(BatchOutcome.failure(_normalize(symbol), str(e)))
        return outcomes

    # --- Historical ---

    async def load_historical_batch(
        self, symbols: Sequence[str], range_key: str | None = None
    ) -> list[BatchOutcome]:
        """Load a historical series for each symbol, in input order.

        Returns exactly one outcome per input symbol.
        """
        range_key = range_key or self._config.default_range
        logger.info(
            "Starting historical load for %d symbols (range=%s)", len(symbols), range_key
        )

        outcomes: list[BatchOutcome] = []
        for symbol in symbols:
            await self._pacer.wait()
            outcome = await self._load_history_for(symbol, range_key)
            outcomes.append(outcome)

        for o in outcomes:
            if o.succeeded:
                logger.info("  %s: success (%d records)", o.symbol, o.records or 0)
            else:
                logger.info("  %s: failed (%s)", o.symbol, o.error)
        return outcomes

    async def _load_history_for(self, symbol: str, range_key: str) -> BatchOutcome:
        symbol = _normalize(symbol)
        logger.info("Processing %s...", symbol)
        try:
            asset_id = await self._registry.ensure_asset(symbol)
            points = await self._source.fetch_historical_series(symbol, range_key)
            result = await self._prices.write_historical_series(asset_id, points)
        except Exception as e:
            logger.error("Error processing %s: %s", symbol, e)
            return BatchOutcome.failure(symbol, str(e))

        if not result.ok and self._config.fail_on_unpersisted:
            return BatchOutcome.failure(
                symbol, f"fetched {len(points)} records but not persisted: {result.error}"
            )
        logger.info(
            "%s: %d records fetched, %d new, %d already stored",
            symbol, len(points), result.inserted, result.skipped,
        )
        return BatchOutcome.success(symbol, records=len(points))

    # --- Latest quote ---

    async def ingest_latest_quote(
        self, symbol: str, as_of: datetime | None = None
    ) -> BatchOutcome:
        """Fetch the latest quote for one symbol and store it as today's row.

        Does not pace; callers iterating over symbols call the pacer.
        """
        symbol = _normalize(symbol)
        try:
            snapshot = await self._source.fetch_latest_quote(symbol)
        except Exception as e:
            logger.warning("%s: %s", symbol, e)
            return BatchOutcome.failure(symbol, str(e))
        return await self.record_snapshot(snapshot, as_of=as_of)

    async def record_snapshot(
        self, snapshot: QuoteSnapshot, as_of: datetime | None = None
    ) -> BatchOutcome:
        """Store an already-fetched quote as today's row, registering its symbol."""
        symbol = snapshot.symbol
        try:
            asset_id = await self._registry.ensure_asset(symbol)
            result = await self._prices.write_daily_price(asset_id, snapshot, as_of=as_of)
        except Exception as e:
            logger.warning("%s: %s", symbol, e)
            return BatchOutcome.failure(symbol, str(e))

        if not result.ok and self._config.fail_on_unpersisted:
            return BatchOutcome.failure(
                symbol,
                f"fetched {snapshot.regular_market_price:.2f} but not persisted: {result.error}",
            )
        logger.info("%s: $%.2f", symbol, snapshot.regular_market_price)
        return BatchOutcome.success(symbol, records=result.inserted)

    # --- Drivers ---

    async def run_daily_close(
        self,
        symbols: Sequence[str] | None = None,
        batch_size: int | None = None,
        batch_pause: float = 0.0,
        as_of: datetime | None = None,
    ) -> DailyCloseSummary:
        """Record the latest quote for every registered symbol.

        With ``batch_size`` unset (the scheduled job) symbols are only paced
        one by one; the manual driver passes a batch size and a longer pause
        between batches.

        Raises:
            StorageError: If the registered symbols cannot be listed.
        """
        started = time.monotonic()
        if symbols is None:
            symbols = await self._registry.list_symbols()

        if not symbols:
            logger.info("No assets registered, nothing to close")
            return DailyCloseSummary()

        logger.info("Processing %d symbols: %s", len(symbols), ", ".join(symbols))

        size = batch_size or len(symbols)
        batches = list(_chunks(symbols, size))
        outcomes: list[BatchOutcome] = []
        for index, batch in enumerate(batches, start=1):
            if batch_size:
                logger.info("Batch %d/%d", index, len(batches))
            for symbol in batch:
                await self._pacer.wait()
                outcomes.append(await self.ingest_latest_quote(symbol, as_of=as_of))
            if index < len(batches):
                await self._pacer.pause(batch_pause)

        summary = DailyCloseSummary(
            outcomes=outcomes, duration_seconds=time.monotonic() - started
        )
        logger.info("Summary: %d succeeded, %d failed", summary.processed, summary.failed)
        return summary

    async def run_bulk_load(
        self, symbols: Sequence[str], range_key: str | None = None
    ) -> BulkLoadSummary:
        """Register a symbol universe, then backfill its history in batches.

        Registration runs in batches of ``registration_batch_size`` with
        ``registration_pause`` between them; the historical pull runs in
        batches of ``history_batch_size`` with ``history_batch_pause``
        between them.
        """
        cfg = self._config
        range_key = range_key or cfg.default_range
        started = time.monotonic()
        logger.info("Loading %d symbols (range=%s)", len(symbols), range_key)

        logger.info("Step 1: registering assets")
        reg_batches = list(_chunks(symbols, cfg.registration_batch_size))
        for index, batch in enumerate(reg_batches, start=1):
            await self.ensure_assets_exist(batch)
            if index < len(reg_batches):
                logger.info("Registration batch %d/%d done", index, len(reg_batches))
                await self._pacer.pause(cfg.registration_pause)

        logger.info("Step 2: loading historical data")
        outcomes: list[BatchOutcome] = []
        hist_batches = list(_chunks(symbols, cfg.history_batch_size))
        for index, batch in enumerate(hist_batches, start=1):
            logger.info("Batch %d/%d: %s", index, len(hist_batches), ", ".join(batch))
            outcomes.extend(await self.load_historical_batch(batch, range_key))
            if index < len(hist_batches):
                await self._pacer.pause(cfg.history_batch_pause)

        asset_count: int | None = None
        price_count: int | None = None
        try:
            asset_count = await self._registry.count_assets()
            price_count = await self._prices.count_prices()
        except StorageError as e:
            logger.warning("Could not read final counts: %s", e)

        summary = BulkLoadSummary(
            outcomes=outcomes,
            range_key=range_key,
            duration_seconds=time.monotonic() - started,
            asset_count=asset_count,
            price_count=price_count,
        )
        logger.info(
            "Bulk load complete: %d symbols, %d succeeded, %d failed, %d records",
            summary.total_symbols, summary.successful, summary.failed, summary.total_records,
        )
        return summary


def _normalize(symbol: str) -> str:
    return symbol.strip().upper()


def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]
