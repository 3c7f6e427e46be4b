"""Quote source protocol and the range-key lookup table.

Consumers (the ingestion engine, the CLI) depend only on ``QuoteSource``;
the provider's wire format stays behind the concrete implementation.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tickerbase.core.models import (
    DATE_RANGE_CONFIGS,
    DEFAULT_RANGE_KEY,
    PricePoint,
    QuoteSnapshot,
    RangeConfig,
)


@runtime_checkable
class QuoteSource(Protocol):
    """Fetches normalized quote data for one symbol at a time.

    Implementations raise ``NotFoundError`` when the provider has no result
    set for the symbol and ``UpstreamError`` on transport or parse failure.
    They never write to storage.
    """

    async def fetch_latest_quote(self, symbol: str) -> QuoteSnapshot: ...

    async def fetch_historical_series(
        self, symbol: str, range_key: str = DEFAULT_RANGE_KEY
    ) -> list[PricePoint]: ...

    async def close(self) -> None: ...


def get_range_config(range_key: str | None) -> RangeConfig:
    """Resolve a range key to its (span, interval) pair.

    Unknown or missing keys fall back to ``1mo``.
    """
    if range_key is None:
        return DATE_RANGE_CONFIGS[DEFAULT_RANGE_KEY]
    return DATE_RANGE_CONFIGS.get(range_key, DATE_RANGE_CONFIGS[DEFAULT_RANGE_KEY])


def available_ranges() -> list[str]:
    """Return every supported range key, shortest span first."""
    return list(DATE_RANGE_CONFIGS)
