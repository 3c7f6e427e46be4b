"""Test doubles and canned provider payloads shared by unit and integration tests."""

from __future__ import annotations

from datetime import datetime, timezone

from tickerbase.core.exceptions import NotFoundError
from tickerbase.core.models import PricePoint, QuoteSnapshot

# 2024-01-02 .. 2024-01-04 14:30 UTC (US market open)
TS_DAY1 = 1704205800
TS_DAY2 = 1704292200
TS_DAY3 = 1704378600


def chart_payload(symbol: str = "AAPL", price: float = 150.25, with_series: bool = True) -> dict:
    """A ``/v8/finance/chart`` response body."""
    result = {
        "meta": {
            "symbol": symbol,
            "currency": "USD",
            "regularMarketPrice": price,
            "regularMarketDayHigh": price + 1.5,
            "regularMarketDayLow": price - 2.0,
            "regularMarketVolume": 51234567,
            "regularMarketTime": TS_DAY3 + 23400,
            "chartPreviousClose": price - 0.75,
        },
    }
    if with_series:
        result["timestamp"] = [TS_DAY1, TS_DAY2, TS_DAY3]
        result["indicators"] = {
            "quote": [
                {
                    "open": [185.0, None, 182.5],
                    "high": [186.1, None, 183.9],
                    "low": [183.2, None, 181.0],
                    "close": [185.6, None, 183.2],
                    "volume": [82488700, None, 58414500],
                }
            ]
        }
    return {"chart": {"result": [result], "error": None}}


def not_found_payload(symbol: str = "ZZZZ") -> dict:
    return {
        "chart": {
            "result": None,
            "error": {"code": "Not Found", "description": "No data found, symbol may be delisted"},
        }
    }


def make_points(count: int, start_day: int = 1) -> list[PricePoint]:
    """``count`` consecutive daily points at midnight UTC, January 2024."""
    return [
        PricePoint(
            date=datetime(2024, 1, start_day + i, tzinfo=timezone.utc),
            open=100.0 + i,
            high=101.0 + i,
            low=99.0 + i,
            close=100.5 + i,
            volume=1_000_000 + i,
        )
        for i in range(count)
    ]


class FakeQuoteSource:
    """In-memory QuoteSource. Symbols listed in ``missing`` raise NotFoundError."""

    def __init__(
        self,
        prices: dict[str, float] | None = None,
        series: dict[str, list[PricePoint]] | None = None,
        missing: set[str] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.prices = prices or {}
        self.series = series or {}
        self.missing = missing or set()
        self.errors = errors or {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def _check(self, symbol: str) -> None:
        if symbol in self.errors:
            raise self.errors[symbol]
        if symbol in self.missing:
            raise NotFoundError(f"No data found for symbol: {symbol}", context={"symbol": symbol})

    async def fetch_latest_quote(self, symbol: str) -> QuoteSnapshot:
        self.calls.append(("quote", symbol))
        self._check(symbol)
        return QuoteSnapshot(
            symbol=symbol,
            regular_market_price=self.prices.get(symbol, 100.0),
            volume=1000,
        )

    async def fetch_historical_series(self, symbol: str, range_key: str = "1mo") -> list[PricePoint]:
        self.calls.append(("history", symbol))
        self._check(symbol)
        return list(self.series.get(symbol, make_points(3)))

    async def close(self) -> None:
        self.closed = True


class RecordingPacer:
    """Pacer that never sleeps but records every wait and pause."""

    def __init__(self) -> None:
        self.waits = 0
        self.pauses: list[float] = []

    async def wait(self) -> None:
        self.waits += 1

    async def pause(self, seconds: float) -> None:
        self.pauses.append(seconds)


CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"
