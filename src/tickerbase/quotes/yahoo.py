"""Yahoo Finance quote source: direct HTTP against the chart endpoint.

Uses the unauthenticated ``/v8/finance/chart/{symbol}`` endpoint via httpx.
The same endpoint serves both the latest quote (``meta`` block) and, when
``range``/``interval`` are given, parallel OHLCV arrays that are zipped
positionally.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import ValidationError

from tickerbase.core.config import ProviderConfig
from tickerbase.core.exceptions import NotFoundError, RateLimitError, UpstreamError
from tickerbase.core.models import DEFAULT_RANGE_KEY, PricePoint, QuoteSnapshot, RangeConfig
from tickerbase.quotes.source import get_range_config

logger = logging.getLogger(__name__)

_CHART_PATH = "/v8/finance/chart"

# Retry configuration
_DEFAULT_RETRY_AFTER = 5
_RETRYABLE_STATUS = (500, 502, 503, 504)
_CONNECTION_RETRY_DELAY = 2.0

# Raised by the adapter on payloads of the wrong shape or type
_PARSE_ERRORS = (ValueError, TypeError, AttributeError, KeyError, IndexError, ValidationError)


class YahooChartAdapter:
    """Transforms the ``chart.result[0]`` object into normalized models."""

    def to_snapshot(self, raw_data: dict[str, Any], symbol: str) -> QuoteSnapshot:
        """Build a QuoteSnapshot from the result's ``meta`` block.

        Raises:
            UpstreamError: If the meta block has no usable market price.
        """
        meta = raw_data.get("meta") or {}
        price = meta.get("regularMarketPrice")
        if price is None:
            raise UpstreamError(
                f"Quote for {symbol} has no regularMarketPrice",
                context={"symbol": symbol},
            )

        market_time = meta.get("regularMarketTime")
        volume = meta.get("regularMarketVolume")
        return QuoteSnapshot(
            symbol=symbol,
            regular_market_price=float(price),
            day_high=_as_float(meta.get("regularMarketDayHigh")),
            day_low=_as_float(meta.get("regularMarketDayLow")),
            volume=int(volume) if volume is not None else None,
            previous_close=_as_float(
                meta.get("previousClose", meta.get("chartPreviousClose"))
            ),
            market_time=(
                datetime.fromtimestamp(market_time, tz=timezone.utc)
                if market_time is not None
                else None
            ),
            currency=meta.get("currency"),
        )

    def to_points(
        self, raw_data: dict[str, Any], range_config: RangeConfig
    ) -> list[PricePoint]:
        """Zip timestamps with the OHLCV arrays.

        Points whose open is null are dropped: the provider marks
        non-trading periods that way. Daily-or-coarser samples are dated at
        midnight UTC of their trading day so that they key on the same
        (asset, date) pair as a daily-close record for that day.

        Returns:
            Points sorted by timestamp ascending.
        """
        timestamps: list[int] = raw_data.get("timestamp") or []
        if not timestamps:
            return []

        quotes = (raw_data.get("indicators", {}).get("quote") or [{}])[0]
        opens = quotes.get("open") or []
        highs = quotes.get("high") or []
        lows = quotes.get("low") or []
        closes = quotes.get("close") or []
        volumes = quotes.get("volume") or []

        points: list[PricePoint] = []
        for i, ts in enumerate(timestamps):
            o = opens[i] if i < len(opens) else None
            if o is None:
                continue

            v = volumes[i] if i < len(volumes) else None
            points.append(
                PricePoint(
                    date=_sample_date(ts, range_config),
                    open=float(o),
                    high=_as_float(highs[i] if i < len(highs) else None),
                    low=_as_float(lows[i] if i < len(lows) else None),
                    close=_as_float(closes[i] if i < len(closes) else None),
                    volume=int(v) if v is not None else None,
                )
            )

        return sorted(points, key=lambda p: p.date)


class YahooQuoteSource:
    """Async client for the Yahoo Finance chart API.

    Pacing between symbols is the caller's concern; this class only retries
    transient failures (429, 5xx, connection errors) for a single request.

    Use via ``async with YahooQuoteSource(config) as source:``.
    """

    def __init__(
        self,
        config: ProviderConfig,
        adapter: YahooChartAdapter | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._adapter = adapter or YahooChartAdapter()
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> YahooQuoteSource:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    # --- Public API ---

    async def fetch_latest_quote(self, symbol: str) -> QuoteSnapshot:
        """Fetch the most recent price fields for one symbol.

        Raises:
            NotFoundError: The provider returned no result set.
            UpstreamError: Network, HTTP or parse failure.
        """
        symbol = symbol.strip().upper()
        logger.info("Fetching latest quote for %s", symbol)
        result = await self._fetch_chart(symbol)
        try:
            snapshot = self._adapter.to_snapshot(result, symbol)
        except _PARSE_ERRORS as e:
            raise _malformed(symbol, e) from e
        logger.info("Quote for %s: %.2f", symbol, snapshot.regular_market_price)
        return snapshot

    async def fetch_historical_series(
        self, symbol: str, range_key: str = DEFAULT_RANGE_KEY
    ) -> list[PricePoint]:
        """Fetch an OHLCV series for the span selected by ``range_key``.

        Unknown range keys fall back to ``1mo``.

        Raises:
            NotFoundError: The provider returned no result set.
            UpstreamError: Network, HTTP or parse failure.
        """
        symbol = symbol.strip().upper()
        range_config = get_range_config(range_key)
        logger.info(
            "Fetching historical series for %s (range=%s interval=%s)",
            symbol, range_config.range, range_config.interval,
        )
        result = await self._fetch_chart(
            symbol,
            params={"range": range_config.range, "interval": range_config.interval},
        )
        try:
            points = self._adapter.to_points(result, range_config)
        except _PARSE_ERRORS as e:
            raise _malformed(symbol, e) from e
        logger.info("Extracted %d historical points for %s", len(points), symbol)
        return points

    # --- Transport ---

    async def _fetch_chart(
        self, symbol: str, params: dict[str, str] | None = None
    ) -> dict[str, Any]:
        """Return the ``chart.result[0]`` object for a symbol."""
        url = f"{self._config.base_url}{_CHART_PATH}/{symbol}"
        response = await self._request(url, symbol, params)

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise UpstreamError(
                f"Unparseable response for {symbol}: {e}",
                context={"symbol": symbol, "url": url, "error": str(e)},
            ) from e

        chart = data.get("chart") if isinstance(data, dict) else None
        if not isinstance(chart, dict):
            raise UpstreamError(
                f"Malformed chart response for {symbol}",
                context={"symbol": symbol, "url": url},
            )

        results = chart.get("result")
        if not results:
            err = chart.get("error") or {}
            raise NotFoundError(
                f"No data found for symbol: {symbol}",
                context={
                    "symbol": symbol,
                    "range": (params or {}).get("range"),
                    "provider_code": err.get("code"),
                },
            )
        return results[0]

    async def _request(
        self, url: str, symbol: str, params: dict[str, str] | None
    ) -> httpx.Response:
        """GET with retry.

        Retry policy:
            - HTTP 429: wait for Retry-After (or 5s), retry up to max_retries.
            - HTTP 5xx: exponential backoff, retry up to max_retries.
            - Connection/timeout errors: 2s delay, retry up to max_retries.
            - HTTP 404: returned as-is, the body carries the "no data" error.
            - Other HTTP errors: raise immediately.
        """
        max_retries = self._config.max_retries

        for attempt in range(max_retries + 1):
            try:
                response = await self._client.get(url, params=params)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                if attempt < max_retries:
                    logger.warning(
                        "Connection error on %s, retrying in %.0fs (attempt %d/%d)",
                        url, _CONNECTION_RETRY_DELAY, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(_CONNECTION_RETRY_DELAY)
                    continue
                raise UpstreamError(
                    f"Connection failed after retries: {url}",
                    context={"symbol": symbol, "url": url, "error": str(e)},
                ) from e
            except httpx.HTTPError as e:
                raise UpstreamError(
                    f"Request to {url} failed: {e}",
                    context={"symbol": symbol, "url": url, "error": str(e)},
                ) from e

            if response.status_code in (200, 404):
                return response

            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                if attempt < max_retries:
                    logger.warning(
                        "Rate limited (429) on %s, waiting %ds (attempt %d/%d)",
                        url, retry_after, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(retry_after)
                    continue
                raise RateLimitError(
                    f"Rate limit exceeded after {max_retries} retries: {url}",
                    context={"symbol": symbol, "url": url, "retry_after": retry_after},
                )

            if response.status_code in _RETRYABLE_STATUS and attempt < max_retries:
                delay = 2**attempt
                logger.warning(
                    "Server error %d on %s, retrying in %ds (attempt %d/%d)",
                    response.status_code, url, delay, attempt + 1, max_retries,
                )
                await asyncio.sleep(delay)
                continue

            raise UpstreamError(
                f"HTTP {response.status_code} from {url}",
                context={"symbol": symbol, "url": url, "status_code": response.status_code},
            )

        raise UpstreamError(
            f"Request failed after all retries: {url}",
            context={"symbol": symbol, "url": url},
        )


def _as_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _parse_retry_after(response: httpx.Response) -> int:
    try:
        return int(response.headers.get("Retry-After", _DEFAULT_RETRY_AFTER))
    except ValueError:
        return _DEFAULT_RETRY_AFTER


def _sample_date(ts: int, range_config: RangeConfig) -> datetime:
    moment = datetime.fromtimestamp(ts, tz=timezone.utc)
    if range_config.is_intraday:
        return moment
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _malformed(symbol: str, error: Exception) -> UpstreamError:
    return UpstreamError(
        f"Malformed quote data for {symbol}: {error}",
        context={"symbol": symbol, "error": str(error)},
    )
