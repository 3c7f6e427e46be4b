"""End-to-end ingestion: provider -> engine -> sqlite -> API/CLI."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest
import respx
from click.testing import CliRunner
from fastapi.testclient import TestClient

from fakes import CHART_URL, chart_payload, make_points, not_found_payload
from tickerbase.api.app import create_app
from tickerbase.cli import cli
from tickerbase.core.config import StorageConfig
from tickerbase.storage.store import create_store

pytestmark = pytest.mark.integration

CLOSE = datetime(2024, 3, 15, 21, 30, tzinfo=timezone.utc)


def _mock_provider(prices: dict[str, float], missing: tuple[str, ...] = ()) -> None:
    for symbol, price in prices.items():
        respx.get(f"{CHART_URL}/{symbol}").mock(
            return_value=httpx.Response(200, json=chart_payload(symbol, price))
        )
    for symbol in missing:
        respx.get(f"{CHART_URL}/{symbol}").mock(
            return_value=httpx.Response(404, json=not_found_payload(symbol))
        )


@respx.mock
async def test_bulk_load_then_daily_close(service):
    _mock_provider({"AAPL": 150.25, "MSFT": 410.5}, missing=("ZZZZ",))

    summary = await service.engine.run_bulk_load(["AAPL", "MSFT", "ZZZZ"], "1mo")
    assert summary.successful == 2
    assert summary.failed == 1
    assert summary.failures[0].error == "No data found for symbol: ZZZZ"
    # two sessions per symbol; the null-open sample is dropped
    assert summary.total_records == 4
    assert summary.asset_count == 3
    assert summary.price_count == 4

    close = await service.engine.run_daily_close(as_of=CLOSE)
    assert close.total == 3
    assert close.processed == 2
    assert close.failed_symbols == ["ZZZZ"]

    [latest] = await service.store.get_prices("AAPL", start=datetime(2024, 3, 15, tzinfo=timezone.utc))
    assert latest.open == latest.high == latest.low == latest.close == 150.25
    assert latest.date == datetime(2024, 3, 15, tzinfo=timezone.utc)
    assert await service.store.count_prices() == 6


@respx.mock
async def test_reruns_do_not_duplicate(service):
    _mock_provider({"AAPL": 150.25})

    await service.engine.run_bulk_load(["AAPL"], "1mo")
    await service.engine.run_bulk_load(["AAPL"], "1mo")
    await service.engine.run_daily_close(as_of=CLOSE)
    await service.engine.run_daily_close(as_of=CLOSE)

    assert await service.store.count_assets() == 1
    assert await service.store.count_prices() == 3


@respx.mock
async def test_daily_bar_and_history_share_a_day(service):
    _mock_provider({"AAPL": 150.25})
    await service.engine.run_bulk_load(["AAPL"], "1y")

    # 2024-01-04 is one of the sessions in the canned series
    outcome = await service.engine.ingest_latest_quote(
        "AAPL", as_of=datetime(2024, 1, 4, 21, 30, tzinfo=timezone.utc)
    )
    assert outcome.succeeded
    assert outcome.records == 0
    assert await service.store.count_prices() == 2


@respx.mock
async def test_scheduled_job_uses_shared_engine(service):
    _mock_provider({"AAPL": 150.25})
    await service.store.ensure_asset("AAPL")

    summary = await service.scheduler.run_now()
    assert summary.processed == 1
    assert await service.scheduler.run_health_check() == {"assets": 1, "prices": 1}


def test_api_reflects_stored_data(integration_config):
    async def _seed():
        store = await create_store(integration_config.storage)
        try:
            asset_id = await store.ensure_asset("AAPL")
            await store.write_historical_series(asset_id, make_points(4))
        finally:
            await store.close()

    asyncio.run(_seed())
    with TestClient(create_app(config=integration_config)) as client:
        data = client.get("/api/stats").json()["data"]
        health = client.get("/api/health").json()
    assert data["assets"] == 1
    assert data["prices"] == 4
    assert health["database"] is True


def test_cli_load_stocks_end_to_end(tmp_path, monkeypatch):
    db = tmp_path / "cli.db"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TICKERBASE_STORAGE__SQLITE_PATH", str(db))
    monkeypatch.setenv("TICKERBASE_INGESTION__SYMBOL_DELAY", "0")
    monkeypatch.setenv("TICKERBASE_INGESTION__REGISTRATION_PAUSE", "0")
    monkeypatch.setenv("TICKERBASE_INGESTION__HISTORY_BATCH_PAUSE", "0")

    runner = CliRunner()
    with respx.mock:
        _mock_provider({"AAPL": 150.25, "MSFT": 410.5})
        result = runner.invoke(cli, ["load-stocks", "--tickers", "AAPL,MSFT", "--range", "1mo"])
    assert result.exit_code == 0, result.output
    assert "Bulk Load Summary" in result.output

    async def _counts():
        store = await create_store(StorageConfig(sqlite_path=str(db)))
        try:
            return await store.get_statistics()
        finally:
            await store.close()

    assert asyncio.run(_counts()) == {"assets": 2, "prices": 4}
