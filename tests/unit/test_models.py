"""Tests for the core data models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from tickerbase.core.models import (
    DATE_RANGE_CONFIGS,
    Asset,
    BatchOutcome,
    BulkLoadSummary,
    DailyCloseSummary,
    OutcomeStatus,
    PricePoint,
    QuoteSnapshot,
    RangeConfig,
    WriteResult,
)
from tickerbase.quotes.source import available_ranges, get_range_config


class TestRangeTable:
    @pytest.mark.parametrize(
        "key, span, interval",
        [
            ("1d", "1d", "15m"),
            ("5d", "5d", "1d"),
            ("1mo", "1mo", "1d"),
            ("3mo", "3mo", "1d"),
            ("6mo", "6mo", "1d"),
            ("1y", "1y", "1d"),
            ("2y", "2y", "1d"),
            ("5y", "5y", "1wk"),
            ("10y", "10y", "1mo"),
            ("max", "max", "1mo"),
        ],
    )
    def test_lookup(self, key, span, interval):
        cfg = get_range_config(key)
        assert (cfg.range, cfg.interval) == (span, interval)

    def test_unknown_key_falls_back_to_one_month(self):
        assert get_range_config("7w") == RangeConfig(range="1mo", interval="1d")
        assert get_range_config(None) == RangeConfig(range="1mo", interval="1d")

    def test_available_ranges_shortest_first(self):
        ranges = available_ranges()
        assert ranges[0] == "1d"
        assert ranges[-1] == "max"
        assert set(ranges) == set(DATE_RANGE_CONFIGS)

    def test_intraday_flag(self):
        assert get_range_config("1d").is_intraday
        assert not get_range_config("1y").is_intraday
        assert not get_range_config("max").is_intraday


class TestAssetAndQuote:
    def test_symbols_uppercased(self):
        assert Asset(id=1, symbol=" aapl ", name="Apple").symbol == "AAPL"
        assert QuoteSnapshot(symbol="msft", regular_market_price=1.0).symbol == "MSFT"

    def test_negative_volume_rejected(self):
        with pytest.raises(ValidationError):
            PricePoint(date=datetime(2024, 1, 2, tzinfo=timezone.utc), open=1.0, volume=-5)

    def test_point_optional_fields(self):
        point = PricePoint(date=datetime(2024, 1, 2, tzinfo=timezone.utc), open=1.0)
        assert point.high is None and point.close is None and point.volume is None


class TestWriteResult:
    def test_partial_duplicates(self):
        result = WriteResult(attempted=5, inserted=3)
        assert result.ok
        assert result.skipped == 2

    def test_error_means_not_ok(self):
        result = WriteResult(attempted=5, error="disk I/O error")
        assert not result.ok
        assert result.skipped == 0


class TestBatchOutcome:
    def test_success(self):
        outcome = BatchOutcome.success("AAPL", records=250)
        assert outcome.succeeded
        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.error is None

    def test_failure(self):
        outcome = BatchOutcome.failure("ZZZZ", "No data found for symbol: ZZZZ")
        assert not outcome.succeeded
        assert outcome.records is None

    def test_failed_needs_error(self):
        with pytest.raises(ValidationError):
            BatchOutcome(symbol="X", status=OutcomeStatus.FAILED)

    def test_success_cannot_carry_error(self):
        with pytest.raises(ValidationError):
            BatchOutcome(symbol="X", status=OutcomeStatus.SUCCESS, error="oops")

    def test_empty_failure_message_replaced(self):
        assert BatchOutcome.failure("X", "").error == "unknown error"


class TestSummaries:
    def test_bulk_summary_counts(self):
        summary = BulkLoadSummary(
            range_key="5y",
            outcomes=[
                BatchOutcome.success("AAPL", 260),
                BatchOutcome.success("MSFT", 240),
                BatchOutcome.failure("ZZZZ", "No data found for symbol: ZZZZ"),
            ],
        )
        assert summary.total_symbols == 3
        assert summary.successful == 2
        assert summary.failed == 1
        assert summary.total_records == 500
        assert summary.average_records == 250.0
        assert [o.symbol for o in summary.failures] == ["ZZZZ"]

    def test_bulk_summary_average_with_no_success(self):
        summary = BulkLoadSummary(range_key="1mo", outcomes=[BatchOutcome.failure("X", "e")])
        assert summary.average_records == 0.0

    def test_daily_summary(self):
        summary = DailyCloseSummary(
            outcomes=[
                BatchOutcome.success("AAPL", 1),
                BatchOutcome.failure("ZZZZ", "not found"),
                BatchOutcome.success("MSFT", 0),
            ]
        )
        assert summary.total == 3
        assert summary.processed == 2
        assert summary.failed == 1
        assert summary.failed_symbols == ["ZZZZ"]

    def test_empty_daily_summary(self):
        summary = DailyCloseSummary()
        assert summary.total == summary.processed == summary.failed == 0
