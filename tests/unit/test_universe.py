"""Tests for the default symbol universe and --tickers parsing."""

from tickerbase.universe import DEFAULT_UNIVERSE, SECTORS, parse_symbols


def test_universe_has_no_duplicates():
    assert len(DEFAULT_UNIVERSE) == len(set(DEFAULT_UNIVERSE))


def test_universe_is_flattened_sectors():
    assert DEFAULT_UNIVERSE == [s for group in SECTORS.values() for s in group]
    assert "AAPL" in DEFAULT_UNIVERSE
    assert all(s == s.upper() for s in DEFAULT_UNIVERSE)


def test_parse_symbols_normalizes():
    assert parse_symbols(" aapl, MSFT ,,googl ") == ["AAPL", "MSFT", "GOOGL"]


def test_parse_symbols_dedupes_keeping_order():
    assert parse_symbols("msft,aapl,MSFT") == ["MSFT", "AAPL"]


def test_parse_symbols_empty():
    assert parse_symbols("") == []
    assert parse_symbols(None) == []
