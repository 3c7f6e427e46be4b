"""Curated default symbol universe for full historical backfills."""

from __future__ import annotations

SECTORS: dict[str, list[str]] = {
    "Technology": [
        "AAPL", "MSFT", "GOOGL", "AMZN", "META", "TSLA", "NVDA",
        "AVGO", "ADBE", "CRM", "ORCL", "CSCO", "INTC", "AMD",
        "QCOM", "IBM", "TXN", "NOW", "INTU", "UBER",
    ],
    "Finance": [
        "JPM", "BAC", "WFC", "C", "GS", "MS", "SCHW",
        "V", "MA", "AXP", "PYPL", "COIN",
    ],
    "Healthcare": [
        "JNJ", "UNH", "PFE", "ABT", "TMO", "DHR", "LLY",
        "MRK", "BMY", "ABBV", "GILD", "CVS", "CI",
    ],
    "Consumer & Retail": [
        "WMT", "PG", "KO", "PEP", "COST", "MCD", "SBUX",
        "NKE", "TGT", "HD", "LOW", "AMT", "NEE",
    ],
    "Industrials & Energy": [
        "BA", "CAT", "GE", "HON", "MMM", "RTX", "LMT",
        "XOM", "CVX", "COP", "SLB", "EOG",
    ],
}

DEFAULT_UNIVERSE: list[str] = [s for symbols in SECTORS.values() for s in symbols]


def parse_symbols(raw: str | None) -> list[str]:
    """Split a comma-separated list, uppercase it and drop blanks and repeats."""
    if not raw:
        return []
    seen: set[str] = set()
    result: list[str] = []
    for part in raw.split(","):
        symbol = part.strip().upper()
        if symbol and symbol not in seen:
            seen.add(symbol)
            result.append(symbol)
    return result
