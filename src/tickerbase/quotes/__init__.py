"""Market-data provider access: the QuoteSource protocol and Yahoo client."""

from tickerbase.quotes.source import QuoteSource, available_ranges, get_range_config
from tickerbase.quotes.yahoo import YahooChartAdapter, YahooQuoteSource

__all__ = [
    "QuoteSource",
    "available_ranges",
    "get_range_config",
    "YahooChartAdapter",
    "YahooQuoteSource",
]
