"""tickerbase: scheduled and on-demand equity price ingestion."""

__version__ = "0.1.0"
