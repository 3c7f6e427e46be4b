"""Persistence: asset registry and price store over SQLite."""

from tickerbase.storage.store import AssetRegistry, PriceStore, SqliteStore, create_store

__all__ = [
    "AssetRegistry",
    "PriceStore",
    "SqliteStore",
    "create_store",
]
