"""Read-only HTTP surface: service descriptor, stats, scheduler status, health."""

from tickerbase.api.app import create_app

__all__ = ["create_app"]
