"""Batch ingestion: engine, drivers and pacing primitives."""

from tickerbase.ingestion.engine import IngestionEngine
from tickerbase.ingestion.pacing import FixedDelayPacer, Pacer, TokenBucketPacer, create_pacer

__all__ = [
    "IngestionEngine",
    "Pacer",
    "FixedDelayPacer",
    "TokenBucketPacer",
    "create_pacer",
]
