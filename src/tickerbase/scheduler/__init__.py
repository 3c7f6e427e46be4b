"""Recurring market-close and liveness jobs."""

from tickerbase.scheduler.service import (
    HEALTH_CHECK_JOB,
    MARKET_CLOSE_JOB,
    IngestionScheduler,
    JobSpec,
    build_trigger,
    next_fire_time,
)

__all__ = [
    "HEALTH_CHECK_JOB",
    "MARKET_CLOSE_JOB",
    "IngestionScheduler",
    "JobSpec",
    "build_trigger",
    "next_fire_time",
]
