"""Recurring ingestion jobs on top of APScheduler's asyncio scheduler.

Two jobs are registered the same way and differ only in their cron spec and
task: the market-close job (weekdays 21:30 UTC, i.e. 16:30 US Eastern) and
the hourly liveness check. Each job carries an "already running" guard, so a
slow run is never overlapped by its next firing or by a manual trigger.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from tickerbase.core.config import SchedulerConfig
from tickerbase.core.cron import crontab_trigger
from tickerbase.core.exceptions import SchedulerError
from tickerbase.core.models import DailyCloseSummary
from tickerbase.ingestion.engine import IngestionEngine
from tickerbase.storage.store import AssetRegistry, PriceStore

logger = logging.getLogger(__name__)

MARKET_CLOSE_JOB = "market_close"
HEALTH_CHECK_JOB = "health_check"


@dataclass(frozen=True)
class JobSpec:
    """A recurring job: a cron expression plus the coroutine it fires."""

    job_id: str
    name: str
    cron: str
    task: Callable[[], Awaitable[Any]]


def build_trigger(cron: str, tz: str = "UTC") -> CronTrigger:
    """Parse a 5-field crontab expression into a trigger.

    Raises:
        SchedulerError: If the expression or timezone is invalid.
    """
    try:
        return crontab_trigger(cron, timezone=ZoneInfo(tz))
    except (ValueError, KeyError) as e:
        raise SchedulerError(
            f"Invalid cron spec {cron!r}: {e}", context={"spec": cron, "timezone": tz}
        ) from e


def next_fire_time(cron: str, tz: str = "UTC", now: datetime | None = None) -> datetime | None:
    """Compute when ``cron`` next fires at or after ``now``."""
    trigger = build_trigger(cron, tz)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return trigger.get_next_fire_time(None, now)


class IngestionScheduler:
    """Process-wide scheduler for the market-close and liveness jobs.

    States: STOPPED -> RUNNING -> STOPPED. ``start()`` while running is a
    no-op with a warning.
    """

    def __init__(
        self,
        engine: IngestionEngine,
        registry: AssetRegistry,
        prices: PriceStore,
        config: SchedulerConfig | None = None,
    ) -> None:
        self._engine = engine
        self._registry = registry
        self._prices = prices
        self._config = config or SchedulerConfig()
        self._tz = ZoneInfo(self._config.timezone)
        self._scheduler = AsyncIOScheduler(timezone=self._tz)
        self._running = False
        self._active: set[str] = set()
        self._specs = {
            spec.job_id: spec
            for spec in (
                JobSpec(
                    job_id=MARKET_CLOSE_JOB,
                    name="Daily market close",
                    cron=self._config.market_close_cron,
                    task=self._market_close,
                ),
                JobSpec(
                    job_id=HEALTH_CHECK_JOB,
                    name="Hourly health check",
                    cron=self._config.health_check_cron,
                    task=self._health_check,
                ),
            )
        }

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def job_specs(self) -> list[JobSpec]:
        return list(self._specs.values())

    # --- Lifecycle ---

    def start(self) -> None:
        """Register both jobs and start firing them.

        Must be called from within a running event loop.
        """
        if self._running:
            logger.warning("Scheduler is already running")
            return

        logger.info("Starting ingestion scheduler")
        for spec in self._specs.values():
            self._scheduler.add_job(
                self._run_job,
                trigger=build_trigger(spec.cron, self._config.timezone),
                args=[spec.job_id],
                id=spec.job_id,
                name=spec.name,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self._config.misfire_grace_seconds,
            )
            logger.info("Scheduled %s: cron '%s' (%s)", spec.name, spec.cron, self._config.timezone)

        if not self._scheduler.running:
            self._scheduler.start()
        self._running = True
        self._log_schedule()

    def stop(self) -> None:
        """Cancel both jobs and shut the underlying scheduler down."""
        if not self._running:
            return

        for job_id in self._specs:
            try:
                self._scheduler.remove_job(job_id)
            except JobLookupError:
                pass
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    def get_jobs(self) -> list:
        """Jobs currently registered with the underlying scheduler."""
        return self._scheduler.get_jobs()

    # --- Manual trigger ---

    async def run_now(self) -> DailyCloseSummary | None:
        """Run the market-close job immediately, bypassing the schedule.

        Returns None if the job is already running.
        """
        logger.info("Running daily close manually")
        return await self._run_job(MARKET_CLOSE_JOB)

    async def run_health_check(self) -> dict[str, int] | None:
        return await self._run_job(HEALTH_CHECK_JOB)

    # --- Status ---

    def status(self, now: datetime | None = None) -> dict[str, Any]:
        """Running flag plus each job's cron spec and next fire time."""
        jobs = []
        for spec in self._specs.values():
            job = self._scheduler.get_job(spec.job_id) if self._running else None
            if job is not None and job.next_run_time is not None:
                upcoming = job.next_run_time
            else:
                upcoming = next_fire_time(spec.cron, self._config.timezone, now)
            jobs.append(
                {
                    "id": spec.job_id,
                    "name": spec.name,
                    "cron": spec.cron,
                    "timezone": self._config.timezone,
                    "next_run_time": upcoming,
                    "active": spec.job_id in self._active,
                }
            )
        return {"running": self._running, "jobs": jobs}

    # --- Job bodies ---

    async def _run_job(self, job_id: str) -> Any:
        """Run one job with its overlap guard; failures are logged, not raised."""
        spec = self._specs[job_id]
        if job_id in self._active:
            logger.warning("%s is still running, skipping this trigger", spec.name)
            return None

        self._active.add(job_id)
        try:
            return await spec.task()
        except Exception as e:
            logger.error("%s failed: %s", spec.name, e, exc_info=True)
            return None
        finally:
            self._active.discard(job_id)

    async def _market_close(self) -> DailyCloseSummary:
        now = datetime.now(timezone.utc)
        logger.info("Running daily market close")
        logger.info("UTC time: %s", now.isoformat())
        logger.info("Local time: %s", now.astimezone().isoformat())

        summary = await self._engine.run_daily_close()
        logger.info(
            "Daily close completed: %d succeeded, %d failed",
            summary.processed, summary.failed,
        )
        return summary

    async def _health_check(self) -> dict[str, int]:
        assets = await self._registry.count_assets()
        prices = await self._prices.count_prices()
        logger.info("Health check - assets: %d, prices: %d", assets, prices)
        return {"assets": assets, "prices": prices}

    def _log_schedule(self) -> None:
        logger.info("=" * 40)
        for index, spec in enumerate(self._specs.values(), start=1):
            logger.info("%d. %-20s %s (%s)", index, spec.name, spec.cron, self._config.timezone)
        logger.info("=" * 40)
