"""FastAPI route definitions. None of these trigger ingestion."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

import tickerbase
from tickerbase.api.deps import get_scheduler, get_store
from tickerbase.api.schemas import (
    HealthResponse,
    JobStatus,
    SchedulerStatusData,
    SchedulerStatusResponse,
    ServiceDescriptor,
    StatsData,
    StatsResponse,
)
from tickerbase.core.exceptions import StorageError
from tickerbase.scheduler.service import HEALTH_CHECK_JOB, MARKET_CLOSE_JOB, IngestionScheduler
from tickerbase.storage.store import SqliteStore

logger = logging.getLogger(__name__)

root_router = APIRouter()
router = APIRouter()


@root_router.get("/", response_model=ServiceDescriptor)
async def service_descriptor():
    """Basic service information and the available endpoints."""
    return ServiceDescriptor(
        service="tickerbase",
        version=tickerbase.__version__,
        status="running",
        endpoints={
            "base": "/",
            "stats": "/api/stats",
            "schedulerStatus": "/api/scheduler/status",
            "health": "/api/health",
        },
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(store: SqliteStore = Depends(get_store)):
    """Stored asset and price counts."""
    try:
        assets = await store.count_assets()
        prices = await store.count_prices()
    except StorageError as e:
        logger.error("Failed to read statistics: %s", e)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to read statistics from the database"},
        )
    return StatsResponse(
        data=StatsData(assets=assets, prices=prices, updated=datetime.now(UTC)),
    )


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
async def scheduler_status(scheduler: IngestionScheduler = Depends(get_scheduler)):
    """Scheduled jobs and when they fire next."""
    status = scheduler.status()
    jobs = [JobStatus(**job) for job in status["jobs"]]
    by_id = {job.id: job for job in jobs}
    return SchedulerStatusResponse(
        data=SchedulerStatusData(
            is_running=status["running"],
            next_daily_close=_describe(by_id.get(MARKET_CLOSE_JOB)),
            next_health_check=_describe(by_id.get(HEALTH_CHECK_JOB)),
            jobs=jobs,
        )
    )


@router.get("/health", response_model=HealthResponse)
async def health(store: SqliteStore = Depends(get_store)):
    """Liveness check."""
    return HealthResponse(
        status="ok",
        version=tickerbase.__version__,
        database=await store.health_check(),
    )


def _describe(job: JobStatus | None) -> str:
    if job is None:
        return "not scheduled"
    when = job.next_run_time.isoformat() if job.next_run_time else "never"
    return f"{job.cron} ({job.timezone}), next at {when}"
