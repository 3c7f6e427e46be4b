"""API response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    error: str


class ServiceDescriptor(BaseModel):
    """Response for GET /."""

    service: str
    version: str
    status: str
    endpoints: dict[str, str]


class StatsData(BaseModel):
    assets: int
    prices: int
    updated: datetime


class StatsResponse(BaseModel):
    """Response for GET /api/stats."""

    success: bool = True
    data: StatsData


class JobStatus(BaseModel):
    id: str
    name: str
    cron: str
    timezone: str
    next_run_time: datetime | None = None
    active: bool = False


class SchedulerStatusData(BaseModel):
    is_running: bool
    next_daily_close: str
    next_health_check: str
    jobs: list[JobStatus]


class SchedulerStatusResponse(BaseModel):
    """Response for GET /api/scheduler/status."""

    success: bool = True
    data: SchedulerStatusData


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    database: bool
