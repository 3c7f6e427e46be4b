"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from tickerbase.core.config import TickerbaseConfig
from tickerbase.scheduler.service import IngestionScheduler
from tickerbase.service import TickerbaseService
from tickerbase.storage.store import SqliteStore


def get_service(request: Request) -> TickerbaseService:
    """Dependency: retrieve the service built during lifespan."""
    return request.app.state.service


def get_config(request: Request) -> TickerbaseConfig:
    return request.app.state.service.config


def get_store(request: Request) -> SqliteStore:
    return request.app.state.service.store


def get_scheduler(request: Request) -> IngestionScheduler:
    return request.app.state.service.scheduler


EXEMPT_PATHS = {"/", "/api/health"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = request.app.state.service.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content={"success": False, "error": "Invalid or missing API key"},
            )
    return await call_next(request)
