"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tickerbase.api.deps import api_key_middleware
from tickerbase.api.routes import root_router, router
from tickerbase.core.config import TickerbaseConfig, load_config
from tickerbase.core.exceptions import ConfigError, StorageError, TickerbaseError
from tickerbase.service import TickerbaseService, build_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build (or adopt) the service, start the scheduler, clean up on exit."""
    service: TickerbaseService | None = app.state._pending_service
    owned = service is None
    if service is None:
        config = app.state._pending_config or load_config()
        service = await build_service(config)

    app.state.service = service
    if service.config.scheduler.enabled:
        service.scheduler.start()

    yield

    if owned:
        await service.close()
    else:
        service.scheduler.stop()


def create_app(
    config: TickerbaseConfig | None = None,
    service: TickerbaseService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass ``service`` to share one already-built service with the caller;
    otherwise one is built from ``config`` (or ``load_config()``) at startup
    and closed at shutdown.
    """
    import tickerbase

    app = FastAPI(
        title="tickerbase API",
        description="Equity price ingestion service",
        version=tickerbase.__version__,
        lifespan=lifespan,
    )

    # Stash so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_service = service

    effective = service.config if service is not None else config
    if effective and effective.api.api_key:
        app.middleware("http")(api_key_middleware)

    app.include_router(root_router)
    app.include_router(router, prefix="/api")

    @app.exception_handler(TickerbaseError)
    async def tickerbase_exception_handler(request: Request, exc: TickerbaseError):
        status_map = {
            ConfigError: 400,
            StorageError: 500,
        }
        status = status_map.get(type(exc), 500)
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content={"success": False, "error": "Internal server error"},
        )

    return app
