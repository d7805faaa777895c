"""FastAPI application for the storage dispatch scheduler.

Exposes strategy configuration, on-demand optimization and performance
queries. The lifespan starts the periodic re-optimization loop.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from storage_dispatch import __version__
from storage_dispatch.api.routes import router
from storage_dispatch.api.schemas import HealthResponse
from storage_dispatch.api.services import StorageOptimizationService
from storage_dispatch.config import SchedulerSettings, configure_logging

logger = logging.getLogger(__name__)


def create_app(
    service: StorageOptimizationService | None = None,
    settings: SchedulerSettings | None = None,
    start_trigger: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Service to expose; built from ``settings`` when omitted.
        settings: Settings for a newly built service.
        start_trigger: Run the periodic re-optimization loop while serving.
    """
    service = service or StorageOptimizationService(settings=settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(service.settings.log_level)
        logger.info("Starting storage dispatch API")
        if start_trigger:
            service.trigger.start()
        yield
        await service.trigger.stop()
        logger.info("Storage dispatch API stopped")

    app = FastAPI(
        title="Storage Dispatch Scheduler",
        description="""
Multi-strategy dispatch scheduler for behind-the-meter energy storage.

## Key Endpoints

- `GET /api/v1/strategies`: Registered dispatch strategies
- `POST /api/v1/sites/{site_id}/strategies`: Enable a strategy at a site
- `POST /api/v1/sites/{site_id}/optimizations`: Optimize a site now
- `GET /api/v1/sites/{site_id}/performance`: Accumulated savings and cycles
        """,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service
    app.include_router(router)

    @app.get("/", response_class=JSONResponse)
    async def root() -> dict:
        """Root endpoint with API information."""
        return {
            "name": "Storage Dispatch Scheduler",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            version=__version__,
            timestamp=datetime.now(),
            trigger_running=service.trigger.running,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storage_dispatch.api.main:app",
        host="0.0.0.0",
        port=8000,
    )
