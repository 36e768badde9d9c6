"""
LeadPulse HTTP API

Usage:
    uvicorn api:get_app --factory

    # or with a prebuilt container (tests, scripts)
    app = create_app(build_container(execute=stub, mapping_source=source))
"""

import logging
from typing import Optional

from fastapi import FastAPI

from leadpulse import __version__
from leadpulse.container import Container, build_container
from leadpulse.utils.logging import setup_logging

from .analytics import router as analytics_router
from .cache import router as cache_router

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Build the FastAPI app around a container (built from settings if omitted)."""
    app = FastAPI(
        title="LeadPulse Analytics",
        description="Cached lead-count analytics across product tables",
        version=__version__,
    )

    app.state.container = container or build_container()

    app.include_router(analytics_router)
    app.include_router(cache_router)

    @app.on_event("startup")
    async def startup_event():
        """Start cache sweeps and background warming."""
        app.state.container.start(warm=True)
        logger.info("Cache background tasks started")

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.container.shutdown()
        logger.info("Container shut down")

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


def get_app() -> FastAPI:
    """Application factory for uvicorn --factory."""
    setup_logging()
    return create_app()
