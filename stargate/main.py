"""
FastAPI application entrypoint for the star gate.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from stargate.api.routes import router as api_router
from stargate.core.config import get_settings
from stargate.core.logging import configure_logging
from stargate.dependencies import get_star_gate_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    removed = await get_star_gate_service().initialize()
    logger.info("Star gate ready (%s expired verifications removed)", removed)
    yield


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="GitHub Star Gate",
        version="0.1.0",
        description="Gate sessions on a starred GitHub repository.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
