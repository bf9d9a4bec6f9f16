"""FastAPI application factory and bootstrap helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes import include_api_routes
from src.config import settings
from src.services.clients.catalog_client import close_catalog_client
from src.services.clients.promotional_client import close_promotional_client
from src.services.inventory.restoration import close_inventory_writer
from src.services.search.orchestrator import close_search_orchestrator
from src.services.storage.redis_client import close_redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events."""
    logger.info(
        "Starting search service",
        extra={
            "environment": settings.ENVIRONMENT,
            "cache_backend": settings.SEARCH_CACHE_BACKEND,
        },
    )

    yield

    try:
        await close_catalog_client()
        await close_promotional_client()
        await close_inventory_writer()
        await close_search_orchestrator()
        if settings.redis_cache_enabled:
            await close_redis_client()
    except Exception:  # pylint: disable=broad-exception-caught
        logger.exception("Failed closing upstream clients on shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Artisan Marketplace Search",
        description="Availability-aware product search with sponsored placements",
        version="1.0.0",
        lifespan=lifespan,
    )

    _configure_cors(app)
    include_api_routes(app)

    return app


def _configure_cors(app: FastAPI) -> None:
    """Allow broad access in non-production environments."""

    if settings.is_production:
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
