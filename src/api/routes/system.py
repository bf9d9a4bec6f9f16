"""System-level routes such as health checks."""

from __future__ import annotations

import httpx
from fastapi import APIRouter

from src.config import settings

router = APIRouter(tags=["system"])


@router.get("/")
async def read_root() -> dict[str, str]:
    """Service banner used by smoke tests."""

    return {"message": "Artisan Marketplace Search"}


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint with catalog API connectivity check."""

    catalog_url = settings.CATALOG_API_URL.rstrip("/")

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{catalog_url}/health", timeout=5.0)
            catalog_status = (
                "connected" if response.status_code == 200 else "disconnected"
            )
    except httpx.HTTPError:
        catalog_status = "disconnected"

    return {
        "status": "healthy",
        "catalog": catalog_status,
        "cache": settings.SEARCH_CACHE_BACKEND,
        "environment": settings.ENVIRONMENT,
    }
