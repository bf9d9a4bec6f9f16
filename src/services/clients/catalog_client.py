"""Catalog Query API client abstractions and implementations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import httpx

from src.config import settings
from src.utils.retry import async_retry

logger = logging.getLogger(__name__)


def extract_products(payload: Any) -> list[dict[str, Any]]:
    """Accept either a bare list or a ``{"products": [...]}`` envelope."""

    if isinstance(payload, dict):
        payload = payload.get("products", payload.get("data", []))
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


class CatalogClient(ABC):
    """Read-only access to candidate product records."""

    @abstractmethod
    async def search(
        self,
        query: str,
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Full-text search; an empty query browses the whole catalog."""

    @abstractmethod
    async def by_category(self, category: str) -> list[dict[str, Any]]:
        """Return products listed under ``category``."""

    @abstractmethod
    async def by_subcategory(
        self,
        category: str,
        subcategory: str,
    ) -> list[dict[str, Any]]:
        """Return products listed under ``category``/``subcategory``."""


class HttpCatalogClient(CatalogClient):
    """Catalog client backed by the marketplace products REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Catalog API base URL is required")
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def search(
        self,
        query: str,
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        params = {
            key: value
            for key, value in (filters or {}).items()
            if value is not None and value != ""
        }
        if query:
            params["search"] = query
        return await self._get("/products", params)

    async def by_category(self, category: str) -> list[dict[str, Any]]:
        return await self._get(f"/products/category/{category}")

    async def by_subcategory(
        self,
        category: str,
        subcategory: str,
    ) -> list[dict[str, Any]]:
        return await self._get(
            f"/products/category/{category}/subcategory/{subcategory}",
        )

    @async_retry(
        max_retries=lambda: settings.CATALOG_MAX_RETRIES,
        base_delay=lambda: settings.CATALOG_RETRY_BASE_DELAY,
        exceptions=(httpx.HTTPError,),
    )
    async def _get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        products = extract_products(response.json())
        logger.debug("Catalog %s returned %d products", path, len(products))
        return products

    async def aclose(self) -> None:
        await self._client.aclose()


_catalog_client: CatalogClient | None = None


def get_catalog_client() -> CatalogClient:
    """Return the process-wide catalog client."""

    global _catalog_client
    if _catalog_client is None:
        _catalog_client = HttpCatalogClient(
            base_url=settings.CATALOG_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    return _catalog_client


async def close_catalog_client() -> None:
    global _catalog_client
    if isinstance(_catalog_client, HttpCatalogClient):
        await _catalog_client.aclose()
    _catalog_client = None
