"""Promotional service client for showcase and sponsored placements."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from src.config import settings
from src.errors import UpstreamUnavailableError
from src.models.search import UserLocation
from src.services.clients.catalog_client import extract_products

logger = logging.getLogger(__name__)


class PromotionalClient(ABC):
    """Source of paid and curated product placements."""

    @abstractmethod
    async def get_showcase_products(
        self,
        limit: int,
        location: UserLocation | None = None,
    ) -> list[dict[str, Any]]:
        """Return premium showcase products."""

    @abstractmethod
    async def get_spotlight_products(
        self,
        category: str | None,
        limit: int,
        query: str | None = None,
        location: UserLocation | None = None,
    ) -> list[dict[str, Any]]:
        """Return sponsored products relevant to a search."""


def _location_params(location: UserLocation | None) -> dict[str, Any]:
    if location is None:
        return {}
    return {"userLat": location.lat, "userLng": location.lng}


class HttpPromotionalClient(PromotionalClient):
    """Promotional client backed by the marketplace promotional REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Promotional API base URL is required")
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def get_showcase_products(
        self,
        limit: int,
        location: UserLocation | None = None,
    ) -> list[dict[str, Any]]:
        params = {"limit": limit, **_location_params(location)}
        return await self._get("/promotional/products/featured", params)

    async def get_spotlight_products(
        self,
        category: str | None,
        limit: int,
        query: str | None = None,
        location: UserLocation | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit, **_location_params(location)}
        if category:
            params["category"] = category
        if query:
            params["search"] = query
        return await self._get("/promotional/products/sponsored", params)

    async def _get(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"Promotional API {path} failed: {exc}") from exc
        products = extract_products(response.json())
        logger.debug("Promotional %s returned %d products", path, len(products))
        return products

    async def aclose(self) -> None:
        await self._client.aclose()


_promotional_client: PromotionalClient | None = None


def get_promotional_client() -> PromotionalClient:
    global _promotional_client
    if _promotional_client is None:
        _promotional_client = HttpPromotionalClient(
            base_url=settings.PROMOTIONAL_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    return _promotional_client


async def close_promotional_client() -> None:
    global _promotional_client
    if isinstance(_promotional_client, HttpPromotionalClient):
        await _promotional_client.aclose()
    _promotional_client = None
