"""Applies periodic inventory restoration through the catalog API."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import ValidationError

from src.config import settings
from src.errors import InventoryModelError, UpstreamUnavailableError
from src.models.inventory import RestorationDirective, RestorationReport
from src.models.product import BaseProduct, ensure_utc
from src.services.inventory.availability import AvailabilityEngine
from src.services.search.cache import SearchCache

logger = logging.getLogger(__name__)


class InventoryWriter(ABC):
    """Persistence collaborator that applies restoration directives."""

    @abstractmethod
    async def apply(self, directive: RestorationDirective) -> None:
        """Persist the updates carried by ``directive``."""


class HttpInventoryWriter(InventoryWriter):
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

    async def apply(self, directive: RestorationDirective) -> None:
        body = directive.model_dump(mode="json", by_alias=True)["updates"]
        try:
            response = await self._client.patch(
                f"/products/{directive.product_id}/inventory",
                json=body,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(
                f"Inventory update for {directive.product_id} failed: {exc}"
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()


class InventoryRestorationRunner:
    """Checks a batch of products and applies every due restoration."""

    def __init__(self, writer: InventoryWriter, cache: SearchCache | None = None) -> None:
        self.writer = writer
        self.cache = cache

    async def run(
        self,
        products: Iterable[BaseProduct | dict[str, Any]],
        now: datetime | None = None,
    ) -> RestorationReport:
        now = ensure_utc(now) or datetime.now(UTC)
        report = RestorationReport()

        for product in products:
            report.checked += 1
            try:
                directives = AvailabilityEngine(product).check_inventory_restoration(now)
            except (InventoryModelError, ValidationError) as exc:
                report.failed += 1
                logger.warning("Skipping unreadable product during restoration: %s", exc)
                continue
            for directive in directives:
                report.directives.append(directive)
                try:
                    await self.writer.apply(directive)
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    report.failed += 1
                    logger.error(
                        "Failed to restore inventory",
                        extra={
                            "product_id": directive.product_id,
                            "type": directive.type,
                            "error": str(exc),
                        },
                    )
                    continue
                report.restored += 1

        if report.restored and self.cache is not None:
            await self.cache.clear()

        logger.info(
            "Inventory restoration finished",
            extra={
                "checked": report.checked,
                "restored": report.restored,
                "failed": report.failed,
            },
        )
        return report


_inventory_writer: InventoryWriter | None = None


def get_inventory_writer() -> InventoryWriter:
    global _inventory_writer
    if _inventory_writer is None:
        _inventory_writer = HttpInventoryWriter(
            base_url=settings.CATALOG_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    return _inventory_writer


async def close_inventory_writer() -> None:
    global _inventory_writer
    if isinstance(_inventory_writer, HttpInventoryWriter):
        await _inventory_writer.aclose()
    _inventory_writer = None
