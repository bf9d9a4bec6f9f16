"""Pytest configuration and fixtures for the search service."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient

from src.models.inventory import RestorationDirective
from src.models.search import UserLocation
from src.services.clients.catalog_client import CatalogClient
from src.services.clients.geolocation_client import LocationProvider
from src.services.clients.promotional_client import PromotionalClient
from src.services.inventory.restoration import InventoryWriter, get_inventory_writer
from src.services.search.cache import MemoryCacheBackend, SearchCache
from src.services.search.location import LocationResolver
from src.services.search.orchestrator import SearchOrchestrator, get_search_orchestrator

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)

_VARIANT_DEFAULTS: dict[str, dict[str, Any]] = {
    "ready_to_ship": {"stock": 10},
    "made_to_order": {"totalCapacity": 10, "remainingCapacity": 5},
    "scheduled_order": {"availableQuantity": 10},
}


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


def build_product(
    product_id: str,
    name: str = "",
    product_type: str | None = "ready_to_ship",
    **fields: Any,
) -> dict[str, Any]:
    """Raw catalog record in the camelCase shape the catalog API returns."""
    record: dict[str, Any] = {"_id": product_id, "name": name or product_id, "price": 10.0}
    if product_type is not None:
        record["productType"] = product_type
        record.update(_VARIANT_DEFAULTS.get(product_type, {}))
    record.update(fields)
    return record


@pytest.fixture()
def make_product():
    return build_product


class StubCatalog(CatalogClient):
    """In-memory catalog that records every call."""

    def __init__(self) -> None:
        self.search_results: list[dict[str, Any]] = []
        self.category_results: list[dict[str, Any]] = []
        self.subcategory_results: list[dict[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.delay = 0.0

    async def _answer(self, name: str, results: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if name in self.failures:
            raise self.failures[name]
        return [dict(record) for record in results]

    async def search(self, query, filters=None):
        self.calls.append(("search", query, dict(filters or {})))
        return await self._answer("search", self.search_results)

    async def by_category(self, category):
        self.calls.append(("by_category", category))
        return await self._answer("by_category", self.category_results)

    async def by_subcategory(self, category, subcategory):
        self.calls.append(("by_subcategory", category, subcategory))
        return await self._answer("by_subcategory", self.subcategory_results)


class StubPromotional(PromotionalClient):
    """In-memory promotional service that records every call."""

    def __init__(self) -> None:
        self.showcase_results: list[dict[str, Any]] = []
        self.spotlight_results: list[dict[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[Any, ...]] = []

    async def get_showcase_products(self, limit, location=None):
        self.calls.append(("showcase", limit))
        if "showcase" in self.failures:
            raise self.failures["showcase"]
        return [dict(record) for record in self.showcase_results]

    async def get_spotlight_products(self, category, limit, query=None, location=None):
        self.calls.append(("spotlight", category, limit, query))
        if "spotlight" in self.failures:
            raise self.failures["spotlight"]
        return [dict(record) for record in self.spotlight_results]


class StubLocationProvider(LocationProvider):
    def __init__(
        self,
        location: UserLocation | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.location = location
        self.error = error
        self.delay = delay
        self.calls: list[str | None] = []
        self.closed = False

    async def get_user_coordinates(self, user_id=None):
        self.calls.append(user_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.location

    async def aclose(self):
        self.closed = True


class RecordingWriter(InventoryWriter):
    def __init__(self, failing_ids: set[str] | None = None) -> None:
        self.applied: list[RestorationDirective] = []
        self.failing_ids = failing_ids or set()

    async def apply(self, directive):
        if directive.product_id in self.failing_ids:
            raise RuntimeError(f"write rejected for {directive.product_id}")
        self.applied.append(directive)


@pytest.fixture()
def catalog():
    return StubCatalog()


@pytest.fixture()
def promotional():
    return StubPromotional()


@pytest.fixture()
def search_cache():
    return SearchCache(ttl_seconds=300, backend=MemoryCacheBackend(max_entries=500))


@pytest.fixture()
def orchestrator(catalog, promotional, search_cache):
    return SearchOrchestrator(
        catalog=catalog,
        promotional=promotional,
        location_resolver=LocationResolver(),
        cache=search_cache,
        include_unavailable=False,
        sponsored_limit=5,
        sponsored_boost=200.0,
        showcase_limit=6,
        clock=lambda: NOW,
    )


@pytest.fixture()
def inventory_writer():
    return RecordingWriter()


@pytest_asyncio.fixture()
async def redis_client():
    """Provide a fake Redis client for each test."""
    client = fakeredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()


@pytest_asyncio.fixture()
async def client(orchestrator, inventory_writer):
    """Return an HTTPX async client pointing at the FastAPI app."""
    from src.main import app

    app.dependency_overrides[get_search_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_inventory_writer] = lambda: inventory_writer
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_search_orchestrator, None)
        app.dependency_overrides.pop(get_inventory_writer, None)
