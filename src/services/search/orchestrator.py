"""Search orchestration: location, retrieval, availability, ranking, caching."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Depends
from pydantic import ValidationError

from src.config import settings
from src.errors import SearchCancelledError
from src.models.inventory import OutOfStockStatus
from src.models.product import BaseProduct, parse_product
from src.models.search import (
    LocationSource,
    RankedResult,
    SearchQuery,
    SearchResponse,
    UserLocation,
)
from src.services.clients.catalog_client import CatalogClient, get_catalog_client
from src.services.clients.geolocation_client import (
    create_device_provider,
    create_profile_provider,
)
from src.services.clients.promotional_client import (
    PromotionalClient,
    get_promotional_client,
)
from src.services.inventory.availability import AvailabilityEngine
from src.services.search.cache import SearchCache, create_search_cache
from src.services.search.cancellation import CancellationToken
from src.services.search.categories import (
    normalize_category_key,
    normalize_search_query,
    normalize_subcategory_key,
)
from src.services.search.location import LocationResolver
from src.services.search.scoring import RelevanceScorer
from src.services.search.sponsored import blend_sponsored
from src.services.search.strategies import build_strategy_chain, run_chain

logger = logging.getLogger(__name__)

SEARCH_ENDPOINT = "search"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_candidates(records: Iterable[dict[str, Any]]) -> list[BaseProduct]:
    """Validate raw records, dropping malformed ones and duplicate ids."""

    products: list[BaseProduct] = []
    seen: set[str] = set()
    for record in records:
        try:
            product = parse_product(record)
        except ValidationError as exc:
            logger.debug(
                "Dropping malformed candidate record",
                extra={"record_id": record.get("_id"), "errors": exc.error_count()},
            )
            continue
        if product.id in seen:
            continue
        seen.add(product.id)
        products.append(product)
    return products


def matches_filters(product: BaseProduct, query: SearchQuery) -> bool:
    filters = query.filters
    if filters.min_price is not None and product.price < filters.min_price:
        return False
    if filters.max_price is not None and product.price > filters.max_price:
        return False
    category = normalize_category_key(product.category)
    if filters.categories and category not in filters.categories:
        return False
    if query.category and category != query.category:
        return False
    if query.subcategory and (
        normalize_subcategory_key(category, product.subcategory) != query.subcategory
    ):
        return False
    return True


class SearchOrchestrator:
    """Runs one search through every stage and memoizes the response.

    The orchestrator owns its ``SearchCache``; callers that change catalog
    data must invalidate it through :meth:`invalidate`.
    """

    def __init__(
        self,
        *,
        catalog: CatalogClient,
        promotional: PromotionalClient,
        location_resolver: LocationResolver | None = None,
        cache: SearchCache | None = None,
        include_unavailable: bool | None = None,
        sponsored_limit: int | None = None,
        sponsored_boost: float | None = None,
        showcase_limit: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.catalog = catalog
        self.promotional = promotional
        self.location_resolver = location_resolver or LocationResolver()
        self.cache = cache or SearchCache()
        self.include_unavailable = (
            settings.INCLUDE_UNAVAILABLE if include_unavailable is None else include_unavailable
        )
        self.sponsored_limit = (
            settings.SPONSORED_LIMIT if sponsored_limit is None else sponsored_limit
        )
        self.sponsored_boost = (
            settings.SPONSORED_BOOST if sponsored_boost is None else sponsored_boost
        )
        self.showcase_limit = settings.SHOWCASE_LIMIT if showcase_limit is None else showcase_limit
        self._clock = clock

    async def search(
        self,
        query: SearchQuery,
        token: CancellationToken | None = None,
    ) -> SearchResponse:
        token = token or CancellationToken()
        query = normalize_search_query(query)
        key = self.cache.make_key(
            SEARCH_ENDPOINT,
            query.model_dump(mode="json", exclude_none=True),
        )
        payload, from_cache = await token.run(
            self.cache.get_or_fetch(
                key,
                lambda: self._execute(query, token),
                should_cache=lambda value: value.get("strategy") != "none",
            )
        )
        response = SearchResponse.model_validate(payload)
        if from_cache:
            response = response.model_copy(update={"cached": True})
        return response

    async def invalidate(self, scope: str | None = None) -> int:
        """Drop cached searches after catalog data changes."""

        return await self.cache.clear(scope)

    async def _execute(self, query: SearchQuery, token: CancellationToken) -> dict[str, Any]:
        location, location_source = await self.location_resolver.resolve(query, token)
        token.raise_if_cancelled()

        include_unavailable = (
            self.include_unavailable
            if query.include_unavailable is None
            else query.include_unavailable
        )

        def usable(records: list[dict[str, Any]]) -> list[BaseProduct]:
            return [
                product
                for product in parse_candidates(records)
                if matches_filters(product, query)
                and (include_unavailable or not AvailabilityEngine(product).is_out_of_stock())
            ]

        chain = build_strategy_chain(
            query,
            self.catalog,
            self.promotional,
            location,
            self.showcase_limit,
        )
        outcome = await run_chain(chain, token, refine=usable)
        if not outcome.succeeded:
            logger.warning(
                "Every retrieval strategy failed",
                extra={"attempted": outcome.attempted, "query": query.query},
            )
            return self._response([], "none", location_source).model_dump(
                mode="json", by_alias=True
            )

        token.raise_if_cancelled()

        scorer = RelevanceScorer(self._clock())
        organic = self._rank(scorer, outcome.products, query, location, include_unavailable)

        sponsored = await self._sponsored(scorer, query, location, include_unavailable, token)
        token.raise_if_cancelled()

        results = blend_sponsored(organic, sponsored, self.sponsored_boost)
        logger.info(
            "Search completed",
            extra={
                "strategy": outcome.strategy,
                "results": len(results),
                "sponsored": len(sponsored),
            },
        )
        return self._response(results, outcome.strategy, location_source).model_dump(
            mode="json", by_alias=True
        )

    def _rank(
        self,
        scorer: RelevanceScorer,
        products: list[BaseProduct],
        query: SearchQuery,
        location: UserLocation,
        include_unavailable: bool,
    ) -> list[RankedResult]:
        statuses: dict[str, OutOfStockStatus] = {}
        kept: list[BaseProduct] = []
        for product in products:
            status = AvailabilityEngine(product).get_out_of_stock_status()
            if status.is_out_of_stock and not include_unavailable:
                continue
            statuses[product.id] = status
            kept.append(product)

        dropped = len(products) - len(kept)
        if dropped:
            logger.debug("Filtered %d unavailable products", dropped)

        return [
            result.model_copy(update={"availability": statuses[result.product.id]})
            for result in scorer.rank(kept, query.query, location)
        ]

    async def _sponsored(
        self,
        scorer: RelevanceScorer,
        query: SearchQuery,
        location: UserLocation,
        include_unavailable: bool,
        token: CancellationToken,
    ) -> list[RankedResult]:
        if self.sponsored_limit <= 0:
            return []
        try:
            records = await token.run(
                self.promotional.get_spotlight_products(
                    query.category,
                    self.sponsored_limit,
                    query.query or None,
                    location,
                )
            )
        except SearchCancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Sponsored retrieval failed: %s", exc)
            return []

        products = [
            product for product in parse_candidates(records) if matches_filters(product, query)
        ][: self.sponsored_limit]
        return self._rank(scorer, products, query, location, include_unavailable)

    @staticmethod
    def _response(
        results: list[RankedResult],
        strategy: str,
        location_source: LocationSource,
    ) -> SearchResponse:
        return SearchResponse(
            products=results,
            count=len(results),
            sponsored_count=sum(1 for result in results if result.is_sponsored),
            strategy=strategy,
            location_source=location_source,
            no_results=not results,
        )


def create_search_orchestrator(
    catalog: CatalogClient | None = None,
    promotional: PromotionalClient | None = None,
    cache: SearchCache | None = None,
) -> SearchOrchestrator:
    """Factory wiring the orchestrator to the configured collaborators."""

    return SearchOrchestrator(
        catalog=catalog or get_catalog_client(),
        promotional=promotional or get_promotional_client(),
        location_resolver=LocationResolver(
            profile=create_profile_provider(),
            device=create_device_provider(),
        ),
        cache=cache or create_search_cache(),
    )


_search_orchestrator: SearchOrchestrator | None = None


def get_search_orchestrator() -> SearchOrchestrator:
    global _search_orchestrator
    if _search_orchestrator is None:
        _search_orchestrator = create_search_orchestrator()
    return _search_orchestrator


SearchOrchestratorDependency = Annotated[SearchOrchestrator, Depends(get_search_orchestrator)]


async def close_search_orchestrator() -> None:
    """Close the location providers owned by the shared orchestrator."""

    global _search_orchestrator
    if _search_orchestrator is not None:
        await _search_orchestrator.location_resolver.aclose()
        _search_orchestrator = None
