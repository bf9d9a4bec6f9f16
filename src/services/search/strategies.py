"""Ordered retrieval strategies and the chain runner that walks them."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.errors import SearchCancelledError
from src.models.search import SearchQuery, UserLocation
from src.services.clients.catalog_client import CatalogClient
from src.services.clients.promotional_client import PromotionalClient
from src.services.search.cancellation import CancellationToken
from src.services.search.scoring import tokenize_query

logger = logging.getLogger(__name__)

Fetch = Callable[[], Awaitable[list[dict[str, Any]]]]
Refine = Callable[[list[dict[str, Any]]], list[Any]]


@dataclass
class RetrievalStrategy:
    """One way of producing candidate records for a query."""

    name: str
    fetch: Fetch


@dataclass
class StrategyOutcome:
    """Result of walking a strategy chain."""

    strategy: str
    products: list[Any] = field(default_factory=list)
    error: Exception | None = None
    attempted: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None


async def run_chain(
    strategies: Sequence[RetrievalStrategy],
    token: CancellationToken | None = None,
    refine: Refine | None = None,
) -> StrategyOutcome:
    """Try each strategy in order until one yields products.

    ``refine`` maps a strategy's raw records to the candidates the caller can
    actually use; emptiness is judged on its output. A failing strategy falls
    through to the next one. An empty result also falls through, except from
    the final strategy, whose empty answer is accepted as the outcome.
    """

    token = token or CancellationToken()
    attempted: list[str] = []
    last_error: Exception | None = None

    for position, strategy in enumerate(strategies):
        token.raise_if_cancelled()
        attempted.append(strategy.name)
        try:
            records = await token.run(strategy.fetch())
        except SearchCancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            last_error = exc
            logger.warning(
                "Retrieval strategy failed, falling back",
                extra={"strategy": strategy.name, "error": str(exc)},
            )
            continue

        products = refine(records) if refine is not None else list(records)
        is_last = position == len(strategies) - 1
        if products or is_last:
            logger.debug("Strategy %s returned %d products", strategy.name, len(products))
            return StrategyOutcome(strategy.name, products, attempted=attempted)
        logger.info("Strategy %s returned nothing, falling back", strategy.name)

    return StrategyOutcome(
        "none",
        error=last_error or RuntimeError("no retrieval strategy available"),
        attempted=attempted,
    )


def matches_any_token(record: dict[str, Any], tokens: Sequence[str]) -> bool:
    """True when a token appears in the record's name, description, category or tags."""

    if not tokens:
        return True
    tags = record.get("tags") or []
    haystack = " ".join(
        str(part)
        for part in (
            record.get("name") or "",
            record.get("description") or "",
            record.get("category") or "",
            *(tags if isinstance(tags, list) else []),
        )
    ).lower()
    return any(token in haystack for token in tokens)


def catalog_filters(query: SearchQuery) -> dict[str, Any]:
    filters: dict[str, Any] = {
        "category": query.category,
        "subcategory": query.subcategory,
        "minPrice": query.filters.min_price,
        "maxPrice": query.filters.max_price,
    }
    if query.filters.categories:
        filters["categories"] = ",".join(query.filters.categories)
    return {key: value for key, value in filters.items() if value is not None}


def build_strategy_chain(
    query: SearchQuery,
    catalog: CatalogClient,
    promotional: PromotionalClient,
    location: UserLocation | None,
    showcase_limit: int,
) -> list[RetrievalStrategy]:
    """Pick the fallback chain that fits the shape of ``query``."""

    text = query.query
    tokens = tokenize_query(text)

    async def subcategory() -> list[dict[str, Any]]:
        return await catalog.by_subcategory(query.category, query.subcategory)

    async def category() -> list[dict[str, Any]]:
        return await catalog.by_category(query.category)

    async def catalog_search() -> list[dict[str, Any]]:
        return await catalog.search(text, catalog_filters(query))

    async def showcase() -> list[dict[str, Any]]:
        return await promotional.get_showcase_products(showcase_limit, location)

    async def showcase_filtered() -> list[dict[str, Any]]:
        products = await promotional.get_showcase_products(showcase_limit, location)
        return [record for record in products if matches_any_token(record, tokens)]

    if query.category and query.subcategory:
        return [
            RetrievalStrategy("subcategory", subcategory),
            RetrievalStrategy("category", category),
            RetrievalStrategy("catalog_search", catalog_search),
        ]
    if text:
        return [
            RetrievalStrategy("showcase_filtered", showcase_filtered),
            RetrievalStrategy("catalog_search", catalog_search),
        ]
    if query.category:
        return [
            RetrievalStrategy("category", category),
            RetrievalStrategy("catalog_search", catalog_search),
        ]
    return [
        RetrievalStrategy("catalog_browse", catalog_search),
        RetrievalStrategy("showcase", showcase),
    ]
