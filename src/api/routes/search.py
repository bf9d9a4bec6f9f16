"""Routes exposing ranked marketplace search."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query

from src.models.search import SearchFilters, SearchQuery, SearchResponse, UserLocation
from src.services.search.cancellation import CancellationToken
from src.services.search.orchestrator import SearchOrchestratorDependency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.get(
    "",
    response_model=SearchResponse,
    summary="Search the catalog with availability filtering and ranking",
)
async def search_products(
    orchestrator: SearchOrchestratorDependency,
    q: str = "",
    category: str | None = None,
    subcategory: str | None = None,
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    user_id: str | None = Query(None, alias="userId"),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    categories: list[str] | None = Query(None),
    include_unavailable: bool | None = Query(None, alias="includeUnavailable"),
) -> SearchResponse:
    user_location = None
    if lat is not None and lng is not None:
        user_location = UserLocation(lat=lat, lng=lng)

    query = SearchQuery(
        query=q,
        category=category,
        subcategory=subcategory,
        user_location=user_location,
        user_id=user_id,
        filters=SearchFilters(
            min_price=min_price,
            max_price=max_price,
            categories=categories or [],
        ),
        include_unavailable=include_unavailable,
    )
    return await orchestrator.search(query, CancellationToken())


@router.post(
    "/cache/clear",
    summary="Invalidate cached search responses",
)
async def clear_search_cache(
    orchestrator: SearchOrchestratorDependency,
    scope: str | None = None,
) -> dict[str, int | str]:
    cleared = await orchestrator.invalidate(scope)
    logger.info("Search cache cleared via API (scope=%s)", scope or "*")
    return {"status": "cleared", "cleared": cleared}
