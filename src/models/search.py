"""Models for search queries and ranked responses."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from src.models.inventory import OutOfStockStatus
from src.models.product import CamelModel, Product

LocationSource = Literal["request", "profile", "device", "default"]


class UserLocation(CamelModel):
    """Requester coordinates in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class SearchFilters(CamelModel):
    min_price: float | None = Field(None, ge=0)
    max_price: float | None = Field(None, ge=0)
    categories: list[str] = Field(default_factory=list)


class SearchQuery(CamelModel):
    """Ephemeral description of one search request."""

    query: str = ""
    category: str | None = None
    subcategory: str | None = None
    user_location: UserLocation | None = None
    user_id: str | None = Field(
        None,
        description="Requester identifier used to look up stored coordinates",
    )
    filters: SearchFilters = Field(default_factory=SearchFilters)
    include_unavailable: bool | None = Field(
        None,
        description="Overrides the configured out-of-stock policy when set",
    )


class SponsoredBadge(CamelModel):
    type: str = "sponsored_product"
    label: str = "Sponsored"
    description: str = "Enhanced search visibility"


class RankedResult(CamelModel):
    """A product paired with the signals derived while ranking it."""

    product: Product
    relevance_score: float = Field(0.0, ge=0)
    distance: float | None = None
    formatted_distance: str | None = None
    is_sponsored: bool = False
    sponsored_badge: SponsoredBadge | None = None
    enhanced_score: float | None = None
    availability: OutOfStockStatus | None = None

    @property
    def effective_score(self) -> float:
        if self.enhanced_score is not None:
            return self.enhanced_score
        return self.relevance_score


class SearchResponse(CamelModel):
    """Final ordered result set returned to callers."""

    products: list[RankedResult] = Field(default_factory=list)
    count: int = 0
    sponsored_count: int = 0
    strategy: str = "none"
    location_source: LocationSource = "default"
    no_results: bool = False
    cached: bool = False
