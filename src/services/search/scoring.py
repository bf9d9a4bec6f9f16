"""Additive relevance scoring for marketplace search results.

The score for one product is the sum of independent sub-scores (text match,
proximity, engagement, seller quality, recency, featured placement), so a weak
signal in one dimension never cancels a strong one in another. All inputs,
including the reference time, are explicit, which makes a ranking fully
re-derivable from the candidate list.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import UTC, datetime

from src.models.product import BaseProduct, ensure_utc
from src.models.search import RankedResult, UserLocation
from src.services.search.geo import format_distance, haversine_km, proximity_bonus

QUALITY_KEYWORDS = ("organic", "fresh", "artisan", "homemade")
BADGE_BONUSES = {"trending": 100.0, "bestseller": 150.0, "new": 80.0}

_WORD_SPLIT = re.compile(r"[^\w']+")


def tokenize_query(query: str | None) -> list[str]:
    return (query or "").lower().strip().split()


def _days_since(created_at: datetime | None, now: datetime) -> float | None:
    if created_at is None:
        return None
    return max(0.0, (now - created_at).total_seconds() / 86400)


class RelevanceScorer:
    """Computes relevance scores against a fixed query and reference time."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = ensure_utc(now) or datetime.now(UTC)

    def text_match_score(self, product: BaseProduct, tokens: Sequence[str]) -> float:
        name = product.name.lower()
        name_words = {word for word in _WORD_SPLIT.split(name) if word}
        tags = [tag.lower() for tag in product.tags]
        category = (product.category or "").lower()
        full_query = " ".join(tokens)

        score = 0.0
        if full_query and name == full_query:
            score += 1000
        for token in tokens:
            if name == token or token in name_words:
                score += 800
            if name.startswith(token):
                score += 400
            if token in name:
                score += 200
        for token in tokens:
            if token in tags:
                score += 300
            if any(token in tag for tag in tags):
                score += 150
        if full_query and category == full_query:
            score += 500
        return score

    def distance_km(
        self,
        product: BaseProduct,
        user_location: UserLocation | None,
    ) -> float | None:
        if user_location is None:
            return None
        point = product.coordinates()
        if point is None:
            return None
        return haversine_km((user_location.lat, user_location.lng), point)

    def engagement_score(self, product: BaseProduct) -> float:
        score = min(product.total_sales * 10, 200)
        score += product.rating.average * 20
        score += min(product.rating.count * 2, 100)
        score += min(product.favorite_count * 5, 100)
        days = _days_since(product.created_at, self.now)
        if days is not None and days <= 30:
            score += max(50 - days, 0)
        return max(score, 0.0)

    def quality_score(self, product: BaseProduct) -> float:
        score = 0.0
        artisan = product.artisan_profile
        if artisan is not None:
            score += artisan.rating.average * 30
            score += artisan.delivery_stats.on_time_rate * 100
            score -= artisan.complaint_rate * 200
            if artisan.is_verified:
                score += 50
        if product.is_organic:
            score += 30
        name = product.name.lower()
        score += sum(20 for keyword in QUALITY_KEYWORDS if keyword in name)
        # Quality may pull a product down but never below zero.
        return max(score, 0.0)

    def recency_score(self, product: BaseProduct) -> float:
        days = _days_since(product.created_at, self.now)
        if days is None:
            return 0.0
        if days <= 7:
            return 50.0
        if days <= 30:
            return 30.0
        if days <= 90:
            return 15.0
        return 0.0

    def featured_score(self, product: BaseProduct) -> float:
        score = 0.0
        if product.is_featured:
            score += 200
        if product.is_seasonal:
            score += 100
        if product.is_curated:
            score += 150
        badges = {badge.lower() for badge in product.badges}
        score += sum(bonus for badge, bonus in BADGE_BONUSES.items() if badge in badges)
        return score

    def score(
        self,
        product: BaseProduct,
        tokens: Sequence[str],
        user_location: UserLocation | None = None,
    ) -> float:
        total = (
            self.text_match_score(product, tokens)
            + proximity_bonus(self.distance_km(product, user_location))
            + self.engagement_score(product)
            + self.quality_score(product)
            + self.recency_score(product)
            + self.featured_score(product)
        )
        return max(total, 0.0)

    def rank(
        self,
        products: Sequence[BaseProduct],
        query: str | None,
        user_location: UserLocation | None = None,
    ) -> list[RankedResult]:
        """Score products and sort them by descending relevance.

        Equal scores keep their retrieval order.
        """

        tokens = tokenize_query(query)
        results = []
        for product in products:
            distance = self.distance_km(product, user_location)
            results.append(
                RankedResult(
                    product=product,
                    relevance_score=self.score(product, tokens, user_location),
                    distance=distance,
                    formatted_distance=(
                        format_distance(distance) if distance is not None else None
                    ),
                )
            )
        return sorted(results, key=lambda result: -result.relevance_score)
