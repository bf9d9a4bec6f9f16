"""Merges paid placements into organic results under a bounded boost."""

from __future__ import annotations

import math
from collections.abc import Sequence

from src.config import settings
from src.models.search import RankedResult, SponsoredBadge


def mark_sponsored(result: RankedResult, boost: float) -> RankedResult:
    return result.model_copy(
        update={
            "is_sponsored": True,
            "sponsored_badge": SponsoredBadge(),
            "enhanced_score": result.relevance_score + boost,
        }
    )


def blend_sponsored(
    organic: Sequence[RankedResult],
    sponsored: Sequence[RankedResult],
    boost: float | None = None,
) -> list[RankedResult]:
    """Interleave sponsored results into an organic ranking.

    Ordering: boosted score descending; on equal scores sponsored first;
    equal-score sponsored items keep their order; equal-score organic items
    go nearest first, unknown distances last.
    """

    boost = settings.SPONSORED_BOOST if boost is None else boost
    seen: set[str] = set()
    marked: list[RankedResult] = []
    for result in sponsored:
        if result.product.id in seen:
            continue
        seen.add(result.product.id)
        marked.append(mark_sponsored(result, boost))

    merged = marked + [result for result in organic if result.product.id not in seen]

    def sort_key(item: tuple[int, RankedResult]) -> tuple[float, int, float, int]:
        index, result = item
        if result.is_sponsored:
            return (-result.effective_score, 0, 0.0, index)
        distance = result.distance if result.distance is not None else math.inf
        return (-result.effective_score, 1, distance, index)

    return [result for _, result in sorted(enumerate(merged), key=sort_key)]
