"""Tests for blending sponsored placements into organic results."""

from __future__ import annotations

from src.models.product import parse_product
from src.models.search import RankedResult
from src.services.search.sponsored import blend_sponsored


def _result(make_product, product_id, score, distance=None):
    return RankedResult(
        product=parse_product(make_product(product_id)),
        relevance_score=score,
        distance=distance,
    )


def test_sponsored_results_are_marked_and_boosted(make_product):
    blended = blend_sponsored([], [_result(make_product, "s1", 100)], boost=200)

    (result,) = blended
    assert result.is_sponsored is True
    assert result.enhanced_score == 300
    assert result.sponsored_badge.label == "Sponsored"
    assert result.sponsored_badge.type == "sponsored_product"
    assert result.sponsored_badge.description == "Enhanced search visibility"


def test_boost_is_a_bounded_advantage(make_product):
    organic = [_result(make_product, "o1", 1000), _result(make_product, "o2", 150)]
    sponsored = [_result(make_product, "s1", 100)]

    blended = blend_sponsored(organic, sponsored, boost=200)

    assert [r.product.id for r in blended] == ["o1", "s1", "o2"]


def test_sponsored_wins_exact_ties(make_product):
    organic = [_result(make_product, "o1", 300)]
    sponsored = [_result(make_product, "s1", 100)]

    blended = blend_sponsored(organic, sponsored, boost=200)

    assert [r.product.id for r in blended] == ["s1", "o1"]


def test_tied_sponsored_items_keep_their_order(make_product):
    sponsored = [
        _result(make_product, "s1", 50, distance=40),
        _result(make_product, "s2", 50, distance=1),
    ]

    blended = blend_sponsored([], sponsored, boost=200)

    assert [r.product.id for r in blended] == ["s1", "s2"]


def test_tied_organic_items_go_nearest_first(make_product):
    organic = [
        _result(make_product, "far", 80, distance=30),
        _result(make_product, "unknown", 80),
        _result(make_product, "near", 80, distance=2),
    ]

    blended = blend_sponsored(organic, [], boost=200)

    assert [r.product.id for r in blended] == ["near", "far", "unknown"]


def test_product_in_both_lists_is_shown_once_as_sponsored(make_product):
    organic = [_result(make_product, "p1", 500), _result(make_product, "p2", 100)]
    sponsored = [_result(make_product, "p1", 500)]

    blended = blend_sponsored(organic, sponsored, boost=200)

    assert [r.product.id for r in blended] == ["p1", "p2"]
    assert blended[0].is_sponsored is True
    assert blended[0].enhanced_score == 700


def test_organic_results_are_left_untouched(make_product):
    organic = [_result(make_product, "o1", 10)]

    (result,) = blend_sponsored(organic, [], boost=200)

    assert result.is_sponsored is False
    assert result.enhanced_score is None
    assert result.effective_score == 10
