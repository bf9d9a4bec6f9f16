"""Tests for retrieval strategy chains."""

from __future__ import annotations

import pytest

from src.models.search import SearchQuery
from src.services.search.strategies import (
    RetrievalStrategy,
    build_strategy_chain,
    matches_any_token,
    run_chain,
)


def _fixed(result):
    async def fetch():
        if isinstance(result, Exception):
            raise result
        return result

    return fetch


@pytest.mark.asyncio
async def test_chain_skips_failures_and_empty_results():
    outcome = await run_chain(
        [
            RetrievalStrategy("broken", _fixed(RuntimeError("down"))),
            RetrievalStrategy("empty", _fixed([])),
            RetrievalStrategy("good", _fixed([{"_id": "p1"}])),
        ]
    )

    assert outcome.succeeded
    assert outcome.strategy == "good"
    assert outcome.products == [{"_id": "p1"}]
    assert outcome.attempted == ["broken", "empty", "good"]


@pytest.mark.asyncio
async def test_empty_answer_from_last_strategy_is_accepted():
    outcome = await run_chain(
        [
            RetrievalStrategy("first", _fixed([])),
            RetrievalStrategy("last", _fixed([])),
        ]
    )

    assert outcome.succeeded
    assert outcome.strategy == "last"
    assert outcome.products == []


@pytest.mark.asyncio
async def test_refined_empty_result_falls_through():
    outcome = await run_chain(
        [
            RetrievalStrategy("showcase", _fixed([{"_id": "s1", "price": 50}])),
            RetrievalStrategy("catalog", _fixed([{"_id": "p1", "price": 5}])),
        ],
        refine=lambda records: [r["_id"] for r in records if r["price"] <= 10],
    )

    assert outcome.strategy == "catalog"
    assert outcome.products == ["p1"]
    assert outcome.attempted == ["showcase", "catalog"]


@pytest.mark.asyncio
async def test_chain_reports_failure_when_every_strategy_fails():
    error = RuntimeError("still down")

    outcome = await run_chain(
        [
            RetrievalStrategy("a", _fixed(RuntimeError("down"))),
            RetrievalStrategy("b", _fixed(error)),
        ]
    )

    assert not outcome.succeeded
    assert outcome.strategy == "none"
    assert outcome.error is error


@pytest.mark.parametrize(
    ("query", "names"),
    [
        (
            SearchQuery(category="food_beverages", subcategory="baked_goods"),
            ["subcategory", "category", "catalog_search"],
        ),
        (SearchQuery(query="honey", category="food_beverages"), ["showcase_filtered", "catalog_search"]),
        (SearchQuery(category="food_beverages"), ["category", "catalog_search"]),
        (SearchQuery(), ["catalog_browse", "showcase"]),
    ],
)
def test_chain_shape_follows_query(catalog, promotional, query, names):
    chain = build_strategy_chain(query, catalog, promotional, None, 6)

    assert [strategy.name for strategy in chain] == names


def test_matches_any_token_checks_every_text_field():
    record = {"name": "Oak Board", "tags": ["Kitchen"], "category": "home_garden"}

    assert matches_any_token(record, ["kitchen"])
    assert matches_any_token(record, ["garden"])
    assert not matches_any_token(record, ["honey"])
    assert matches_any_token(record, [])
