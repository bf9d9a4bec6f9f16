"""Tests for the /inventory HTTP API."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW


@pytest.mark.asyncio
async def test_status_for_out_of_stock_product(client, make_product):
    response = await client.post("/inventory/status", json=make_product("p1", "Mug", stock=0))

    assert response.status_code == 200
    body = response.json()
    assert body["outOfStock"] == {
        "isOutOfStock": True,
        "message": "Out of Stock",
        "reason": "No items available",
    }
    assert body["summary"]["productId"] == "p1"
    assert body["summary"]["status"]["status"] == "low"
    assert body["summary"]["displayData"]["lowMessage"] == "Low Stock!"


@pytest.mark.asyncio
async def test_status_rejects_malformed_product(client):
    response = await client.post("/inventory/status", json={"name": "no id"})

    assert response.status_code == 400
    assert "Invalid product record" in response.json()["detail"]


@pytest.mark.asyncio
async def test_restoration_check_lists_directives(client, make_product):
    payload = {
        "products": [
            make_product(
                "p1",
                "Quilt",
                "made_to_order",
                totalCapacity=10,
                remainingCapacity=2,
                capacityPeriod="weekly",
                lastCapacityRestore=(NOW - timedelta(days=8)).isoformat(),
            ),
            make_product("p2", "Mug"),
        ],
        "now": NOW.isoformat(),
    }

    response = await client.post("/inventory/restoration/check", json=payload)

    assert response.status_code == 200
    (directive,) = response.json()
    assert directive["type"] == "capacity_restoration"
    assert directive["productId"] == "p1"
    assert directive["updates"]["remainingCapacity"] == 10


@pytest.mark.asyncio
async def test_restoration_run_applies_and_invalidates(client, catalog, inventory_writer, make_product):
    catalog.search_results = [make_product("p9", "Mug")]
    await client.get("/search", params={"q": "mug"})
    payload = {
        "products": [
            make_product(
                "p1",
                "Bread",
                "made_to_order",
                capacityPeriod="daily",
                lastCapacityRestore=(NOW - timedelta(days=1)).isoformat(),
            )
        ],
        "now": NOW.isoformat(),
    }

    response = await client.post("/inventory/restoration/run", json=payload)
    again = await client.get("/search", params={"q": "mug"})

    assert response.json()["restored"] == 1
    assert response.json()["checked"] == 1
    assert [d.product_id for d in inventory_writer.applied] == ["p1"]
    assert again.json()["cached"] is False


@pytest.mark.asyncio
async def test_validate_returns_errors_without_failing(client, make_product):
    response = await client.post(
        "/inventory/validate",
        json={
            "product": make_product("p1", "Quilt", "made_to_order", totalCapacity=10),
            "field": "remainingCapacity",
            "value": 11.5,
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        "isValid": False,
        "errors": [
            "Remaining capacity must be a whole number",
            "Remaining capacity cannot exceed total capacity",
        ],
    }


@pytest.mark.asyncio
async def test_capacity_recalculation(client, make_product):
    product = make_product("p1", "Quilt", "made_to_order", totalCapacity=10, remainingCapacity=3)

    resized = await client.post(
        "/inventory/capacity",
        json={"product": product, "newTotalCapacity": 5},
    )
    wrong_type = await client.post(
        "/inventory/capacity",
        json={"product": make_product("p2", "Mug")},
    )

    assert resized.json() == {
        "breakdown": {"totalCapacity": 5, "remainingCapacity": 0, "used": 7, "available": 0},
        "utilization": 70,
    }
    assert wrong_type.status_code == 400
