"""Schemas describing product availability and restoration."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from src.models.product import CamelModel


class RestorationDirective(CamelModel):
    """A pending inventory reset proposed for a persistence collaborator."""

    type: Literal["capacity_restoration", "production_restoration"]
    product_id: str
    updates: dict[str, Any] = Field(
        default_factory=dict,
        description="Catalog field names mapped to their restored values",
    )


class OutOfStockStatus(CamelModel):
    is_out_of_stock: bool = False
    message: str | None = None
    reason: str | None = None


class CapacityBreakdown(CamelModel):
    total_capacity: int
    remaining_capacity: int
    used: int
    available: int


class ValidationResult(CamelModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class InventoryStatus(CamelModel):
    status: Literal["low", "high_utilization", "good", "unknown"]
    message: str
    color: Literal["red", "yellow", "green", "gray"]


class InventoryDisplay(CamelModel):
    """Variant-specific figures used by inventory widgets."""

    label: str
    current: int
    total: int | None = None
    unit: str = "units"
    is_low: bool = False
    low_threshold: int
    low_message: str
    period: str | None = None


class InventorySummary(CamelModel):
    product_id: str
    product_name: str
    product_type: str | None = None
    display_data: InventoryDisplay | None = None
    status: InventoryStatus
    utilization: int | None = None
    last_updated: datetime


class RestorationReport(CamelModel):
    """Outcome of applying restoration directives to a batch of products."""

    checked: int = 0
    restored: int = 0
    failed: int = 0
    directives: list[RestorationDirective] = Field(default_factory=list)


class InventoryCheckResponse(CamelModel):
    """Everything an inventory widget needs for one product."""

    out_of_stock: OutOfStockStatus
    summary: InventorySummary


class RestorationRequest(CamelModel):
    products: list[dict[str, Any]] = Field(default_factory=list)
    now: datetime | None = Field(
        None,
        description="Reference time; defaults to the current UTC time",
    )


class InventoryValidationRequest(CamelModel):
    product: dict[str, Any]
    field: str
    value: Any = None


class CapacityRequest(CamelModel):
    product: dict[str, Any]
    new_total_capacity: int | None = None


class CapacityResponse(CamelModel):
    breakdown: CapacityBreakdown
    utilization: int
