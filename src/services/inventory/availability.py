"""Availability rules for the three product fulfilment variants.

An engine wraps a single product snapshot and answers questions about it:
whether it can be purchased right now, how much is left, whether a periodic
restoration is due and whether a proposed inventory edit is valid. Engines
never mutate or persist anything; restoration is reported as directives that
a persistence collaborator applies (see ``restoration.py``).
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from src.errors import InventoryModelError
from src.models.inventory import (
    CapacityBreakdown,
    InventoryDisplay,
    InventoryStatus,
    InventorySummary,
    OutOfStockStatus,
    RestorationDirective,
    ValidationResult,
)
from src.models.product import (
    BaseProduct,
    MadeToOrderProduct,
    Period,
    ReadyToShipProduct,
    ScheduledOrderProduct,
    ensure_utc,
    parse_product,
)

logger = logging.getLogger(__name__)

HIGH_UTILIZATION_PERCENT = 80
LOW_CAPACITY_THRESHOLD = 1
LOW_AVAILABLE_THRESHOLD = 5

_OUT_OF_STOCK_COPY: dict[type[BaseProduct], tuple[str, str]] = {
    ReadyToShipProduct: ("Out of Stock", "No items available"),
    MadeToOrderProduct: ("No Capacity Available", "All production slots are filled"),
    ScheduledOrderProduct: ("Fully Booked", "All available slots are taken"),
}


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's end."""

    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def advance_by_period(moment: datetime, period: Period) -> datetime:
    if period == "weekly":
        return moment + timedelta(days=7)
    if period == "monthly":
        return add_months(moment, 1)
    return moment + timedelta(days=1)


def _is_whole_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


class AvailabilityEngine:
    """Inventory calculations and business rules for one product."""

    def __init__(self, product: BaseProduct | dict[str, Any] | None) -> None:
        if product is None:
            raise InventoryModelError("Product is required to evaluate availability")
        self.product = parse_product(product)

    # Purchasability

    def is_out_of_stock(self) -> bool:
        product = self.product
        if isinstance(product, ReadyToShipProduct):
            return product.stock <= 0
        if isinstance(product, MadeToOrderProduct):
            return product.remaining_capacity <= 0
        if isinstance(product, ScheduledOrderProduct):
            return product.available_quantity <= 0
        # Unknown variants still have to render, so they are never gated.
        return False

    def get_out_of_stock_status(self) -> OutOfStockStatus:
        if not self.is_out_of_stock():
            return OutOfStockStatus()
        message, reason = _OUT_OF_STOCK_COPY.get(
            type(self.product),
            ("Unavailable", "Product not available"),
        )
        return OutOfStockStatus(is_out_of_stock=True, message=message, reason=reason)

    # Restoration

    def check_inventory_restoration(
        self,
        now: datetime | None = None,
    ) -> list[RestorationDirective]:
        """Return the directives due at ``now`` (empty when nothing is due)."""

        now = ensure_utc(now) or datetime.now(UTC)
        product = self.product
        directives: list[RestorationDirective] = []

        if isinstance(product, MadeToOrderProduct) and product.capacity_period:
            if self._capacity_period_elapsed(product, now):
                directives.append(
                    RestorationDirective(
                        type="capacity_restoration",
                        product_id=product.id,
                        updates={
                            "remainingCapacity": product.total_capacity,
                            "lastCapacityRestore": now,
                        },
                    )
                )

        if isinstance(product, ScheduledOrderProduct) and product.next_available_date:
            if now >= product.next_available_date:
                restored = product.total_production_quantity
                if restored is None:
                    restored = product.available_quantity
                directives.append(
                    RestorationDirective(
                        type="production_restoration",
                        product_id=product.id,
                        updates={
                            "availableQuantity": max(0, restored),
                            "nextAvailableDate": self._next_production_date(
                                product, now
                            ),
                        },
                    )
                )

        return directives

    @staticmethod
    def _capacity_period_elapsed(product: MadeToOrderProduct, now: datetime) -> bool:
        last_restored = product.last_capacity_restore or product.created_at or now
        now_utc = now.astimezone(UTC)
        last_utc = last_restored.astimezone(UTC)

        if product.capacity_period == "daily":
            return now_utc.date() != last_utc.date()
        if product.capacity_period == "weekly":
            return (now_utc - last_utc).days >= 7
        if product.capacity_period == "monthly":
            return (now_utc.year, now_utc.month) != (last_utc.year, last_utc.month)
        return False

    @staticmethod
    def _next_production_date(product: ScheduledOrderProduct, now: datetime) -> datetime:
        next_date = product.next_available_date or now
        while next_date <= now:
            next_date = advance_by_period(next_date, product.schedule_type)
        return next_date

    # Capacity

    def get_used_capacity(self) -> int:
        product = self.product
        if not isinstance(product, MadeToOrderProduct):
            return 0
        return max(0, product.total_capacity - product.remaining_capacity)

    def calculate_remaining_capacity(
        self,
        new_total_capacity: int | None = None,
    ) -> CapacityBreakdown | None:
        """Carry consumed capacity over when the total is resized."""

        product = self.product
        if not isinstance(product, MadeToOrderProduct):
            return None

        total = product.total_capacity if new_total_capacity is None else new_total_capacity
        total = max(0, total)
        used = self.get_used_capacity()
        remaining = min(total, max(0, total - used))
        return CapacityBreakdown(
            total_capacity=total,
            remaining_capacity=remaining,
            used=used,
            available=remaining,
        )

    def get_capacity_utilization(self) -> int:
        product = self.product
        if not isinstance(product, MadeToOrderProduct) or product.total_capacity == 0:
            return 0
        return round(self.get_used_capacity() / product.total_capacity * 100)

    # Validation

    def validate_inventory_update(self, field: str, value: Any) -> ValidationResult:
        """Collect every rule violation for a proposed inventory edit."""

        product = self.product
        errors: list[str] = []

        if isinstance(product, ReadyToShipProduct) and field == "stock":
            errors.extend(self._count_errors("Stock", value))
        elif isinstance(product, MadeToOrderProduct) and field == "totalCapacity":
            errors.extend(self._count_errors("Total capacity", value))
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                if value < 1:
                    errors.append("Total capacity must be at least 1")
        elif isinstance(product, MadeToOrderProduct) and field == "remainingCapacity":
            errors.extend(self._count_errors("Remaining capacity", value))
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                if value > product.total_capacity:
                    errors.append("Remaining capacity cannot exceed total capacity")
        elif isinstance(product, ScheduledOrderProduct) and field == "availableQuantity":
            errors.extend(self._count_errors("Available quantity", value))

        return ValidationResult(is_valid=not errors, errors=errors)

    @staticmethod
    def _count_errors(label: str, value: Any) -> list[str]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return [f"{label} must be a number"]
        errors = []
        if value < 0:
            errors.append(f"{label} cannot be negative")
        if not _is_whole_number(value):
            errors.append(f"{label} must be a whole number")
        return errors

    # Display and status

    def get_inventory_display_data(self) -> InventoryDisplay | None:
        product = self.product
        unit = product.unit or "units"

        if isinstance(product, ReadyToShipProduct):
            return InventoryDisplay(
                label="Stock",
                current=product.stock,
                unit=unit,
                is_low=product.stock <= product.low_stock_threshold,
                low_threshold=product.low_stock_threshold,
                low_message="Low Stock!",
            )
        if isinstance(product, MadeToOrderProduct):
            period = product.capacity_period
            return InventoryDisplay(
                label="Capacity",
                current=product.remaining_capacity,
                total=product.total_capacity,
                unit=unit,
                is_low=product.remaining_capacity <= LOW_CAPACITY_THRESHOLD,
                low_threshold=LOW_CAPACITY_THRESHOLD,
                low_message="Low Capacity!",
                period=f"per {period}" if period else None,
            )
        if isinstance(product, ScheduledOrderProduct):
            return InventoryDisplay(
                label="Available",
                current=product.available_quantity,
                unit=unit,
                is_low=product.available_quantity <= LOW_AVAILABLE_THRESHOLD,
                low_threshold=LOW_AVAILABLE_THRESHOLD,
                low_message="Low Available!",
            )
        return None

    def get_inventory_status(self) -> InventoryStatus:
        display = self.get_inventory_display_data()
        if display is None:
            return InventoryStatus(status="unknown", message="", color="gray")

        if display.is_low:
            return InventoryStatus(status="low", message=display.low_message, color="red")

        if isinstance(self.product, MadeToOrderProduct):
            if self.get_capacity_utilization() >= HIGH_UTILIZATION_PERCENT:
                return InventoryStatus(
                    status="high_utilization",
                    message="High capacity utilization",
                    color="yellow",
                )

        return InventoryStatus(
            status="good",
            message="Inventory levels are good",
            color="green",
        )

    def get_inventory_summary(self, now: datetime | None = None) -> InventorySummary:
        product = self.product
        utilization = None
        if isinstance(product, MadeToOrderProduct):
            utilization = self.get_capacity_utilization()
        return InventorySummary(
            product_id=product.id,
            product_name=product.name,
            product_type=product.product_type,
            display_data=self.get_inventory_display_data(),
            status=self.get_inventory_status(),
            utilization=utilization,
            last_updated=ensure_utc(now) or datetime.now(UTC),
        )


def process_inventory_restoration(
    products: Iterable[BaseProduct | dict[str, Any]],
    now: datetime | None = None,
) -> list[RestorationDirective]:
    """Collect restoration directives across a product collection."""

    now = ensure_utc(now) or datetime.now(UTC)
    directives: list[RestorationDirective] = []
    for product in products:
        directives.extend(AvailabilityEngine(product).check_inventory_restoration(now))
    logger.debug("Computed %d restoration directives", len(directives))
    return directives


def get_inventory_summaries(
    products: Iterable[BaseProduct | dict[str, Any]],
    now: datetime | None = None,
) -> list[InventorySummary]:
    return [AvailabilityEngine(product).get_inventory_summary(now) for product in products]
