"""Routes exposing availability rules to the storefront and artisan tools."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError

from src.errors import InventoryModelError
from src.models.inventory import (
    CapacityRequest,
    CapacityResponse,
    InventoryCheckResponse,
    InventoryValidationRequest,
    RestorationDirective,
    RestorationReport,
    RestorationRequest,
    ValidationResult,
)
from src.services.inventory.availability import (
    AvailabilityEngine,
    process_inventory_restoration,
)
from src.services.inventory.restoration import (
    InventoryRestorationRunner,
    InventoryWriter,
    get_inventory_writer,
)
from src.services.search.orchestrator import SearchOrchestratorDependency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])

WriterDependency = Annotated[InventoryWriter, Depends(get_inventory_writer)]


def _engine(product: dict[str, Any]) -> AvailabilityEngine:
    try:
        return AvailabilityEngine(product)
    except (InventoryModelError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid product record: {exc}",
        ) from exc


@router.post(
    "/status",
    response_model=InventoryCheckResponse,
    summary="Describe the availability of a single product",
)
async def inventory_status(
    product: Annotated[dict[str, Any], Body()],
) -> InventoryCheckResponse:
    engine = _engine(product)
    return InventoryCheckResponse(
        out_of_stock=engine.get_out_of_stock_status(),
        summary=engine.get_inventory_summary(),
    )


@router.post(
    "/restoration/check",
    response_model=list[RestorationDirective],
    summary="List the restorations due for a batch of products",
)
async def check_restoration(payload: RestorationRequest) -> list[RestorationDirective]:
    try:
        return process_inventory_restoration(payload.products, payload.now)
    except (InventoryModelError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid product record: {exc}",
        ) from exc


@router.post(
    "/restoration/run",
    response_model=RestorationReport,
    summary="Apply every due restoration and invalidate cached searches",
)
async def run_restoration(
    payload: RestorationRequest,
    writer: WriterDependency,
    orchestrator: SearchOrchestratorDependency,
) -> RestorationReport:
    runner = InventoryRestorationRunner(writer, cache=orchestrator.cache)
    return await runner.run(payload.products, payload.now)


@router.post(
    "/validate",
    response_model=ValidationResult,
    summary="Validate a proposed inventory edit",
)
async def validate_update(payload: InventoryValidationRequest) -> ValidationResult:
    engine = _engine(payload.product)
    result = engine.validate_inventory_update(payload.field, payload.value)
    if not result.is_valid:
        logger.debug("Rejected %s update: %s", payload.field, result.errors)
    return result


@router.post(
    "/capacity",
    response_model=CapacityResponse,
    summary="Recalculate remaining capacity for a made-to-order product",
)
async def recalculate_capacity(payload: CapacityRequest) -> CapacityResponse:
    engine = _engine(payload.product)
    breakdown = engine.calculate_remaining_capacity(payload.new_total_capacity)
    if breakdown is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Capacity only applies to made_to_order products",
        )
    return CapacityResponse(
        breakdown=breakdown,
        utilization=engine.get_capacity_utilization(),
    )
