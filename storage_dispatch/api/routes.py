"""FastAPI router for strategy configuration, runs and queries."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from storage_dispatch.api.schemas import (
    ActiveStrategiesResponse,
    EnableStrategyRequest,
    OptimizationResultResponse,
    OptimizationRunResponse,
    PerformanceResponse,
    PriceChangeEventRequest,
    StrategyChangeResponse,
    StrategyInfoResponse,
    TriggerResponse,
)
from storage_dispatch.api.services import StorageOptimizationService
from storage_dispatch.domain.errors import ConfigurationError

router = APIRouter(prefix="/api/v1", tags=["storage"])


def get_service(request: Request) -> StorageOptimizationService:
    return request.app.state.service


def _require_strategy(service: StorageOptimizationService, name: str) -> None:
    if name not in service.registry:
        raise HTTPException(status_code=404, detail=f"Strategy not found: {name}")


# =============================================================================
# Strategies
# =============================================================================


@router.get("/strategies", response_model=list[StrategyInfoResponse])
async def list_strategies(
    service: StorageOptimizationService = Depends(get_service),
) -> list[StrategyInfoResponse]:
    """List every registered strategy."""
    return [
        StrategyInfoResponse(
            name=strategy.name,
            value_unit=strategy.value_unit,
            requires=sorted(strategy.requires, key=lambda kind: kind.value),
        )
        for strategy in service.list_strategies()
    ]


@router.get("/sites/{site_id}/strategies", response_model=ActiveStrategiesResponse)
async def get_active_strategies(
    site_id: str,
    service: StorageOptimizationService = Depends(get_service),
) -> ActiveStrategiesResponse:
    """Strategies enabled at a site, in enablement order."""
    return ActiveStrategiesResponse(
        site_id=site_id, strategies=service.get_active_strategies(site_id)
    )


@router.post("/sites/{site_id}/strategies", response_model=StrategyChangeResponse)
async def enable_strategy(
    site_id: str,
    request: EnableStrategyRequest,
    service: StorageOptimizationService = Depends(get_service),
) -> StrategyChangeResponse:
    """Enable a strategy at a site."""
    _require_strategy(service, request.name)
    try:
        changed = await service.enable_strategy(site_id, request.name)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return StrategyChangeResponse(
        site_id=site_id,
        name=request.name,
        changed=changed,
        strategies=service.get_active_strategies(site_id),
    )


@router.delete(
    "/sites/{site_id}/strategies/{name}", response_model=StrategyChangeResponse
)
async def disable_strategy(
    site_id: str,
    name: str,
    service: StorageOptimizationService = Depends(get_service),
) -> StrategyChangeResponse:
    """Disable a strategy at a site."""
    _require_strategy(service, name)
    changed = await service.disable_strategy(site_id, name)
    return StrategyChangeResponse(
        site_id=site_id,
        name=name,
        changed=changed,
        strategies=service.get_active_strategies(site_id),
    )


# =============================================================================
# Runs and results
# =============================================================================


@router.post("/sites/{site_id}/optimizations", response_model=OptimizationRunResponse)
async def run_optimization(
    site_id: str,
    service: StorageOptimizationService = Depends(get_service),
) -> OptimizationRunResponse:
    """Optimize every asset of the site now and return the best result."""
    try:
        result = await service.run_optimization(site_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return OptimizationRunResponse(
        site_id=site_id,
        result=OptimizationResultResponse.from_domain(result) if result else None,
    )


@router.get(
    "/sites/{site_id}/assets/{asset_id}/schedule",
    response_model=OptimizationResultResponse,
)
async def get_active_schedule(
    site_id: str,
    asset_id: str,
    service: StorageOptimizationService = Depends(get_service),
) -> OptimizationResultResponse:
    """Active result for an asset."""
    result = service.get_active_result(site_id, asset_id)
    if result is None:
        raise HTTPException(status_code=404, detail="No active schedule")
    return OptimizationResultResponse.from_domain(result)


@router.get("/sites/{site_id}/performance", response_model=PerformanceResponse)
async def get_performance(
    site_id: str,
    service: StorageOptimizationService = Depends(get_service),
) -> PerformanceResponse:
    """Accumulated performance for a site."""
    return PerformanceResponse.from_domain(service.get_performance(site_id))


# =============================================================================
# Events
# =============================================================================


@router.post("/sites/{site_id}/events/price-change", response_model=TriggerResponse)
async def report_price_change(
    site_id: str,
    request: PriceChangeEventRequest,
    service: StorageOptimizationService = Depends(get_service),
) -> TriggerResponse:
    """Report a forecast price movement; large moves re-optimize the site."""
    triggered = service.report_price_change(site_id, request.relative_change)
    return TriggerResponse(site_id=site_id, triggered=triggered)
