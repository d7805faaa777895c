"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from storage_dispatch.domain.models import (
    DispatchAction,
    ForecastKind,
    OptimizationResult,
    PerformanceRecord,
    ScheduleEntry,
    ValueUnit,
)

# =============================================================================
# Request Schemas
# =============================================================================


class EnableStrategyRequest(BaseModel):
    """Strategy to enable at a site."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Registered strategy name")


class PriceChangeEventRequest(BaseModel):
    """Forecast price movement reported for a site."""

    model_config = ConfigDict(extra="forbid")

    relative_change: float = Field(
        ..., description="Relative price change, e.g. 0.25 for +25%"
    )


# =============================================================================
# Response Schemas
# =============================================================================


class StrategyInfoResponse(BaseModel):
    name: str
    value_unit: ValueUnit
    requires: list[ForecastKind]


class ActiveStrategiesResponse(BaseModel):
    site_id: str
    strategies: list[str]


class StrategyChangeResponse(BaseModel):
    site_id: str
    name: str
    changed: bool
    strategies: list[str]


class ScheduleEntryResponse(BaseModel):
    """One slot of an active schedule."""

    start: datetime
    end: datetime
    action: DispatchAction
    power_kw: float
    requested_power_kw: float
    price: float | None
    resulting_soc_percent: float

    @classmethod
    def from_domain(cls, entry: ScheduleEntry) -> ScheduleEntryResponse:
        return cls(
            start=entry.slot.start,
            end=entry.slot.end,
            action=entry.action,
            power_kw=entry.power_kw,
            requested_power_kw=entry.requested_power_kw,
            price=entry.price,
            resulting_soc_percent=entry.resulting_soc_percent,
        )


class OptimizationResultResponse(BaseModel):
    """Committed optimization result for one asset."""

    result_id: str
    strategy_id: str
    site_id: str
    asset_id: str
    projected_value: float
    value_unit: ValueUnit
    confidence: float
    generated_at: datetime
    clipped_slots: int
    fallback_used: bool
    estimated_cycles: float
    schedule: list[ScheduleEntryResponse]

    @classmethod
    def from_domain(cls, result: OptimizationResult) -> OptimizationResultResponse:
        return cls(
            result_id=result.result_id,
            strategy_id=result.strategy_id,
            site_id=result.site_id,
            asset_id=result.asset_id,
            projected_value=result.projected_value,
            value_unit=result.value_unit,
            confidence=result.confidence,
            generated_at=result.generated_at,
            clipped_slots=result.clipped_slots,
            fallback_used=result.fallback_used,
            estimated_cycles=round(result.estimated_cycles, 6),
            schedule=[ScheduleEntryResponse.from_domain(e) for e in result.schedule],
        )


class OptimizationRunResponse(BaseModel):
    """Best committed result of an on-demand run, if any."""

    site_id: str
    result: OptimizationResultResponse | None = None


class PerformanceResponse(BaseModel):
    site_id: str
    total_savings: float
    cycles_used: float
    last_optimization_time: datetime | None
    forecast_accuracy: float | None

    @classmethod
    def from_domain(cls, record: PerformanceRecord) -> PerformanceResponse:
        return cls(**record.model_dump())


class TriggerResponse(BaseModel):
    site_id: str
    triggered: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    timestamp: datetime
    trigger_running: bool = False
