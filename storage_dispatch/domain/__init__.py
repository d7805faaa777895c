"""Domain models for the storage dispatch scheduler."""

from storage_dispatch.domain.errors import (
    CommandDispatchFailure,
    ConfigurationError,
    ExternalCallFailure,
    ForecastUnavailable,
    SchedulerError,
)
from storage_dispatch.domain.models import (
    Asset,
    DispatchAction,
    ForecastKind,
    ForecastPoint,
    OptimizationResult,
    PerformanceRecord,
    PricePoint,
    ScheduleEntry,
    TimeSlot,
    TOUPeriod,
    TOUPeriodType,
    ValueUnit,
    align_series,
    align_to_slot,
    build_horizon,
)

__all__ = [
    "Asset",
    "TimeSlot",
    "ScheduleEntry",
    "OptimizationResult",
    "PerformanceRecord",
    "PricePoint",
    "ForecastPoint",
    "TOUPeriod",
    "TOUPeriodType",
    "DispatchAction",
    "ForecastKind",
    "ValueUnit",
    "align_series",
    "align_to_slot",
    "build_horizon",
    "SchedulerError",
    "ConfigurationError",
    "ForecastUnavailable",
    "ExternalCallFailure",
    "CommandDispatchFailure",
]
