"""Pluggable dispatch strategies producing candidate schedules."""

from storage_dispatch.strategies.ai_assisted import (
    AIAssistedStrategy,
    AIOptimizerResponse,
    AIStrategyConfig,
)
from storage_dispatch.strategies.base import Candidate, Strategy, StrategyContext
from storage_dispatch.strategies.carbon import CarbonReductionStrategy
from storage_dispatch.strategies.dynamic import DynamicPriceStrategy
from storage_dispatch.strategies.grid_services import (
    GridServicesConfig,
    GridServicesStrategy,
)
from storage_dispatch.strategies.lifecycle import LifecycleConfig, LifecycleStrategy
from storage_dispatch.strategies.peak_shaving import (
    PeakShavingConfig,
    PeakShavingStrategy,
)
from storage_dispatch.strategies.registry import StrategyRegistry, default_registry
from storage_dispatch.strategies.self_consumption import (
    SelfConsumptionConfig,
    SelfConsumptionStrategy,
)
from storage_dispatch.strategies.threshold import ThresholdConfig, ThresholdStrategy
from storage_dispatch.strategies.time_of_use import TimeOfUseStrategy

__all__ = [
    "Strategy",
    "StrategyContext",
    "Candidate",
    "ThresholdStrategy",
    "ThresholdConfig",
    "TimeOfUseStrategy",
    "DynamicPriceStrategy",
    "PeakShavingStrategy",
    "PeakShavingConfig",
    "SelfConsumptionStrategy",
    "SelfConsumptionConfig",
    "LifecycleStrategy",
    "LifecycleConfig",
    "GridServicesStrategy",
    "GridServicesConfig",
    "CarbonReductionStrategy",
    "AIAssistedStrategy",
    "AIStrategyConfig",
    "AIOptimizerResponse",
    "StrategyRegistry",
    "default_registry",
]
