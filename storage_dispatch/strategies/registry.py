"""Registry of available strategies, keyed by name."""

from __future__ import annotations

from collections.abc import Iterable

from storage_dispatch.domain.errors import ConfigurationError
from storage_dispatch.providers.interfaces import ExternalOptimizer
from storage_dispatch.strategies.ai_assisted import AIAssistedStrategy, AIStrategyConfig
from storage_dispatch.strategies.base import Strategy
from storage_dispatch.strategies.carbon import CarbonReductionStrategy
from storage_dispatch.strategies.dynamic import DynamicPriceStrategy
from storage_dispatch.strategies.grid_services import GridServicesStrategy
from storage_dispatch.strategies.lifecycle import LifecycleStrategy
from storage_dispatch.strategies.peak_shaving import PeakShavingStrategy
from storage_dispatch.strategies.self_consumption import SelfConsumptionStrategy
from storage_dispatch.strategies.threshold import ThresholdStrategy
from storage_dispatch.strategies.time_of_use import TimeOfUseStrategy


class StrategyRegistry:
    """Name -> strategy lookup preserving registration order."""

    def __init__(self, strategies: Iterable[Strategy] = ()) -> None:
        self._strategies: dict[str, Strategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: Strategy) -> None:
        if not strategy.name:
            raise ConfigurationError("strategy must have a name")
        self._strategies[strategy.name] = strategy

    def names(self) -> list[str]:
        return list(self._strategies)

    def get(self, name: str) -> Strategy:
        """Look up a strategy.

        Raises:
            ConfigurationError: If the name is unknown.
        """
        try:
            return self._strategies[name]
        except KeyError:
            raise ConfigurationError(f"unknown strategy: {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)


def default_registry(
    optimizer: ExternalOptimizer | None = None,
    ai_timeout_seconds: float = 3.0,
) -> StrategyRegistry:
    """Registry with every built-in strategy at default settings."""
    return StrategyRegistry(
        [
            ThresholdStrategy(),
            TimeOfUseStrategy(),
            DynamicPriceStrategy(),
            PeakShavingStrategy(),
            SelfConsumptionStrategy(),
            AIAssistedStrategy(
                optimizer, AIStrategyConfig(timeout_seconds=ai_timeout_seconds)
            ),
            LifecycleStrategy(),
            GridServicesStrategy(),
            CarbonReductionStrategy(),
        ]
    )
