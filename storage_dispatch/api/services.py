"""Service layer wiring the scheduler components together.

:class:`StorageOptimizationService` is the query surface used by the HTTP
routes and by embedding applications.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from storage_dispatch.config import SchedulerSettings
from storage_dispatch.dispatch.dispatcher import Dispatcher, DispatchOutcome
from storage_dispatch.domain.errors import ConfigurationError
from storage_dispatch.domain.models import OptimizationResult, PerformanceRecord
from storage_dispatch.metrics.performance import PerformanceTracker
from storage_dispatch.orchestration.trigger import ReoptimizationTrigger
from storage_dispatch.providers.interfaces import (
    AssetRegistry,
    CommandInterface,
    ExternalOptimizer,
    ForecastProvider,
)
from storage_dispatch.providers.synthetic import (
    InMemoryAssetRegistry,
    RecordingCommandInterface,
    SyntheticForecastProvider,
)
from storage_dispatch.scheduling.scheduler import Scheduler
from storage_dispatch.scheduling.state import ActiveResultStore, StrategyEnablementStore
from storage_dispatch.strategies.base import Strategy
from storage_dispatch.strategies.registry import StrategyRegistry, default_registry

logger = logging.getLogger(__name__)


class StorageOptimizationService:
    """Facade over the scheduler, dispatcher, tracker and trigger."""

    def __init__(
        self,
        settings: SchedulerSettings | None = None,
        forecasts: ForecastProvider | None = None,
        assets: AssetRegistry | None = None,
        commands: CommandInterface | None = None,
        optimizer: ExternalOptimizer | None = None,
        registry: StrategyRegistry | None = None,
        clock: Callable[[], datetime] = datetime.now,
        reoptimize_on_change: bool = True,
    ) -> None:
        self.settings = settings or SchedulerSettings()
        self.reoptimize_on_change = reoptimize_on_change
        self.forecasts = forecasts or SyntheticForecastProvider(
            slot_minutes=self.settings.slot_minutes, clock=clock
        )
        self.assets = assets or InMemoryAssetRegistry()
        self.commands = commands or RecordingCommandInterface()
        self.registry = registry or default_registry(
            optimizer, ai_timeout_seconds=self.settings.ai_timeout_seconds
        )

        self.enablement = StrategyEnablementStore()
        self.results = ActiveResultStore()
        self.tracker = PerformanceTracker()
        self.scheduler = Scheduler(
            registry=self.registry,
            enablement=self.enablement,
            forecasts=self.forecasts,
            assets=self.assets,
            results=self.results,
            tracker=self.tracker,
            settings=self.settings,
            clock=clock,
        )
        self.dispatcher = Dispatcher(self.results, self.commands, clock=clock)
        self.trigger = ReoptimizationTrigger(
            self.scheduler, self.dispatcher, self.settings
        )

    # -------------------------------------------------------------------------
    # Strategy configuration
    # -------------------------------------------------------------------------

    def list_strategies(self) -> list[Strategy]:
        return [self.registry.get(name) for name in self.registry.names()]

    def get_active_strategies(self, site_id: str) -> list[str]:
        return self.enablement.get(site_id)

    def _check_unit(self, site_id: str, strategy: Strategy) -> None:
        for name in self.enablement.get(site_id):
            other = self.registry.get(name)
            if other.value_unit != strategy.value_unit:
                raise ConfigurationError(
                    f"{strategy.name} values in {strategy.value_unit.value} but "
                    f"{other.name} is enabled at site {site_id} and values in "
                    f"{other.value_unit.value}"
                )

    def _strategies_changed(self, site_id: str) -> None:
        if self.reoptimize_on_change:
            self.trigger.notify_strategy_changed(site_id)

    async def enable_strategy(self, site_id: str, name: str) -> bool:
        """Enable a strategy at a site.

        Returns:
            True if the strategy set changed.

        Raises:
            ConfigurationError: Unknown name, or a value unit that cannot be
                compared with the strategies already enabled.
        """
        strategy = self.registry.get(name)
        self._check_unit(site_id, strategy)
        changed = self.enablement.enable(site_id, name)
        if changed:
            logger.info("Enabled %s at site %s", name, site_id)
            self._strategies_changed(site_id)
        return changed

    async def disable_strategy(self, site_id: str, name: str) -> bool:
        """Disable a strategy at a site. Raises ConfigurationError if unknown."""
        self.registry.get(name)
        changed = self.enablement.disable(site_id, name)
        if changed:
            logger.info("Disabled %s at site %s", name, site_id)
            self._strategies_changed(site_id)
        return changed

    # -------------------------------------------------------------------------
    # Runs and queries
    # -------------------------------------------------------------------------

    async def run_optimization(self, site_id: str) -> OptimizationResult | None:
        """Run the site now and return its best committed result, if any."""
        report = await self.scheduler.run_site(site_id)
        return report.best

    async def dispatch_now(self) -> list[DispatchOutcome]:
        return await self.dispatcher.dispatch_cycle()

    def get_performance(self, site_id: str) -> PerformanceRecord:
        return self.tracker.get(site_id)

    def get_active_result(
        self, site_id: str, asset_id: str
    ) -> OptimizationResult | None:
        return self.results.get(site_id, asset_id)

    async def record_realized(
        self, site_id: str, forecast_value: float, realized_value: float
    ) -> PerformanceRecord:
        return await self.tracker.record_realized(
            site_id, forecast_value, realized_value
        )

    def report_price_change(self, site_id: str, relative_change: float) -> bool:
        """Returns True if a re-optimization was started."""
        return self.trigger.notify_price_change(site_id, relative_change) is not None

    def report_soc(self, site_id: str, asset_id: str, soc_percent: float) -> bool:
        """Returns True if a re-optimization was started."""
        return (
            self.trigger.notify_soc_update(site_id, asset_id, soc_percent) is not None
        )
