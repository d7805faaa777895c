"""Scheduler: runs enabled strategies per asset and commits the winner.

One run for a site:
1. Read the site's enabled strategies (enablement order matters for ties)
2. Fetch asset snapshots and validate their specifications
3. Fetch only the forecasts the enabled strategies need
4. Evaluate every eligible strategy per asset, select the best candidate
5. Commit the result; only committed results reach the performance tracker
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from storage_dispatch.config import SchedulerSettings
from storage_dispatch.domain.errors import ConfigurationError, ForecastUnavailable
from storage_dispatch.domain.models import (
    Asset,
    ForecastKind,
    OptimizationResult,
    TimeSlot,
    TOUPeriod,
    align_series,
    align_to_slot,
    build_horizon,
)
from storage_dispatch.metrics.performance import PerformanceTracker
from storage_dispatch.providers.interfaces import (
    AssetRegistry,
    CarbonForecastProvider,
    ForecastProvider,
    ProductionForecastProvider,
)
from storage_dispatch.scheduling.selector import select_best
from storage_dispatch.scheduling.state import ActiveResultStore, StrategyEnablementStore
from storage_dispatch.strategies.base import Candidate, Strategy, StrategyContext
from storage_dispatch.strategies.registry import StrategyRegistry

logger = logging.getLogger(__name__)


@dataclass
class ForecastBundle:
    """Forecasts fetched for one site run, aligned to the horizon."""

    prices: tuple[float | None, ...] = ()
    tou_periods: tuple[TOUPeriod, ...] = ()
    carbon: tuple[float | None, ...] = ()
    production: tuple[float | None, ...] = ()
    available: set[ForecastKind] = field(default_factory=set)


@dataclass
class SiteRunReport:
    """Outcome of one site run.

    Attributes:
        site_id: Site that was optimized.
        run_sequence: Sequence number taken when the run started.
        results: Winning result per asset (committed or not).
        committed: Results that became active.
        skipped: Strategy names skipped for missing forecasts.
        excluded_assets: Assets whose live SoC lies outside their window.
    """

    site_id: str
    run_sequence: int
    results: list[OptimizationResult] = field(default_factory=list)
    committed: list[OptimizationResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    excluded_assets: list[str] = field(default_factory=list)

    @property
    def best(self) -> OptimizationResult | None:
        """Highest-value committed result across the site's assets."""
        if not self.committed:
            return None
        return select_best_result(self.committed)


def select_best_result(results: Sequence[OptimizationResult]) -> OptimizationResult:
    best_index = max(
        range(len(results)), key=lambda i: (results[i].projected_value, -i)
    )
    return results[best_index]


class Scheduler:
    """Runs the strategy library for a site and commits the winners."""

    def __init__(
        self,
        registry: StrategyRegistry,
        enablement: StrategyEnablementStore,
        forecasts: ForecastProvider,
        assets: AssetRegistry,
        results: ActiveResultStore,
        tracker: PerformanceTracker,
        settings: SchedulerSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.registry = registry
        self.enablement = enablement
        self.forecasts = forecasts
        self.assets = assets
        self.results = results
        self.tracker = tracker
        self.settings = settings or SchedulerSettings()
        self.clock = clock

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    def enabled_strategies(self, site_id: str) -> list[Strategy]:
        return [self.registry.get(name) for name in self.enablement.get(site_id)]

    def horizon(self, now: datetime) -> list[TimeSlot]:
        start = align_to_slot(now, self.settings.slot_minutes)
        return build_horizon(
            start, self.settings.slot_minutes, self.settings.horizon_slots
        )

    async def load_assets(self, site_id: str) -> list[Asset]:
        """Fetch and validate the site's asset snapshots.

        Raises:
            ConfigurationError: If any asset lacks a valid specification.
        """
        raw_assets = await self.assets.get_assets_by_site(site_id)
        validated: list[Asset] = []
        for raw in raw_assets or []:
            if isinstance(raw, Asset):
                validated.append(raw)
                continue
            try:
                validated.append(Asset.model_validate(raw))
            except ValidationError as exc:
                raise ConfigurationError(
                    f"invalid asset specification at site {site_id}: {exc}"
                ) from exc
        return validated

    async def _fetch(self, kind: ForecastKind, site_id: str, call: Any) -> Any:
        try:
            return await call
        except ForecastUnavailable as exc:
            logger.info("Site %s: %s", site_id, exc)
            return None

    async def fetch_forecasts(
        self, site_id: str, kinds: set[ForecastKind], slots: Sequence[TimeSlot]
    ) -> ForecastBundle:
        """Fetch the requested forecast kinds concurrently."""
        bundle = ForecastBundle()
        count = len(slots)
        calls: dict[ForecastKind, Any] = {}

        if ForecastKind.PRICE in kinds:
            calls[ForecastKind.PRICE] = self.forecasts.get_price_forecast(site_id, count)
        if ForecastKind.TOU in kinds:
            calls[ForecastKind.TOU] = self.forecasts.get_tou_periods(site_id)
        if ForecastKind.CARBON in kinds:
            if isinstance(self.forecasts, CarbonForecastProvider):
                calls[ForecastKind.CARBON] = self.forecasts.get_carbon_forecast(
                    site_id, count
                )
            else:
                logger.info("Site %s: provider has no carbon forecast", site_id)
        if ForecastKind.PRODUCTION in kinds:
            if isinstance(self.forecasts, ProductionForecastProvider):
                calls[ForecastKind.PRODUCTION] = self.forecasts.get_production_forecast(
                    site_id, count
                )
            else:
                logger.info("Site %s: provider has no production forecast", site_id)

        fetched = await asyncio.gather(
            *(self._fetch(kind, site_id, call) for kind, call in calls.items())
        )

        for kind, value in zip(calls, fetched, strict=True):
            if value is None:
                continue
            bundle.available.add(kind)
            if kind == ForecastKind.PRICE:
                bundle.prices = tuple(align_series(list(slots), value))
            elif kind == ForecastKind.TOU:
                bundle.tou_periods = tuple(value)
            elif kind == ForecastKind.CARBON:
                bundle.carbon = tuple(align_series(list(slots), value))
            else:
                bundle.production = tuple(align_series(list(slots), value))
        return bundle

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    async def evaluate_asset(
        self,
        site_id: str,
        asset: Asset,
        strategies: Sequence[Strategy],
        slots: Sequence[TimeSlot],
        bundle: ForecastBundle,
    ) -> Candidate | None:
        """Evaluate every strategy for one asset and return the winner."""
        context = StrategyContext(
            site_id=site_id,
            asset=asset,
            slots=tuple(slots),
            prices=bundle.prices,
            tou_periods=bundle.tou_periods,
            carbon=bundle.carbon,
            production=bundle.production,
            available=frozenset(bundle.available),
        )

        outcomes: list[Any] = [strategy.evaluate(context) for strategy in strategies]
        pending = [o for o in outcomes if inspect.isawaitable(o)]
        if pending:
            resolved = iter(await asyncio.gather(*pending))
            outcomes = [next(resolved) if inspect.isawaitable(o) else o for o in outcomes]

        for candidate in outcomes:
            logger.debug(
                "Site %s asset %s: %s -> %.4f %s",
                site_id,
                asset.asset_id,
                candidate.strategy_id,
                candidate.projected_value,
                candidate.value_unit.value,
            )
        return select_best(outcomes)

    def build_result(
        self,
        site_id: str,
        asset: Asset,
        candidate: Candidate,
        generated_at: datetime,
        run_sequence: int,
    ) -> OptimizationResult:
        return OptimizationResult(
            result_id=f"opt_{uuid4().hex[:12]}",
            strategy_id=candidate.strategy_id,
            site_id=site_id,
            asset_id=asset.asset_id,
            schedule=candidate.schedule,
            projected_value=candidate.projected_value,
            value_unit=candidate.value_unit,
            confidence=min(max(candidate.confidence, 0.0), 1.0),
            generated_at=generated_at,
            run_sequence=run_sequence,
            clipped_slots=candidate.clipped_slots,
            fallback_used=candidate.fallback_used,
            capacity_kwh=asset.capacity_kwh,
            initial_soc_percent=asset.current_soc_percent,
        )

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    async def run_site(self, site_id: str) -> SiteRunReport:
        """Optimize every storage asset of a site.

        Returns:
            SiteRunReport; empty when no strategy is enabled, no asset exists
            or every strategy was skipped. Assets whose live SoC lies outside
            their window are left out of the run and listed as excluded.

        Raises:
            ConfigurationError: On an unknown enabled strategy or an invalid
                asset specification, before any state is changed.
        """
        run_sequence = self.results.next_sequence()
        report = SiteRunReport(site_id=site_id, run_sequence=run_sequence)

        strategies = self.enabled_strategies(site_id)
        if not strategies:
            logger.info("No active strategies for site %s", site_id)
            return report

        assets = []
        for asset in await self.load_assets(site_id):
            soc = asset.current_soc_percent
            if asset.min_soc_percent <= soc <= asset.max_soc_percent:
                assets.append(asset)
                continue
            logger.warning(
                "Site %s asset %s: SoC %.1f%% outside its %.1f-%.1f%% window, excluded",
                site_id,
                asset.asset_id,
                asset.current_soc_percent,
                asset.min_soc_percent,
                asset.max_soc_percent,
            )
            report.excluded_assets.append(asset.asset_id)
        if not assets:
            logger.info("No schedulable storage assets at site %s", site_id)
            return report

        now = self.clock()
        slots = self.horizon(now)
        needed: set[ForecastKind] = set()
        for strategy in strategies:
            needed |= strategy.requires
        bundle = await self.fetch_forecasts(site_id, needed, slots)

        eligible = [s for s in strategies if s.requires <= bundle.available]
        report.skipped = [s.name for s in strategies if s not in eligible]
        if report.skipped:
            logger.info(
                "Site %s: skipping %s (forecast unavailable)",
                site_id,
                ", ".join(report.skipped),
            )
        if not eligible:
            return report

        winners = await asyncio.gather(
            *(
                self.evaluate_asset(site_id, asset, eligible, slots, bundle)
                for asset in assets
            )
        )

        for asset, candidate in zip(assets, winners, strict=True):
            if candidate is None:
                continue
            result = self.build_result(site_id, asset, candidate, now, run_sequence)
            report.results.append(result)
            if await self.results.commit(result):
                report.committed.append(result)
                await self.tracker.apply(result)
                logger.info(
                    "Site %s asset %s: %s selected (%.4f %s, %d slots clipped%s)",
                    site_id,
                    asset.asset_id,
                    result.strategy_id,
                    result.projected_value,
                    result.value_unit.value,
                    result.clipped_slots,
                    ", fallback" if result.fallback_used else "",
                )
        return report

    async def run_all_sites(self) -> list[SiteRunReport]:
        """Run every site that has at least one enabled strategy."""
        sites = self.enablement.sites()
        reports = await asyncio.gather(
            *(self.run_site(site_id) for site_id in sites), return_exceptions=True
        )
        completed: list[SiteRunReport] = []
        for site_id, report in zip(sites, reports, strict=True):
            if isinstance(report, BaseException):
                logger.error("Optimization failed for site %s: %s", site_id, report)
                continue
            completed.append(report)
        return completed
