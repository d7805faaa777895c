"""Shared fixtures for scheduler tests.

Provides the reference arbitrage scenario:
- 10 kWh / 5 kW asset, 90% round-trip efficiency, SoC window 20-90%, at 50%
- Hourly prices: $0.05 at hours 2-5, $0.30 at hours 18-21, $0.15 otherwise
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Any

import pytest

from storage_dispatch.config import SchedulerSettings
from storage_dispatch.domain.errors import ForecastUnavailable
from storage_dispatch.domain.models import (
    Asset,
    ForecastKind,
    ForecastPoint,
    PricePoint,
    TimeSlot,
    TOUPeriod,
    align_series,
    build_horizon,
)
from storage_dispatch.metrics.performance import PerformanceTracker
from storage_dispatch.providers.synthetic import InMemoryAssetRegistry
from storage_dispatch.scheduling.scheduler import Scheduler
from storage_dispatch.scheduling.state import ActiveResultStore, StrategyEnablementStore
from storage_dispatch.strategies.base import StrategyContext
from storage_dispatch.strategies.registry import StrategyRegistry, default_registry

BASE_TIME = datetime(2025, 7, 15, 0, 0, 0)


def scenario_price(hour: int) -> float:
    if 2 <= hour <= 5:
        return 0.05
    if 18 <= hour <= 21:
        return 0.30
    return 0.15


class StaticForecastProvider:
    """Forecast provider serving fixed series from BASE_TIME."""

    def __init__(
        self,
        prices: Sequence[float] | None = None,
        tou_periods: Sequence[TOUPeriod] = (),
        carbon: Sequence[float] | None = None,
        production: Sequence[float] | None = None,
        unavailable: Sequence[str] = (),
        start: datetime = BASE_TIME,
    ) -> None:
        self.prices = list(prices) if prices is not None else []
        self.tou_periods = list(tou_periods)
        self.carbon = carbon
        self.production = production
        self.unavailable = set(unavailable)
        self.start = start
        self.calls: list[str] = []

    def _points(self, values: Sequence[float], horizon_slots: int) -> list[ForecastPoint]:
        return [
            ForecastPoint(time=self.start + timedelta(hours=i), value=v)
            for i, v in enumerate(values[:horizon_slots])
        ]

    async def get_price_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[PricePoint]:
        self.calls.append("price")
        if "price" in self.unavailable:
            raise ForecastUnavailable("price", site_id, "feed offline")
        return [
            PricePoint(time=self.start + timedelta(hours=i), price=p)
            for i, p in enumerate(self.prices[:horizon_slots])
        ]

    async def get_tou_periods(self, site_id: str) -> list[TOUPeriod]:
        self.calls.append("tou")
        if "tou" in self.unavailable:
            raise ForecastUnavailable("tou", site_id)
        return list(self.tou_periods)

    async def get_carbon_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[ForecastPoint]:
        self.calls.append("carbon")
        if self.carbon is None or "carbon" in self.unavailable:
            raise ForecastUnavailable("carbon", site_id)
        return self._points(self.carbon, horizon_slots)

    async def get_production_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[ForecastPoint]:
        self.calls.append("production")
        if self.production is None or "production" in self.unavailable:
            raise ForecastUnavailable("production", site_id)
        return self._points(self.production, horizon_slots)


# =============================================================================
# Time Fixtures
# =============================================================================


@pytest.fixture
def base_timestamp() -> datetime:
    """Standard base timestamp for testing (midnight, summer day)."""
    return BASE_TIME


@pytest.fixture
def clock(base_timestamp: datetime) -> Callable[[], datetime]:
    return lambda: base_timestamp


@pytest.fixture
def horizon(base_timestamp: datetime) -> list[TimeSlot]:
    """24 hourly slots starting at midnight."""
    return build_horizon(base_timestamp, 60, 24)


@pytest.fixture
def settings() -> SchedulerSettings:
    return SchedulerSettings(slot_minutes=60, horizon_slots=24)


# =============================================================================
# Asset and Forecast Fixtures
# =============================================================================


@pytest.fixture
def scenario_asset() -> Asset:
    """10 kWh / 5 kW battery at 50% SoC."""
    return Asset(
        asset_id="bess-1",
        capacity_kwh=10.0,
        max_charge_rate_kw=5.0,
        max_discharge_rate_kw=5.0,
        round_trip_efficiency=0.9,
        min_soc_percent=20.0,
        max_soc_percent=90.0,
        current_soc_percent=50.0,
    )


@pytest.fixture
def scenario_prices() -> list[float]:
    return [scenario_price(hour) for hour in range(24)]


@pytest.fixture
def forecast_provider(scenario_prices: list[float]) -> StaticForecastProvider:
    return StaticForecastProvider(prices=scenario_prices)


@pytest.fixture
def make_context(
    horizon: list[TimeSlot], scenario_asset: Asset, scenario_prices: list[float]
) -> Callable[..., StrategyContext]:
    """Build a StrategyContext; keyword arguments override the scenario."""

    def _make(**overrides: Any) -> StrategyContext:
        slots = overrides.pop("slots", horizon)
        prices = overrides.pop("prices", scenario_prices)
        price_points = [
            PricePoint(time=slots[0].start + timedelta(hours=i), price=p)
            for i, p in enumerate(prices)
        ]
        fields: dict[str, Any] = {
            "site_id": "site-a",
            "asset": scenario_asset,
            "slots": tuple(slots),
            "prices": tuple(align_series(list(slots), price_points)),
            "available": frozenset({ForecastKind.PRICE}),
        }
        fields.update(overrides)
        return StrategyContext(**fields)

    return _make


# =============================================================================
# Scheduler Fixtures
# =============================================================================


@pytest.fixture
def registry() -> StrategyRegistry:
    return default_registry()


@pytest.fixture
def asset_registry(scenario_asset: Asset) -> InMemoryAssetRegistry:
    return InMemoryAssetRegistry({"site-a": [scenario_asset]})


@pytest.fixture
def scheduler(
    registry: StrategyRegistry,
    forecast_provider: StaticForecastProvider,
    asset_registry: InMemoryAssetRegistry,
    settings: SchedulerSettings,
    clock: Callable[[], datetime],
) -> Scheduler:
    return Scheduler(
        registry=registry,
        enablement=StrategyEnablementStore(),
        forecasts=forecast_provider,
        assets=asset_registry,
        results=ActiveResultStore(),
        tracker=PerformanceTracker(),
        settings=settings,
        clock=clock,
    )
