"""Lifecycle-conservative arbitrage strategy.

Trades only the most extreme price decile at reduced power and with a
restricted depth of discharge, trading some value for battery longevity.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from storage_dispatch.battery.simulator import (
    SimulationOutcome,
    arbitrage_value,
    simulate,
)
from storage_dispatch.domain.models import Asset, ForecastKind, ValueUnit
from storage_dispatch.strategies.base import (
    Strategy,
    StrategyContext,
    rank_ascending,
    slots_to_move,
)


@dataclass(frozen=True)
class LifecycleConfig:
    """Configuration for lifecycle-conservative operation.

    Attributes:
        max_depth_of_discharge: Usable fraction of nominal capacity (0-1].
        power_fraction: Fraction of rated power used in either direction.
        extreme_fraction: Share of slots counted as the cheapest/most expensive.
    """

    max_depth_of_discharge: float = 0.6
    power_fraction: float = 0.8
    extreme_fraction: float = 0.1

    def __post_init__(self) -> None:
        if not 0 < self.max_depth_of_discharge <= 1:
            raise ValueError("max_depth_of_discharge must be in (0, 1]")
        if not 0 < self.power_fraction <= 1:
            raise ValueError("power_fraction must be in (0, 1]")
        if not 0 < self.extreme_fraction <= 0.5:
            raise ValueError("extreme_fraction must be in (0, 0.5]")


class LifecycleStrategy(Strategy):
    """Shallow, low-power cycling on extreme prices only."""

    name = "lifecycle_optimized"
    value_unit = ValueUnit.USD
    requires = frozenset({ForecastKind.PRICE})

    def __init__(self, config: LifecycleConfig | None = None) -> None:
        self.config = config or LifecycleConfig()

    def restricted_asset(self, asset: Asset) -> Asset:
        """Asset whose SoC window spans at most the allowed depth of discharge."""
        window = self.config.max_depth_of_discharge * 100
        min_soc = max(asset.min_soc_percent, asset.max_soc_percent - window)
        return asset.model_copy(update={"min_soc_percent": min_soc})

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        cfg = self.config
        requested = [0.0] * context.slot_count

        prices = list(context.prices[: context.slot_count])
        ranked = rank_ascending(prices)
        n = len(ranked)
        if n == 0:
            return requested

        # Cheapest floor(n * 10%) and the slots from floor(n * 90%) upward
        lowest = ranked[: math.floor(n * cfg.extreme_fraction)]
        highest = list(reversed(ranked[math.floor(n * (1 - cfg.extreme_fraction)):]))

        charge_kw = asset.max_charge_rate_kw * cfg.power_fraction
        discharge_kw = asset.max_discharge_rate_kw * cfg.power_fraction
        usable_kwh = asset.capacity_kwh * cfg.max_depth_of_discharge

        k_charge = slots_to_move(usable_kwh, charge_kw, context.slot_hours)
        k_discharge = slots_to_move(usable_kwh, discharge_kw, context.slot_hours)

        for i in lowest[:k_charge]:
            requested[i] = charge_kw
        for i in highest[:k_discharge]:
            if requested[i] == 0.0:
                requested[i] = -discharge_kw
        return requested

    def simulate(
        self, context: StrategyContext, requested: Sequence[float | None]
    ) -> SimulationOutcome:
        return simulate(
            asset=self.restricted_asset(context.asset),
            initial_soc_percent=context.asset.current_soc_percent,
            slots=context.slots,
            requested_powers=requested,
            prices=context.prices or None,
            carbon=context.carbon or None,
        )

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        return arbitrage_value(outcome.entries, context.asset.round_trip_efficiency)

    def confidence(self, context: StrategyContext) -> float:
        return context.coverage(context.prices)
