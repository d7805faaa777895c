"""Price-threshold arbitrage strategy.

Charges at full rate in slots priced at or below a low percentile of the
horizon prices and discharges at full rate at or above a high percentile.
"""

from __future__ import annotations

from dataclasses import dataclass

from storage_dispatch.battery.simulator import SimulationOutcome, arbitrage_value
from storage_dispatch.domain.models import ForecastKind, ValueUnit
from storage_dispatch.strategies.base import Strategy, StrategyContext, percentile_at


@dataclass(frozen=True)
class ThresholdConfig:
    """Configuration for the threshold strategy.

    Attributes:
        low_percentile: Percentile (0-100) at or below which to charge.
        high_percentile: Percentile (0-100) at or above which to discharge.
    """

    low_percentile: float = 25.0
    high_percentile: float = 75.0

    def __post_init__(self) -> None:
        if not 0 <= self.low_percentile <= self.high_percentile <= 100:
            raise ValueError(
                "percentiles must satisfy 0 <= low <= high <= 100, got "
                f"{self.low_percentile}/{self.high_percentile}"
            )


class ThresholdStrategy(Strategy):
    """Simple low/high price threshold arbitrage."""

    name = "simple_threshold"
    value_unit = ValueUnit.USD
    requires = frozenset({ForecastKind.PRICE})

    def __init__(self, config: ThresholdConfig | None = None) -> None:
        self.config = config or ThresholdConfig()

    def thresholds(self, context: StrategyContext) -> tuple[float, float] | None:
        """(low, high) price thresholds, None without any known price."""
        known = [p for p in context.prices[: context.slot_count] if p is not None]
        if not known:
            return None
        return (
            percentile_at(known, self.config.low_percentile / 100),
            percentile_at(known, self.config.high_percentile / 100),
        )

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        requested = [0.0] * context.slot_count
        thresholds = self.thresholds(context)
        if thresholds is None:
            return requested

        low, high = thresholds
        for i in range(context.slot_count):
            price = context.price_at(i)
            if price is None:
                continue
            # A price sitting on both thresholds stays idle
            if price <= low and price < high:
                requested[i] = asset.max_charge_rate_kw
            elif price >= high and price > low:
                requested[i] = -asset.max_discharge_rate_kw
        return requested

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        return arbitrage_value(outcome.entries, context.asset.round_trip_efficiency)

    def confidence(self, context: StrategyContext) -> float:
        return context.coverage(context.prices)
