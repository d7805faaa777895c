"""Self-consumption strategy.

Stores on-site production surplus and covers deficits from storage. Needs a
net production forecast (production minus site load, kW).
"""

from __future__ import annotations

from dataclasses import dataclass

from storage_dispatch.battery.simulator import SimulationOutcome
from storage_dispatch.domain.models import ForecastKind, ValueUnit
from storage_dispatch.strategies.base import Strategy, StrategyContext


@dataclass(frozen=True)
class SelfConsumptionConfig:
    """Configuration for self-consumption.

    Attributes:
        surplus_threshold_kw: Minimum surplus or deficit that triggers action.
        retail_rate: Avoided purchase price when no forecast price is known ($/kWh).
        feed_in_tariff: Export price given up when storing surplus ($/kWh).
    """

    surplus_threshold_kw: float = 1.0
    retail_rate: float = 0.30
    feed_in_tariff: float = 0.10


class SelfConsumptionStrategy(Strategy):
    """Solar self-consumption maximization."""

    name = "self_consumption"
    value_unit = ValueUnit.USD
    requires = frozenset({ForecastKind.PRODUCTION})

    def __init__(self, config: SelfConsumptionConfig | None = None) -> None:
        self.config = config or SelfConsumptionConfig()

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        threshold = self.config.surplus_threshold_kw
        requested = [0.0] * context.slot_count
        for i in range(context.slot_count):
            net = context.production[i] if i < len(context.production) else None
            if net is None:
                continue
            if net > threshold:
                requested[i] = min(net, asset.max_charge_rate_kw)
            elif net < -threshold:
                requested[i] = -min(-net, asset.max_discharge_rate_kw)
        return requested

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        efficiency = context.asset.round_trip_efficiency
        value = 0.0
        for entry in outcome.entries:
            if entry.power_kw < 0:
                rate = entry.price if entry.price is not None else self.config.retail_rate
                value += entry.energy_kwh * efficiency * rate
            elif entry.power_kw > 0:
                value -= entry.energy_kwh * self.config.feed_in_tariff
        return round(value, 6)

    def confidence(self, context: StrategyContext) -> float:
        return context.coverage(context.production)
