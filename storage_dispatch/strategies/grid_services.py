"""Grid-services strategy.

Models frequency-regulation participation as a fixed duty cycle of small
alternating charge/discharge setpoints across the whole horizon. Revenue is
the capacity offered times the horizon length times the regulation price.
"""

from __future__ import annotations

from dataclasses import dataclass

from storage_dispatch.battery.simulator import SimulationOutcome
from storage_dispatch.domain.models import ValueUnit
from storage_dispatch.strategies.base import Strategy, StrategyContext


@dataclass(frozen=True)
class GridServicesConfig:
    """Configuration for grid services.

    Attributes:
        power_fraction: Fraction of rated power offered for regulation.
        regulation_price_per_mw_hour: Capacity payment ($/MW-h).
    """

    power_fraction: float = 0.2
    regulation_price_per_mw_hour: float = 30.0


class GridServicesStrategy(Strategy):
    """Alternating micro-cycling for frequency regulation revenue."""

    name = "grid_services"
    value_unit = ValueUnit.USD

    def __init__(self, config: GridServicesConfig | None = None) -> None:
        self.config = config or GridServicesConfig()

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        fraction = self.config.power_fraction
        return [
            asset.max_charge_rate_kw * fraction
            if i % 2 == 0
            else -asset.max_discharge_rate_kw * fraction
            for i in range(context.slot_count)
        ]

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        service_mw = context.asset.max_charge_rate_kw * self.config.power_fraction / 1000
        horizon_hours = context.slot_count * context.slot_hours
        return round(
            service_mw * horizon_hours * self.config.regulation_price_per_mw_hour, 6
        )
