"""Peak-shaving strategy.

Charges in a fixed night window and discharges in a fixed evening window.
The objective is demand-charge reduction, not energy arbitrage: value is the
peak delivered discharge power times the demand charge.
"""

from __future__ import annotations

from dataclasses import dataclass

from storage_dispatch.battery.simulator import SimulationOutcome
from storage_dispatch.domain.models import ValueUnit
from storage_dispatch.strategies.base import Strategy, StrategyContext


@dataclass(frozen=True)
class PeakShavingConfig:
    """Configuration for peak shaving.

    Hours are wall-clock and inclusive on both ends.

    Attributes:
        charge_start_hour: First hour of the charge window.
        charge_end_hour: Last hour of the charge window.
        discharge_start_hour: First hour of the discharge window.
        discharge_end_hour: Last hour of the discharge window.
        demand_charge_per_kw: Demand charge avoided per kW of peak reduction ($/kW).
    """

    charge_start_hour: int = 1
    charge_end_hour: int = 5
    discharge_start_hour: int = 18
    discharge_end_hour: int = 21
    demand_charge_per_kw: float = 15.0


class PeakShavingStrategy(Strategy):
    """Fixed-window peak shaving."""

    name = "peak_shaving"
    value_unit = ValueUnit.USD

    def __init__(self, config: PeakShavingConfig | None = None) -> None:
        self.config = config or PeakShavingConfig()

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        cfg = self.config
        requested: list[float] = []
        for slot in context.slots:
            hour = slot.start.hour
            if cfg.charge_start_hour <= hour <= cfg.charge_end_hour:
                requested.append(asset.max_charge_rate_kw)
            elif cfg.discharge_start_hour <= hour <= cfg.discharge_end_hour:
                requested.append(-asset.max_discharge_rate_kw)
            else:
                requested.append(0.0)
        return requested

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        discharges = [-entry.power_kw for entry in outcome.entries if entry.power_kw < 0]
        if not discharges:
            return 0.0
        peak_reduction_kw = max(discharges) * context.asset.round_trip_efficiency
        return round(peak_reduction_kw * self.config.demand_charge_per_kw, 6)
