"""Carbon-reduction strategy.

Charges in the lowest-intensity slots and discharges in the highest, valued
as kg CO2 avoided. Its unit differs from the monetary strategies, so a site
using it cannot also enable them.
"""

from __future__ import annotations

from storage_dispatch.battery.simulator import SimulationOutcome
from storage_dispatch.domain.models import ForecastKind, ValueUnit
from storage_dispatch.strategies.base import (
    Strategy,
    StrategyContext,
    rank_ascending,
    rank_descending,
    slots_to_move,
)


class CarbonReductionStrategy(Strategy):
    """Shift consumption from high- to low-carbon slots."""

    name = "carbon_reduction"
    value_unit = ValueUnit.KG_CO2
    requires = frozenset({ForecastKind.CARBON})

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        carbon = list(context.carbon[: context.slot_count])
        requested = [0.0] * context.slot_count

        k_charge = slots_to_move(
            asset.capacity_kwh, asset.max_charge_rate_kw, context.slot_hours
        )
        k_discharge = slots_to_move(
            asset.capacity_kwh, asset.max_discharge_rate_kw, context.slot_hours
        )

        charge_slots = rank_ascending(carbon)[:k_charge]
        taken = set(charge_slots)
        discharge_slots = [i for i in rank_descending(carbon) if i not in taken][
            :k_discharge
        ]
        for i in charge_slots:
            requested[i] = asset.max_charge_rate_kw
        for i in discharge_slots:
            requested[i] = -asset.max_discharge_rate_kw
        return requested

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        efficiency = context.asset.round_trip_efficiency
        grams = 0.0
        for entry in outcome.entries:
            if entry.carbon_intensity is None:
                continue
            if entry.power_kw < 0:
                grams += entry.energy_kwh * efficiency * entry.carbon_intensity
            elif entry.power_kw > 0:
                grams -= entry.energy_kwh * entry.carbon_intensity
        return round(grams / 1000, 6)

    def confidence(self, context: StrategyContext) -> float:
        return context.coverage(context.carbon)
