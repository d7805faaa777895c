"""Dynamic price-rank strategy.

Charges during the k cheapest slots and discharges during the k most
expensive, where k is the number of slots needed to fill (or empty) the
nominal capacity at the rated power. For hourly slots this is
``ceil(capacity_kwh / rate_kw)``.
"""

from __future__ import annotations

from storage_dispatch.battery.simulator import SimulationOutcome, arbitrage_value
from storage_dispatch.domain.models import ForecastKind, ValueUnit
from storage_dispatch.strategies.base import (
    Strategy,
    StrategyContext,
    rank_ascending,
    rank_descending,
    slots_to_move,
)


class DynamicPriceStrategy(Strategy):
    """Rank-based arbitrage over the forecast price curve."""

    name = "dynamic_price"
    value_unit = ValueUnit.USD
    requires = frozenset({ForecastKind.PRICE})

    def select_slots(self, context: StrategyContext) -> tuple[list[int], list[int]]:
        """(charge slots, discharge slots) chosen by price rank."""
        asset = context.asset
        prices = list(context.prices[: context.slot_count])
        k_charge = slots_to_move(
            asset.capacity_kwh, asset.max_charge_rate_kw, context.slot_hours
        )
        k_discharge = slots_to_move(
            asset.capacity_kwh, asset.max_discharge_rate_kw, context.slot_hours
        )

        charge_slots = rank_ascending(prices)[:k_charge]
        taken = set(charge_slots)
        # Never discharge in a slot already chosen for charging
        discharge_slots = [
            i for i in rank_descending(prices) if i not in taken
        ][:k_discharge]
        return charge_slots, discharge_slots

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        requested = [0.0] * context.slot_count
        charge_slots, discharge_slots = self.select_slots(context)
        for i in charge_slots:
            requested[i] = asset.max_charge_rate_kw
        for i in discharge_slots:
            requested[i] = -asset.max_discharge_rate_kw
        return requested

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        return arbitrage_value(outcome.entries, context.asset.round_trip_efficiency)

    def confidence(self, context: StrategyContext) -> float:
        return context.coverage(context.prices)
