"""Time-of-use tariff strategy.

Maps each slot's wall-clock start onto the site's tariff periods and charges
in off-peak periods, discharges in peak periods.
"""

from __future__ import annotations

from collections.abc import Sequence

from storage_dispatch.battery.simulator import (
    SimulationOutcome,
    arbitrage_value,
    simulate,
)
from storage_dispatch.domain.models import (
    ForecastKind,
    TimeSlot,
    TOUPeriod,
    TOUPeriodType,
    ValueUnit,
)
from storage_dispatch.strategies.base import Strategy, StrategyContext


def find_period(periods: Sequence[TOUPeriod], slot: TimeSlot) -> TOUPeriod | None:
    """First tariff period covering the slot start."""
    for period in periods:
        if period.covers(slot.start):
            return period
    return None


class TimeOfUseStrategy(Strategy):
    """Charge off-peak, discharge on-peak."""

    name = "time_of_use"
    value_unit = ValueUnit.USD
    requires = frozenset({ForecastKind.TOU})

    def periods_for(self, context: StrategyContext) -> list[TOUPeriod | None]:
        return [find_period(context.tou_periods, slot) for slot in context.slots]

    def request(self, context: StrategyContext) -> list[float]:
        asset = context.asset
        requested: list[float] = []
        for period in self.periods_for(context):
            if period is None:
                requested.append(0.0)
            elif period.type == TOUPeriodType.OFF_PEAK:
                requested.append(asset.max_charge_rate_kw)
            elif period.type == TOUPeriodType.PEAK:
                requested.append(-asset.max_discharge_rate_kw)
            else:
                requested.append(0.0)
        return requested

    def simulate(
        self, context: StrategyContext, requested: Sequence[float | None]
    ) -> SimulationOutcome:
        # Tariff prices replace the wholesale forecast for valuation
        tariff_prices = [
            period.price if period is not None else None
            for period in self.periods_for(context)
        ]
        return simulate(
            asset=context.asset,
            initial_soc_percent=context.asset.current_soc_percent,
            slots=context.slots,
            requested_powers=requested,
            prices=tariff_prices,
            carbon=context.carbon or None,
        )

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        return arbitrage_value(outcome.entries, context.asset.round_trip_efficiency)

    def confidence(self, context: StrategyContext) -> float:
        periods = self.periods_for(context)
        if not periods:
            return 0.0
        return sum(1 for p in periods if p is not None) / len(periods)
