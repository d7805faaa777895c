"""Shared types for dispatch strategies.

A strategy turns a :class:`StrategyContext` into a :class:`Candidate`:
1. Build a requested power profile over the horizon
2. Clip it with the constraint simulator
3. Value the clipped schedule in the strategy's unit

Strategies are deterministic: identical contexts give identical candidates.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np

from storage_dispatch.battery.simulator import SimulationOutcome, simulate
from storage_dispatch.domain.models import (
    Asset,
    ForecastKind,
    ScheduleEntry,
    TimeSlot,
    TOUPeriod,
    ValueUnit,
)


@dataclass(frozen=True)
class StrategyContext:
    """Inputs shared by all strategies for one (site, asset) run.

    Attributes:
        site_id: Site being optimized.
        asset: Asset snapshot, including its current SoC.
        slots: Horizon slots in time order.
        prices: Price per slot ($/kWh), None where the forecast has no value.
        tou_periods: Time-of-use tariff periods for the site.
        carbon: Carbon intensity per slot (gCO2/kWh), None where missing.
        production: Net production surplus per slot (kW), None where missing.
        available: Forecast kinds successfully fetched for this run.
    """

    site_id: str
    asset: Asset
    slots: tuple[TimeSlot, ...]
    prices: tuple[float | None, ...] = ()
    tou_periods: tuple[TOUPeriod, ...] = ()
    carbon: tuple[float | None, ...] = ()
    production: tuple[float | None, ...] = ()
    available: frozenset[ForecastKind] = field(default_factory=frozenset)

    @property
    def slot_count(self) -> int:
        return len(self.slots)

    @property
    def slot_hours(self) -> float:
        return self.slots[0].duration_hours if self.slots else 1.0

    @property
    def horizon_start(self) -> datetime | None:
        return self.slots[0].start if self.slots else None

    def price_at(self, index: int) -> float | None:
        return self.prices[index] if index < len(self.prices) else None

    def coverage(self, series: Sequence[float | None]) -> float:
        """Fraction of horizon slots with a known value in ``series``."""
        if not self.slots:
            return 0.0
        known = sum(1 for value in series[: self.slot_count] if value is not None)
        return known / self.slot_count


@dataclass(frozen=True)
class Candidate:
    """One strategy's clipped schedule and its projected value."""

    strategy_id: str
    schedule: tuple[ScheduleEntry, ...]
    projected_value: float
    value_unit: ValueUnit
    confidence: float = 1.0
    clipped_slots: int = 0
    fallback_used: bool = False

    @property
    def powers(self) -> list[float]:
        return [entry.power_kw for entry in self.schedule]


class Strategy(ABC):
    """Base class for pluggable dispatch strategies."""

    name: str = ""
    value_unit: ValueUnit = ValueUnit.USD
    requires: frozenset[ForecastKind] = frozenset()

    def is_eligible(self, context: StrategyContext) -> bool:
        """Whether every forecast this strategy needs was fetched."""
        return self.requires <= context.available

    @abstractmethod
    def request(self, context: StrategyContext) -> list[float]:
        """Requested signed power per slot before clipping."""

    @abstractmethod
    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        """Projected value of a clipped schedule."""

    def confidence(self, context: StrategyContext) -> float:
        """Share of the horizon covered by the forecasts this strategy uses."""
        return 1.0

    def simulate(
        self, context: StrategyContext, requested: Sequence[float | None]
    ) -> SimulationOutcome:
        """Clip ``requested`` against the context's asset."""
        return simulate(
            asset=context.asset,
            initial_soc_percent=context.asset.current_soc_percent,
            slots=context.slots,
            requested_powers=requested,
            prices=context.prices or None,
            carbon=context.carbon or None,
        )

    def evaluate(self, context: StrategyContext) -> Candidate:
        """Produce this strategy's candidate for the context."""
        requested = self.request(context)
        outcome = self.simulate(context, requested)
        return Candidate(
            strategy_id=self.name,
            schedule=outcome.entries,
            projected_value=self.value(context, outcome),
            value_unit=self.value_unit,
            confidence=round(self.confidence(context), 6),
            clipped_slots=outcome.clipped_slots,
        )


# =============================================================================
# Ranking helpers
# =============================================================================


def known_indices(series: Sequence[float | None]) -> list[int]:
    """Indices of slots with a known value."""
    return [i for i, value in enumerate(series) if value is not None]


def rank_ascending(series: Sequence[float | None]) -> list[int]:
    """Known slot indices sorted by value, ties kept in time order."""
    indices = np.array(known_indices(series), dtype=int)
    if indices.size == 0:
        return []
    values = np.array([series[i] for i in indices], dtype=float)
    order = np.argsort(values, kind="stable")
    return [int(i) for i in indices[order]]


def rank_descending(series: Sequence[float | None]) -> list[int]:
    """Known slot indices sorted by value, highest first, ties in time order."""
    indices = np.array(known_indices(series), dtype=int)
    if indices.size == 0:
        return []
    values = np.array([series[i] for i in indices], dtype=float)
    order = np.argsort(-values, kind="stable")
    return [int(i) for i in indices[order]]


def percentile_at(values: Sequence[float], fraction: float) -> float:
    """Element of the sorted values at index ``floor(n x fraction)``."""
    ordered = np.sort(np.asarray(values, dtype=float))
    index = min(int(math.floor(len(ordered) * fraction)), len(ordered) - 1)
    return float(ordered[max(index, 0)])


def slots_to_move(energy_kwh: float, rate_kw: float, slot_hours: float) -> int:
    """Slots needed to move ``energy_kwh`` at ``rate_kw``."""
    if rate_kw <= 0 or slot_hours <= 0:
        return 0
    return math.ceil(round(energy_kwh / (rate_kw * slot_hours), 9))
