"""Constraint simulator for storage schedules.

Walks a requested power profile slot by slot and clips it to what the asset
can physically do:
- Charge energy bounded by the charge rate and the headroom to max SoC
- Discharge energy bounded by the discharge rate and the energy above min SoC
- Round-trip efficiency applied as a loss on the discharge path

Infeasible requests are clipped to the nearest feasible setpoint, never
rejected.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from storage_dispatch.domain.models import (
    POWER_TOLERANCE_KW,
    Asset,
    ScheduleEntry,
    TimeSlot,
)

logger = logging.getLogger(__name__)


class StorageModel:
    """Energy-balance model of a storage asset.

    Tracks SoC in percent of nominal capacity. Power values are storage-side:
    energy drawn while charging is stored in full, energy removed while
    discharging is delivered times the round-trip efficiency.
    """

    def __init__(self, asset: Asset) -> None:
        """Initialize the model.

        Args:
            asset: Asset specification snapshot.
        """
        self.asset = asset
        self._soc_percent: float | None = None

    @property
    def soc_percent(self) -> float | None:
        """Current state of charge, None before initialization."""
        return self._soc_percent

    def initialize(self, soc_percent: float) -> float:
        """Set the starting state of charge.

        Raises:
            ValueError: If soc_percent is outside 0-100.
        """
        if not 0 <= soc_percent <= 100:
            raise ValueError(f"soc_percent must be 0-100, got {soc_percent}")
        self._soc_percent = float(soc_percent)
        return self._soc_percent

    def _require_state(self) -> float:
        if self._soc_percent is None:
            raise ValueError("Storage model not initialized. Call initialize() first.")
        return self._soc_percent

    def get_soc_headroom(self) -> tuple[float, float]:
        """Energy available for (charging, discharging) in kWh."""
        soc = self._require_state()
        capacity = self.asset.capacity_kwh
        charge_headroom = (self.asset.max_soc_percent - soc) / 100 * capacity
        discharge_headroom = (soc - self.asset.min_soc_percent) / 100 * capacity
        return max(0.0, charge_headroom), max(0.0, discharge_headroom)

    def get_max_charge_power(self, duration_hours: float) -> float:
        """Largest charge power (kW) feasible for a slot of the given length."""
        charge_headroom, _ = self.get_soc_headroom()
        return min(self.asset.max_charge_rate_kw, charge_headroom / duration_hours)

    def get_max_discharge_power(self, duration_hours: float) -> float:
        """Largest storage-side discharge power (kW) feasible for the slot."""
        _, discharge_headroom = self.get_soc_headroom()
        return min(self.asset.max_discharge_rate_kw, discharge_headroom / duration_hours)

    def charge(self, power_kw: float, duration_hours: float) -> float:
        """Charge for one slot, clipping to the feasible power.

        Returns:
            Granted charge power in kW.

        Raises:
            ValueError: If power_kw is negative.
        """
        soc = self._require_state()
        if power_kw < 0:
            raise ValueError(f"Charge power must be >= 0, got {power_kw}")

        charge_headroom, _ = self.get_soc_headroom()
        soc_limited_power = charge_headroom / duration_hours
        limit = self.get_max_charge_power(duration_hours)
        granted = min(round(min(power_kw, limit), 6), limit)
        if granted <= POWER_TOLERANCE_KW:
            return 0.0

        new_soc = soc + granted * duration_hours / self.asset.capacity_kwh * 100
        # Snap onto the bound when the headroom is used up
        if (
            granted >= soc_limited_power - POWER_TOLERANCE_KW
            or new_soc > self.asset.max_soc_percent
        ):
            new_soc = max(soc, self.asset.max_soc_percent)
        else:
            new_soc = min(round(new_soc, 6), self.asset.max_soc_percent)
        self._soc_percent = new_soc
        return granted

    def discharge(self, power_kw: float, duration_hours: float) -> float:
        """Discharge for one slot, clipping to the feasible power.

        Args:
            power_kw: Requested storage-side discharge power (>= 0).
            duration_hours: Slot length.

        Returns:
            Granted storage-side discharge power in kW.

        Raises:
            ValueError: If power_kw is negative.
        """
        soc = self._require_state()
        if power_kw < 0:
            raise ValueError(f"Discharge power must be >= 0, got {power_kw}")

        _, discharge_headroom = self.get_soc_headroom()
        soc_limited_power = discharge_headroom / duration_hours
        limit = self.get_max_discharge_power(duration_hours)
        granted = min(round(min(power_kw, limit), 6), limit)
        if granted <= POWER_TOLERANCE_KW:
            return 0.0

        new_soc = soc - granted * duration_hours / self.asset.capacity_kwh * 100
        if (
            granted >= soc_limited_power - POWER_TOLERANCE_KW
            or new_soc < self.asset.min_soc_percent
        ):
            new_soc = min(soc, self.asset.min_soc_percent)
        else:
            new_soc = max(round(new_soc, 6), self.asset.min_soc_percent)
        self._soc_percent = new_soc
        return granted


@dataclass(frozen=True)
class SimulationOutcome:
    """Clipped schedule produced by :func:`simulate`."""

    entries: tuple[ScheduleEntry, ...]
    final_soc_percent: float
    clipped_slots: int

    @property
    def powers(self) -> list[float]:
        return [entry.power_kw for entry in self.entries]


def simulate(
    asset: Asset,
    initial_soc_percent: float,
    slots: Sequence[TimeSlot],
    requested_powers: Sequence[float | None],
    prices: Sequence[float | None] | None = None,
    carbon: Sequence[float | None] | None = None,
) -> SimulationOutcome:
    """Clip a requested power profile to the asset's constraints.

    Args:
        asset: Asset specification.
        initial_soc_percent: SoC at the start of the first slot.
        slots: Horizon slots in time order.
        requested_powers: Requested signed power per slot; missing trailing
            values, None and NaN are treated as idle.
        prices: Optional price per slot carried onto the entries.
        carbon: Optional carbon intensity per slot carried onto the entries.

    Returns:
        SimulationOutcome with one entry per slot.
    """
    model = StorageModel(asset)
    model.initialize(initial_soc_percent)

    entries: list[ScheduleEntry] = []
    clipped = 0

    for i, slot in enumerate(slots):
        requested = requested_powers[i] if i < len(requested_powers) else None
        if requested is None or not math.isfinite(requested):
            requested = 0.0

        duration = slot.duration_hours
        if requested > 0:
            granted = model.charge(requested, duration)
        elif requested < 0:
            granted = -model.discharge(-requested, duration)
        else:
            granted = 0.0

        entry = ScheduleEntry(
            slot=slot,
            power_kw=granted,
            requested_power_kw=requested,
            price=prices[i] if prices is not None and i < len(prices) else None,
            carbon_intensity=(
                carbon[i] if carbon is not None and i < len(carbon) else None
            ),
            resulting_soc_percent=model.soc_percent,
        )
        if entry.clipped:
            clipped += 1
        entries.append(entry)

    if clipped:
        logger.debug(
            "Clipped %d of %d slots for asset %s", clipped, len(entries), asset.asset_id
        )

    return SimulationOutcome(
        entries=tuple(entries),
        final_soc_percent=model.soc_percent,
        clipped_slots=clipped,
    )


def arbitrage_value(entries: Sequence[ScheduleEntry], efficiency: float) -> float:
    """Net energy arbitrage value of a clipped schedule in $.

    Σ(discharged kWh x price x efficiency) - Σ(charged kWh x price), over
    slots with a known price.
    """
    value = 0.0
    for entry in entries:
        if entry.price is None:
            continue
        if entry.power_kw > 0:
            value -= entry.energy_kwh * entry.price
        elif entry.power_kw < 0:
            value += entry.energy_kwh * entry.price * efficiency
    return round(value, 6)
