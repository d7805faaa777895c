"""Core domain models for the storage dispatch scheduler.

All models use Pydantic with strict validation. Units:
- Power: kW (positive = charge, negative = discharge)
- Energy: kWh
- Prices: $/kWh
- Carbon intensity: gCO2/kWh
- State of charge: percent of nominal capacity
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

# =============================================================================
# Type Aliases with Validation
# =============================================================================

PowerKW = Annotated[float, Field(ge=0, description="Power in kilowatts (kW)")]
PriceDollarPerKWh = Annotated[
    float, Field(description="Price in $/kWh (can be negative)")
]
Efficiency = Annotated[float, Field(gt=0, le=1, description="Efficiency ratio (0-1)")]
Percent = Annotated[float, Field(ge=0, le=100, description="Percentage (0-100)")]
Probability = Annotated[float, Field(ge=0, le=1, description="Probability (0-1)")]

# Clipping tolerance in kW
POWER_TOLERANCE_KW = 1e-9


# =============================================================================
# Enums
# =============================================================================


class DispatchAction(str, Enum):
    """Direction of a scheduled power setpoint."""

    CHARGE = "charge"
    DISCHARGE = "discharge"
    IDLE = "idle"


class TOUPeriodType(str, Enum):
    """Time-of-use tariff period types."""

    OFF_PEAK = "off_peak"
    STANDARD = "standard"
    PEAK = "peak"


class ValueUnit(str, Enum):
    """Unit of a strategy's projected value."""

    USD = "usd"
    KG_CO2 = "kg_co2"


class ForecastKind(str, Enum):
    """Forecast series a strategy can depend on."""

    PRICE = "price"
    TOU = "tou"
    CARBON = "carbon"
    PRODUCTION = "production"


# =============================================================================
# Asset
# =============================================================================


class Asset(BaseModel):
    """Snapshot of a storage asset's specification and live state of charge.

    Owned by the external asset registry; the scheduler only reads it.
    """

    model_config = ConfigDict(frozen=True)

    asset_id: str
    capacity_kwh: Annotated[float, Field(gt=0, description="Nominal capacity (kWh)")]
    max_charge_rate_kw: PowerKW
    max_discharge_rate_kw: PowerKW
    round_trip_efficiency: Efficiency = 0.9
    min_soc_percent: Percent = 20.0
    max_soc_percent: Percent = 90.0
    current_soc_percent: Percent = 50.0

    @model_validator(mode="after")
    def _check_soc_window(self) -> Asset:
        if self.min_soc_percent > self.max_soc_percent:
            raise ValueError(
                f"min_soc_percent ({self.min_soc_percent}) exceeds "
                f"max_soc_percent ({self.max_soc_percent})"
            )
        return self

    @property
    def min_energy_kwh(self) -> float:
        """Stored energy at the minimum SoC."""
        return self.capacity_kwh * self.min_soc_percent / 100

    @property
    def max_energy_kwh(self) -> float:
        """Stored energy at the maximum SoC."""
        return self.capacity_kwh * self.max_soc_percent / 100

    @property
    def energy_kwh(self) -> float:
        """Currently stored energy."""
        return self.capacity_kwh * self.current_soc_percent / 100

    @property
    def usable_capacity_kwh(self) -> float:
        """Usable capacity accounting for SoC limits."""
        return self.max_energy_kwh - self.min_energy_kwh

    def rate_limit_kw(self, power_kw: float) -> float:
        """Rate limit applying to a signed power value."""
        if power_kw >= 0:
            return self.max_charge_rate_kw
        return self.max_discharge_rate_kw


# =============================================================================
# Time
# =============================================================================


class TimeSlot(BaseModel):
    """One fixed-duration interval of the scheduling horizon."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> TimeSlot:
        if self.end <= self.start:
            raise ValueError("slot end must be after slot start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600

    def contains(self, moment: datetime) -> bool:
        """Whether ``moment`` falls inside the slot (end exclusive)."""
        return self.start <= moment < self.end


def align_to_slot(moment: datetime, slot_minutes: int) -> datetime:
    """Round ``moment`` down to the nearest slot boundary within its day."""
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = int((moment - midnight).total_seconds() // 60)
    return midnight + timedelta(minutes=elapsed - elapsed % slot_minutes)


def build_horizon(start: datetime, slot_minutes: int, slot_count: int) -> list[TimeSlot]:
    """Build contiguous, non-overlapping slots covering the horizon.

    Args:
        start: Start of the first slot.
        slot_minutes: Fixed slot length in minutes.
        slot_count: Number of slots.

    Returns:
        Ordered list of TimeSlot.

    Raises:
        ValueError: If slot_minutes or slot_count is not positive.
    """
    if slot_minutes <= 0:
        raise ValueError(f"slot_minutes must be > 0, got {slot_minutes}")
    if slot_count <= 0:
        raise ValueError(f"slot_count must be > 0, got {slot_count}")

    step = timedelta(minutes=slot_minutes)
    return [
        TimeSlot(start=start + i * step, end=start + (i + 1) * step)
        for i in range(slot_count)
    ]


# =============================================================================
# Forecast inputs
# =============================================================================


class PricePoint(BaseModel):
    """Forecast energy price at a point in time."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    price: PriceDollarPerKWh


class ForecastPoint(BaseModel):
    """Generic forecast value (carbon intensity, net production surplus)."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    value: float


class TOUPeriod(BaseModel):
    """Time-of-use tariff period.

    ``start_time`` and ``end_time`` are wall-clock "HH:MM" strings; a window
    whose end precedes its start wraps midnight. ``days_of_week`` uses
    Monday=0 and an empty list means every day.
    """

    model_config = ConfigDict(frozen=True)

    type: TOUPeriodType
    price: PriceDollarPerKWh
    start_time: Annotated[str, Field(pattern=r"^\d{2}:\d{2}$")]
    end_time: Annotated[str, Field(pattern=r"^\d{2}:\d{2}$")]
    days_of_week: list[Annotated[int, Field(ge=0, le=6)]] = Field(default_factory=list)

    @staticmethod
    def _to_minutes(value: str) -> int:
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)

    def covers(self, moment: datetime) -> bool:
        """Whether the period applies at ``moment`` (end exclusive)."""
        if self.days_of_week and moment.weekday() not in self.days_of_week:
            return False

        minute_of_day = moment.hour * 60 + moment.minute
        start = self._to_minutes(self.start_time)
        end = self._to_minutes(self.end_time)

        if start <= end:
            return start <= minute_of_day < end
        # Wraps midnight, e.g. 22:00-06:00
        return minute_of_day >= start or minute_of_day < end


def align_series(
    slots: list[TimeSlot],
    points: list[PricePoint] | list[ForecastPoint],
) -> list[float | None]:
    """Map forecast points onto horizon slots by timestamp.

    Each slot takes the first point whose time falls inside it. Slots with no
    point (short or sparse forecasts) map to None; points outside the horizon
    are ignored.
    """
    values: list[float | None] = [None] * len(slots)
    if not slots:
        return values

    origin = slots[0].start
    step = slots[0].duration
    for point in points:
        raw = point.price if isinstance(point, PricePoint) else point.value
        if raw is None or not math.isfinite(raw):
            continue
        offset = point.time - origin
        if offset < timedelta(0):
            continue
        index = int(offset // step)
        if index < len(slots) and values[index] is None:
            values[index] = float(raw)
    return values


# =============================================================================
# Schedules and results
# =============================================================================


class ScheduleEntry(BaseModel):
    """Feasible power setpoint for one slot, after constraint clipping."""

    model_config = ConfigDict(frozen=True)

    slot: TimeSlot
    power_kw: float
    requested_power_kw: float = 0.0
    price: PriceDollarPerKWh | None = None
    carbon_intensity: float | None = None
    resulting_soc_percent: Percent

    @property
    def energy_kwh(self) -> float:
        """Storage-side energy moved in the slot (unsigned)."""
        return abs(self.power_kw) * self.slot.duration_hours

    @property
    def action(self) -> DispatchAction:
        if self.power_kw > POWER_TOLERANCE_KW:
            return DispatchAction.CHARGE
        if self.power_kw < -POWER_TOLERANCE_KW:
            return DispatchAction.DISCHARGE
        return DispatchAction.IDLE

    @property
    def clipped(self) -> bool:
        """Whether the simulator reduced the requested power."""
        return abs(self.power_kw - self.requested_power_kw) > POWER_TOLERANCE_KW


class OptimizationResult(BaseModel):
    """Winning schedule of one optimization run for a (site, asset).

    Immutable; a later run supersedes it rather than mutating it.
    """

    model_config = ConfigDict(frozen=True)

    result_id: str
    strategy_id: str
    site_id: str
    asset_id: str
    schedule: tuple[ScheduleEntry, ...]
    projected_value: float
    value_unit: ValueUnit = ValueUnit.USD
    confidence: Probability = 1.0
    generated_at: datetime
    run_sequence: int = 0
    clipped_slots: int = 0
    fallback_used: bool = False
    capacity_kwh: Annotated[float, Field(gt=0)]
    initial_soc_percent: Percent

    @property
    def charged_kwh(self) -> float:
        return sum(e.energy_kwh for e in self.schedule if e.power_kw > 0)

    @property
    def discharged_kwh(self) -> float:
        return sum(e.energy_kwh for e in self.schedule if e.power_kw < 0)

    @property
    def throughput_kwh(self) -> float:
        """Total storage-side energy moved over the horizon."""
        return self.charged_kwh + self.discharged_kwh

    @property
    def estimated_cycles(self) -> float:
        """Equivalent full cycles: throughput / (2 x capacity)."""
        return self.throughput_kwh / (2 * self.capacity_kwh)

    @property
    def final_soc_percent(self) -> float:
        if not self.schedule:
            return self.initial_soc_percent
        return self.schedule[-1].resulting_soc_percent

    def entry_at(self, moment: datetime) -> ScheduleEntry | None:
        """The schedule entry whose slot contains ``moment``, if any."""
        for entry in self.schedule:
            if entry.slot.contains(moment):
                return entry
        return None


class PerformanceRecord(BaseModel):
    """Accumulated optimization performance for a site."""

    model_config = ConfigDict(frozen=True)

    site_id: str
    total_savings: float = 0.0
    cycles_used: float = 0.0
    last_optimization_time: datetime | None = None
    forecast_accuracy: Probability | None = None
