"""Seeded in-memory providers for demos and tests.

Generates price, tariff, carbon and production forecasts from typical daily
profiles with optional Gaussian noise, plus an in-memory asset registry and a
command sink that records every setpoint it receives.
"""

from __future__ import annotations

import logging
import zlib
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import numpy as np
from numpy.random import Generator

from storage_dispatch.domain.errors import ForecastUnavailable
from storage_dispatch.domain.models import (
    Asset,
    ForecastPoint,
    PricePoint,
    TOUPeriod,
    TOUPeriodType,
    align_to_slot,
)

logger = logging.getLogger(__name__)


class PricePattern(str, Enum):
    """Pre-defined price patterns."""

    NORMAL = "normal"  # Standard daily pattern
    DUCK_CURVE = "duck_curve"  # Cheap midday, high evening
    FLAT = "flat"  # Constant prices


class SyntheticForecastProvider:
    """Forecasts built from hourly profiles.

    All prices are in $/kWh. Noise is drawn from a generator seeded per
    (seed, site), so repeated calls for a site return the same series.
    """

    # Retail-style price profile ($/kWh) for a typical summer day
    BASE_PRICE_PROFILE: dict[int, float] = {
        0: 0.11, 1: 0.10, 2: 0.09, 3: 0.09, 4: 0.10, 5: 0.11,
        6: 0.14, 7: 0.17, 8: 0.16, 9: 0.14, 10: 0.13, 11: 0.12,
        12: 0.12, 13: 0.12, 14: 0.13, 15: 0.16, 16: 0.21, 17: 0.27,
        18: 0.31, 19: 0.29, 20: 0.24, 21: 0.19, 22: 0.16, 23: 0.13,
    }  # fmt: skip

    # Duck curve profile with near-zero midday prices
    DUCK_CURVE_PROFILE: dict[int, float] = {
        0: 0.11, 1: 0.10, 2: 0.10, 3: 0.09, 4: 0.10, 5: 0.11,
        6: 0.13, 7: 0.14, 8: 0.08, 9: 0.04, 10: 0.01, 11: 0.00,
        12: 0.00, 13: 0.01, 14: 0.03, 15: 0.07, 16: 0.15, 17: 0.27,
        18: 0.38, 19: 0.44, 20: 0.35, 21: 0.25, 22: 0.17, 23: 0.13,
    }  # fmt: skip

    # Grid carbon intensity (gCO2/kWh), solar-heavy grid
    CARBON_PROFILE: dict[int, float] = {
        0: 420, 1: 410, 2: 405, 3: 400, 4: 405, 5: 415,
        6: 400, 7: 360, 8: 300, 9: 250, 10: 210, 11: 190,
        12: 180, 13: 185, 14: 200, 15: 240, 16: 300, 17: 380,
        18: 450, 19: 470, 20: 460, 21: 445, 22: 435, 23: 425,
    }  # fmt: skip

    DEFAULT_TOU_PERIODS: tuple[TOUPeriod, ...] = (
        TOUPeriod(
            type=TOUPeriodType.OFF_PEAK, price=0.08, start_time="22:00", end_time="07:00"
        ),
        TOUPeriod(
            type=TOUPeriodType.STANDARD, price=0.15, start_time="07:00", end_time="16:00"
        ),
        TOUPeriod(
            type=TOUPeriodType.PEAK, price=0.32, start_time="16:00", end_time="21:00"
        ),
        TOUPeriod(
            type=TOUPeriodType.STANDARD, price=0.15, start_time="21:00", end_time="22:00"
        ),
    )

    def __init__(
        self,
        pattern: PricePattern = PricePattern.NORMAL,
        volatility: float = 0.0,
        seed: int = 42,
        slot_minutes: int = 60,
        solar_peak_kw: float = 0.0,
        site_load_kw: float = 2.0,
        unavailable: Iterable[str] = (),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the provider.

        Args:
            pattern: Price pattern to use.
            volatility: Noise standard deviation as a fraction of price.
            seed: Random seed for reproducibility.
            slot_minutes: Spacing of forecast points.
            solar_peak_kw: Peak PV output for the production forecast.
            site_load_kw: Flat site load subtracted from PV output.
            unavailable: Forecast kinds ("price", "tou", "carbon",
                "production") that raise ForecastUnavailable.
            clock: Source of the current time.
        """
        if volatility < 0:
            raise ValueError(f"volatility must be >= 0, got {volatility}")
        self.pattern = pattern
        self.volatility = volatility
        self.seed = seed
        self.slot_minutes = slot_minutes
        self.solar_peak_kw = solar_peak_kw
        self.site_load_kw = site_load_kw
        self.unavailable = set(unavailable)
        self.clock = clock
        self.tou_periods: dict[str, list[TOUPeriod]] = {}

    def _rng(self, site_id: str, kind: str) -> Generator:
        return np.random.default_rng(
            [self.seed, zlib.crc32(f"{site_id}:{kind}".encode())]
        )

    def _check_available(self, kind: str, site_id: str) -> None:
        if kind in self.unavailable:
            raise ForecastUnavailable(kind, site_id, "disabled in synthetic provider")

    def _timestamps(self, horizon_slots: int) -> list[datetime]:
        start = align_to_slot(self.clock(), self.slot_minutes)
        step = timedelta(minutes=self.slot_minutes)
        return [start + i * step for i in range(horizon_slots)]

    def _base_price(self, hour: int) -> float:
        if self.pattern == PricePattern.DUCK_CURVE:
            return self.DUCK_CURVE_PROFILE.get(hour, 0.15)
        if self.pattern == PricePattern.FLAT:
            return 0.15
        return self.BASE_PRICE_PROFILE.get(hour, 0.15)

    def _add_noise(self, rng: Generator, value: float) -> float:
        if self.volatility == 0:
            return value
        return float(value + rng.normal(0, abs(value) * self.volatility))

    async def get_price_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[PricePoint]:
        self._check_available("price", site_id)
        rng = self._rng(site_id, "price")
        return [
            PricePoint(
                time=moment,
                price=round(self._add_noise(rng, self._base_price(moment.hour)), 5),
            )
            for moment in self._timestamps(horizon_slots)
        ]

    async def get_tou_periods(self, site_id: str) -> list[TOUPeriod]:
        self._check_available("tou", site_id)
        return list(self.tou_periods.get(site_id, self.DEFAULT_TOU_PERIODS))

    async def get_carbon_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[ForecastPoint]:
        self._check_available("carbon", site_id)
        rng = self._rng(site_id, "carbon")
        return [
            ForecastPoint(
                time=moment,
                value=round(
                    max(0.0, self._add_noise(rng, self.CARBON_PROFILE[moment.hour])), 2
                ),
            )
            for moment in self._timestamps(horizon_slots)
        ]

    async def get_production_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[ForecastPoint]:
        """Net production surplus (PV minus load) per slot in kW."""
        self._check_available("production", site_id)
        points: list[ForecastPoint] = []
        for moment in self._timestamps(horizon_slots):
            hour = moment.hour + moment.minute / 60
            # Bell-shaped PV output between 06:00 and 18:00
            if 6 <= hour <= 18:
                solar = self.solar_peak_kw * float(np.sin(np.pi * (hour - 6) / 12))
            else:
                solar = 0.0
            points.append(
                ForecastPoint(time=moment, value=round(solar - self.site_load_kw, 4))
            )
        return points


class InMemoryAssetRegistry:
    """Asset registry backed by a dict of site id to assets."""

    def __init__(self, sites: dict[str, list[Asset]] | None = None) -> None:
        self._sites: dict[str, list[Asset]] = {
            site_id: list(assets) for site_id, assets in (sites or {}).items()
        }

    def add_asset(self, site_id: str, asset: Asset) -> None:
        self._sites.setdefault(site_id, []).append(asset)

    def update_soc(self, asset_id: str, soc_percent: float) -> Asset:
        """Replace the live SoC of an asset.

        Raises:
            KeyError: If no site has the asset.
        """
        for assets in self._sites.values():
            for i, asset in enumerate(assets):
                if asset.asset_id == asset_id:
                    updated = Asset.model_validate(
                        {**asset.model_dump(), "current_soc_percent": soc_percent}
                    )
                    assets[i] = updated
                    return updated
        raise KeyError(asset_id)

    async def list_sites(self) -> list[str]:
        return list(self._sites)

    async def get_assets_by_site(self, site_id: str) -> list[Asset]:
        return list(self._sites.get(site_id, []))


class RecordingCommandInterface:
    """Command sink that logs and records every setpoint.

    Assets listed in ``failing_assets`` raise ConnectionError instead.
    """

    def __init__(self, failing_assets: Iterable[str] = ()) -> None:
        self.failing_assets = set(failing_assets)
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def send_command(
        self, asset_id: str, action: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        if asset_id in self.failing_assets:
            raise ConnectionError(f"asset {asset_id} unreachable")
        self.sent.append((asset_id, action, dict(params)))
        logger.info(
            "Command %s %.3f kW for %ds to %s",
            action,
            params.get("power_kw", 0.0),
            params.get("duration_seconds", 0),
            asset_id,
        )
        return {"status": "accepted", "asset_id": asset_id}
