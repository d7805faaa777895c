"""Boundaries to the external collaborators of the scheduler.

The scheduler core only depends on these protocols; concrete providers
(database-backed registries, tariff APIs, MQTT command bridges, LLM clients)
live in the surrounding application.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from storage_dispatch.domain.models import (
    Asset,
    ForecastPoint,
    PricePoint,
    TOUPeriod,
)


@runtime_checkable
class ForecastProvider(Protocol):
    """Price and tariff forecasts per site.

    ``get_carbon_forecast`` and ``get_production_forecast`` are optional; a
    provider that lacks them makes the dependent strategies ineligible.
    Implementations raise ``ForecastUnavailable`` when a series cannot be
    produced.
    """

    async def get_price_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[PricePoint]:
        """Price forecast covering up to ``horizon_slots`` slots."""
        ...

    async def get_tou_periods(self, site_id: str) -> list[TOUPeriod]:
        """Time-of-use tariff periods for the site."""
        ...


@runtime_checkable
class CarbonForecastProvider(Protocol):
    """Grid carbon intensity forecast (gCO2/kWh)."""

    async def get_carbon_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[ForecastPoint]: ...


@runtime_checkable
class ProductionForecastProvider(Protocol):
    """Net on-site production forecast (production minus load, kW)."""

    async def get_production_forecast(
        self, site_id: str, horizon_slots: int
    ) -> list[ForecastPoint]: ...


@runtime_checkable
class AssetRegistry(Protocol):
    """Storage asset specifications and live telemetry."""

    async def list_sites(self) -> list[str]:
        """All known site ids."""
        ...

    async def get_assets_by_site(self, site_id: str) -> list[Asset]:
        """Asset snapshots (spec + current SoC) for a site."""
        ...


@runtime_checkable
class CommandInterface(Protocol):
    """Setpoint delivery to physical assets.

    At-most-once; no ordering guarantee across assets. Raises on failure.
    """

    async def send_command(
        self, asset_id: str, action: str, params: dict[str, Any]
    ) -> Any:
        """Send one command and return the acknowledgement."""
        ...


@runtime_checkable
class ExternalOptimizer(Protocol):
    """AI-assisted schedule optimizer.

    Returns a mapping with ``schedule``, ``projected_value``, ``confidence``
    and ``reasoning``. May raise, return malformed data or hang.
    """

    async def optimize(self, context: dict[str, Any]) -> Any:
        """Propose a schedule for the given optimization context."""
        ...
