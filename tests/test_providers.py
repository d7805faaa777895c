"""Tests for the synthetic providers."""

import asyncio
from datetime import datetime

import pytest

from storage_dispatch.domain.errors import ForecastUnavailable
from storage_dispatch.domain.models import Asset, TOUPeriodType
from storage_dispatch.providers import (
    InMemoryAssetRegistry,
    PricePattern,
    RecordingCommandInterface,
    SyntheticForecastProvider,
)

NOON = datetime(2025, 7, 15, 12, 20)


def provider(**kwargs) -> SyntheticForecastProvider:
    return SyntheticForecastProvider(clock=lambda: NOON, **kwargs)


class TestSyntheticForecastProvider:
    """Tests for SyntheticForecastProvider."""

    def test_prices_follow_profile(self) -> None:
        """Test noise-free prices match the hourly profile from the current slot."""
        points = asyncio.run(provider().get_price_forecast("site-a", 24))

        assert len(points) == 24
        assert points[0].time == datetime(2025, 7, 15, 12, 0)
        assert points[0].price == SyntheticForecastProvider.BASE_PRICE_PROFILE[12]
        assert points[6].price == SyntheticForecastProvider.BASE_PRICE_PROFILE[18]

    def test_flat_pattern(self) -> None:
        """Test the flat pattern is constant."""
        points = asyncio.run(
            provider(pattern=PricePattern.FLAT).get_price_forecast("site-a", 8)
        )
        assert {p.price for p in points} == {0.15}

    def test_noise_reproducible_per_seed(self) -> None:
        """Test the same seed and site give the same noisy series."""
        first = asyncio.run(
            provider(volatility=0.1, seed=7).get_price_forecast("site-a", 24)
        )
        again = asyncio.run(
            provider(volatility=0.1, seed=7).get_price_forecast("site-a", 24)
        )
        other_site = asyncio.run(
            provider(volatility=0.1, seed=7).get_price_forecast("site-b", 24)
        )

        assert [p.price for p in first] == [p.price for p in again]
        assert [p.price for p in first] != [p.price for p in other_site]

    def test_quarter_hour_slots(self) -> None:
        """Test points are spaced by the slot length."""
        points = asyncio.run(provider(slot_minutes=15).get_price_forecast("site-a", 4))
        assert [p.time.minute for p in points] == [15, 30, 45, 0]

    def test_default_tou_periods(self) -> None:
        """Test the default tariff and per-site overrides."""
        source = provider()
        periods = asyncio.run(source.get_tou_periods("site-a"))
        assert [p.type for p in periods] == [
            TOUPeriodType.OFF_PEAK,
            TOUPeriodType.STANDARD,
            TOUPeriodType.PEAK,
            TOUPeriodType.STANDARD,
        ]

        source.tou_periods["site-b"] = periods[:1]
        assert len(asyncio.run(source.get_tou_periods("site-b"))) == 1

    def test_production_is_pv_minus_load(self) -> None:
        """Test production peaks at noon and is negative at night."""
        source = SyntheticForecastProvider(
            solar_peak_kw=6.0,
            site_load_kw=2.0,
            clock=lambda: datetime(2025, 7, 15, 0, 0),
        )
        points = asyncio.run(source.get_production_forecast("site-a", 24))

        assert points[0].value == pytest.approx(-2.0)
        assert points[12].value == pytest.approx(4.0)

    def test_carbon_profile(self) -> None:
        """Test carbon intensity follows the daily profile."""
        points = asyncio.run(provider().get_carbon_forecast("site-a", 2))
        assert [p.value for p in points] == [180.0, 185.0]

    @pytest.mark.parametrize("kind", ["price", "tou", "carbon", "production"])
    def test_unavailable_kinds_raise(self, kind: str) -> None:
        """Test disabled forecast kinds raise ForecastUnavailable."""
        source = provider(unavailable=[kind])
        calls = {
            "price": lambda: source.get_price_forecast("site-a", 4),
            "tou": lambda: source.get_tou_periods("site-a"),
            "carbon": lambda: source.get_carbon_forecast("site-a", 4),
            "production": lambda: source.get_production_forecast("site-a", 4),
        }
        with pytest.raises(ForecastUnavailable):
            asyncio.run(calls[kind]())

    def test_negative_volatility_rejected(self) -> None:
        """Test volatility must be non-negative."""
        with pytest.raises(ValueError):
            SyntheticForecastProvider(volatility=-0.1)


class TestInMemoryAssetRegistry:
    """Tests for InMemoryAssetRegistry."""

    def test_sites_and_assets(self, scenario_asset: Asset) -> None:
        """Test assets are listed per site."""
        registry = InMemoryAssetRegistry({"site-a": [scenario_asset]})
        registry.add_asset("site-b", scenario_asset)

        assert asyncio.run(registry.list_sites()) == ["site-a", "site-b"]
        assert asyncio.run(registry.get_assets_by_site("nowhere")) == []

    def test_update_soc(self, scenario_asset: Asset) -> None:
        """Test SoC updates replace the snapshot and are validated."""
        registry = InMemoryAssetRegistry({"site-a": [scenario_asset]})

        updated = registry.update_soc("bess-1", 75.0)
        assert updated.current_soc_percent == 75.0
        assets = asyncio.run(registry.get_assets_by_site("site-a"))
        assert assets[0].current_soc_percent == 75.0

        with pytest.raises(KeyError):
            registry.update_soc("ghost", 50.0)


class TestRecordingCommandInterface:
    """Tests for RecordingCommandInterface."""

    def test_records_commands(self) -> None:
        """Test accepted commands are recorded in order."""
        commands = RecordingCommandInterface()
        reply = asyncio.run(commands.send_command("bess-1", "charge", {"power_kw": 2.0}))

        assert reply["status"] == "accepted"
        assert commands.sent == [("bess-1", "charge", {"power_kw": 2.0})]

    def test_failing_asset(self) -> None:
        """Test configured assets raise ConnectionError."""
        commands = RecordingCommandInterface(failing_assets=["bess-9"])
        with pytest.raises(ConnectionError):
            asyncio.run(commands.send_command("bess-9", "discharge", {}))
        assert commands.sent == []
