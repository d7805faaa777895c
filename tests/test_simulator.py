"""Tests for the storage model and constraint simulator."""

import math
from datetime import datetime

import pytest

from storage_dispatch.battery.simulator import StorageModel, arbitrage_value, simulate
from storage_dispatch.domain.models import Asset, TimeSlot, build_horizon


class TestStorageModel:
    """Tests for StorageModel energy balance."""

    @pytest.fixture
    def model(self, scenario_asset: Asset) -> StorageModel:
        """Initialized model at 50% SoC."""
        storage = StorageModel(scenario_asset)
        storage.initialize(50.0)
        return storage

    def test_initialize_invalid_soc(self, scenario_asset: Asset) -> None:
        """Test initialization with invalid SoC raises error."""
        storage = StorageModel(scenario_asset)
        with pytest.raises(ValueError):
            storage.initialize(120.0)
        with pytest.raises(ValueError):
            storage.initialize(-1.0)

    def test_uninitialized_raises(self, scenario_asset: Asset) -> None:
        """Test operations before initialize() raise."""
        with pytest.raises(ValueError, match="not initialized"):
            StorageModel(scenario_asset).charge(1.0, 1.0)

    def test_headroom(self, model: StorageModel) -> None:
        """Test charge/discharge headroom at 50% SoC."""
        charge_room, discharge_room = model.get_soc_headroom()
        assert charge_room == pytest.approx(4.0)
        assert discharge_room == pytest.approx(3.0)
        assert model.get_max_charge_power(1.0) == pytest.approx(4.0)
        assert model.get_max_discharge_power(1.0) == pytest.approx(3.0)

    def test_charge_within_limits(self, model: StorageModel) -> None:
        """Test a feasible charge moves SoC by the full energy."""
        granted = model.charge(2.0, 1.0)
        assert granted == pytest.approx(2.0)
        assert model.soc_percent == pytest.approx(70.0)

    def test_charge_clipped_to_max_soc(self, model: StorageModel) -> None:
        """Test charging stops exactly at max SoC."""
        granted = model.charge(5.0, 1.0)
        assert granted == pytest.approx(4.0)
        assert model.soc_percent == 90.0
        assert model.charge(5.0, 1.0) == 0.0

    def test_discharge_clipped_to_min_soc(self, model: StorageModel) -> None:
        """Test discharging stops exactly at min SoC."""
        granted = model.discharge(5.0, 1.0)
        assert granted == pytest.approx(3.0)
        assert model.soc_percent == 20.0
        assert model.discharge(5.0, 1.0) == 0.0

    def test_rate_limited_discharge_does_not_snap(self, scenario_asset: Asset) -> None:
        """Test a rate-limited discharge leaves SoC above the floor."""
        storage = StorageModel(scenario_asset)
        storage.initialize(90.0)
        assert storage.discharge(10.0, 1.0) == pytest.approx(5.0)
        assert storage.soc_percent == pytest.approx(40.0)

    def test_negative_power_rejected(self, model: StorageModel) -> None:
        """Test signed powers are rejected by the directional methods."""
        with pytest.raises(ValueError):
            model.charge(-1.0, 1.0)
        with pytest.raises(ValueError):
            model.discharge(-1.0, 1.0)


class TestSimulate:
    """Tests for schedule clipping."""

    def test_threshold_scenario_profile(
        self,
        scenario_asset: Asset,
        horizon: list[TimeSlot],
        scenario_prices: list[float],
    ) -> None:
        """Test the reference profile clips to 4 kWh in and 7 kWh out."""
        requested = [0.0] * 24
        for hour in (2, 3, 4, 5):
            requested[hour] = 5.0
        for hour in (18, 19, 20, 21):
            requested[hour] = -5.0

        outcome = simulate(
            scenario_asset, 50.0, horizon, requested, prices=scenario_prices
        )
        powers = outcome.powers

        assert powers[2] == pytest.approx(4.0)
        assert powers[3:6] == [0.0, 0.0, 0.0]
        assert powers[18] == pytest.approx(-5.0)
        assert powers[19] == pytest.approx(-2.0)
        assert powers[20:22] == [0.0, 0.0]
        assert outcome.entries[2].resulting_soc_percent == 90.0
        assert outcome.entries[18].resulting_soc_percent == pytest.approx(40.0)
        assert outcome.final_soc_percent == 20.0
        assert outcome.clipped_slots == 7

        value = arbitrage_value(outcome.entries, scenario_asset.round_trip_efficiency)
        assert value == pytest.approx(7 * 0.30 * 0.9 - 4 * 0.05)

    def test_soc_and_rate_invariants(
        self, scenario_asset: Asset, horizon: list[TimeSlot]
    ) -> None:
        """Test every entry stays within SoC and rate bounds."""
        requested = [(-1) ** i * 9.0 * (i % 5) for i in range(24)]
        outcome = simulate(scenario_asset, 50.0, horizon, requested)

        for entry in outcome.entries:
            assert 20.0 <= entry.resulting_soc_percent <= 90.0
            assert abs(entry.power_kw) <= scenario_asset.rate_limit_kw(entry.power_kw)

    def test_rounding_never_exceeds_rate_limit(self, horizon: list[TimeSlot]) -> None:
        """Test a rate limit with more than six decimals is never rounded past."""
        asset = Asset(
            asset_id="fine-grained",
            capacity_kwh=10.0,
            max_charge_rate_kw=1.2345675,
            max_discharge_rate_kw=1.2345675,
            round_trip_efficiency=0.9,
            min_soc_percent=20.0,
            max_soc_percent=90.0,
            current_soc_percent=50.0,
        )
        outcome = simulate(asset, 50.0, horizon[:2], [9.0, -9.0])

        assert outcome.powers[0] > 0
        assert outcome.powers[1] < 0
        for entry in outcome.entries:
            assert abs(entry.power_kw) <= 1.2345675
            assert 20.0 <= entry.resulting_soc_percent <= 90.0

    def test_out_of_window_initial_soc(
        self, scenario_asset: Asset, horizon: list[TimeSlot]
    ) -> None:
        """Test an asset below min SoC may charge but not discharge."""
        outcome = simulate(scenario_asset, 10.0, horizon[:2], [-5.0, 5.0])
        assert outcome.powers == [0.0, pytest.approx(5.0)]
        assert outcome.entries[1].resulting_soc_percent == pytest.approx(60.0)

    def test_missing_and_nan_requests_are_idle(
        self, scenario_asset: Asset, horizon: list[TimeSlot]
    ) -> None:
        """Test short, None and NaN requests produce idle slots."""
        outcome = simulate(scenario_asset, 50.0, horizon, [1.0, None, math.nan])
        assert len(outcome.entries) == 24
        assert outcome.powers[0] == pytest.approx(1.0)
        assert all(p == 0.0 for p in outcome.powers[1:])
        assert outcome.clipped_slots == 0

    def test_prices_carried_onto_entries(
        self,
        scenario_asset: Asset,
        horizon: list[TimeSlot],
        scenario_prices: list[float],
    ) -> None:
        """Test prices and carbon intensity are attached per slot."""
        carbon = [400.0] * 12
        outcome = simulate(
            scenario_asset, 50.0, horizon, [], prices=scenario_prices, carbon=carbon
        )
        assert outcome.entries[2].price == 0.05
        assert outcome.entries[0].carbon_intensity == 400.0
        assert outcome.entries[12].carbon_intensity is None

    def test_sub_hourly_slots(
        self, scenario_asset: Asset, base_timestamp: datetime
    ) -> None:
        """Test energy scales with slot length."""
        slots = build_horizon(base_timestamp, 15, 4)
        outcome = simulate(scenario_asset, 50.0, slots, [4.0] * 4)
        # 4 kW x 0.25 h = 1 kWh = 10% per slot, headroom 40%
        assert outcome.powers == pytest.approx([4.0] * 4)
        assert outcome.final_soc_percent == 90.0


class TestArbitrageValue:
    """Tests for the arbitrage valuation."""

    def test_unpriced_slots_ignored(
        self, scenario_asset: Asset, horizon: list[TimeSlot]
    ) -> None:
        """Test slots without a price contribute nothing."""
        outcome = simulate(
            scenario_asset, 50.0, horizon[:2], [-2.0, 2.0], prices=[0.2, None]
        )
        assert arbitrage_value(outcome.entries, 0.9) == pytest.approx(2 * 0.2 * 0.9)

    def test_negative_price_charging_earns(
        self, scenario_asset: Asset, horizon: list[TimeSlot]
    ) -> None:
        """Test charging at a negative price adds value."""
        outcome = simulate(scenario_asset, 50.0, horizon[:1], [2.0], prices=[-0.05])
        assert arbitrage_value(outcome.entries, 0.9) == pytest.approx(0.1)
