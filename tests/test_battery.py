"""
tests/test_battery.py
──────────────────────
Tests for the battery runtime analyzer and the state-of-charge curve.
"""
import pytest

from src.analytics.battery import (
    BatteryRuntimeAnalyzer,
    estimate_soc,
    min_voltage,
    nominal_voltage,
)
from src.data.models import DeviceSpec, RateSource

DEVICE = "GEN-TEST"


@pytest.fixture
def analyzer(registered, clock):
    return BatteryRuntimeAnalyzer(registered, clock=clock)


def _volts(points):
    return [(minutes_ago, {"battery_volts": v}) for minutes_ago, v in points]


class TestStateOfCharge:
    @pytest.mark.parametrize("voltage, expected", [
        (12.7, 100.0),
        (13.2, 100.0),
        (12.2, 50.0),
        (12.45, 75.0),
        (11.35, 25.0),
        (10.5, 0.0),
        (9.8, 0.0),
    ])
    def test_12v_curve(self, voltage, expected):
        assert estimate_soc(voltage, 12.0) == pytest.approx(expected)

    @pytest.mark.parametrize("voltage, expected", [
        (25.4, 100.0),
        (24.9, 75.0),
        (24.4, 50.0),
        (21.0, 0.0),
    ])
    def test_24v_curve(self, voltage, expected):
        assert estimate_soc(voltage, 24.0) == pytest.approx(expected)

    def test_class_detected_from_voltage(self):
        assert estimate_soc(24.4) == pytest.approx(50.0)
        assert estimate_soc(12.2) == pytest.approx(50.0)

    @pytest.mark.parametrize("voltage", [None, 0.0, -1.0])
    def test_missing_voltage(self, voltage):
        assert estimate_soc(voltage) is None


class TestVoltageClass:
    def test_spec_wins(self):
        assert nominal_voltage(DeviceSpec(device_id="X", battery_voltage_nominal=12.0), 26.0) == 12.0

    def test_detected_from_reading(self):
        assert nominal_voltage(None, 26.0) == 24.0
        assert nominal_voltage(DeviceSpec(device_id="X"), 12.5) == 12.0

    def test_minimum_voltage(self):
        assert min_voltage(12.0) == 10.5
        assert min_voltage(24.0) == 21.0


class TestDrainRate:
    def test_measured_drain(self, analyzer, add_series):
        add_series(_volts([(120, 25.0), (90, 24.9), (60, 24.8), (30, 24.7), (0, 24.6)]))
        assert analyzer.current_rate(DEVICE, 2.0) == pytest.approx(0.2)

    def test_stable_voltage_has_no_rate(self, analyzer, add_series):
        add_series(_volts([(120, 25.0), (90, 25.02), (60, 24.98), (30, 25.0), (0, 24.95)]))
        assert analyzer.current_rate(DEVICE, 2.0) is None

    def test_charging_has_no_rate(self, analyzer, add_series):
        add_series(_volts([(120, 24.0), (90, 24.3), (60, 24.6), (30, 24.9), (0, 25.2)]))
        assert analyzer.current_rate(DEVICE, 2.0) is None

    def test_needs_five_points(self, analyzer, add_series):
        add_series(_volts([(120, 25.0), (60, 24.8), (0, 24.6)]))
        assert analyzer.current_rate(DEVICE, 2.0) is None

    def test_adaptive_short_window(self, analyzer, add_series):
        add_series(_volts([(20, 24.7), (0, 24.6)]))
        rate = analyzer.adaptive_rate(DEVICE)
        assert rate.source == RateSource.MEASURED
        assert rate.value == pytest.approx(0.3)

    def test_default_drain(self, analyzer):
        rate = analyzer.adaptive_rate(DEVICE)
        assert rate.source == RateSource.DEFAULT
        assert rate.value == 0.5
        assert not rate.is_measured


class TestLevelAndCapacity:
    def test_current_soc(self, analyzer, add_series):
        add_series(_volts([(2, 24.9)]))
        assert analyzer.current_soc(DEVICE) == pytest.approx(75.0)

    def test_remaining_capacity(self, analyzer, add_series):
        add_series(_volts([(1, 24.4)]))
        assert analyzer.remaining_capacity_ah(DEVICE) == pytest.approx(50.0)

    def test_remaining_capacity_unknown(self, store, clock, make_snapshot):
        store.register_device(DeviceSpec(device_id="BARE", battery_voltage_nominal=12.0))
        store.add_snapshot(make_snapshot(1, device_id="BARE", battery_volts=12.2))
        assert BatteryRuntimeAnalyzer(store, clock=clock).remaining_capacity_ah("BARE") is None

    def test_no_voltage(self, analyzer):
        assert analyzer.current_level(DEVICE) is None
        assert analyzer.current_soc(DEVICE) is None


class TestStateChecks:
    def test_rising_voltage_is_charging(self, analyzer, add_series):
        add_series(_volts([(30, 24.0), (20, 24.3), (10, 24.6), (0, 24.9)]))
        assert analyzer.is_charging(DEVICE)

    def test_falling_voltage_not_charging(self, analyzer, add_series):
        add_series(_volts([(30, 24.9), (20, 24.6), (10, 24.3), (0, 24.0)]))
        assert not analyzer.is_charging(DEVICE)

    def test_noise_not_charging(self, analyzer, add_series):
        add_series(_volts([(20, 24.0), (10, 24.02), (0, 24.04)]))
        assert not analyzer.is_charging(DEVICE)

    def test_too_few_points_not_charging(self, analyzer, add_series):
        add_series(_volts([(10, 24.0), (0, 24.9)]))
        assert not analyzer.is_charging(DEVICE)

    def test_frames_without_voltage_not_counted(self, analyzer, add_series):
        add_series([(30, {"rpm": 1500.0}), (10, {"battery_volts": 24.0}), (0, {"battery_volts": 24.9})])
        assert not analyzer.is_charging(DEVICE)

    def test_stability_counts_voltage_readings_only(self, analyzer, add_series):
        add_series(
            [(110 - 10 * i, {"rpm": 1500.0}) for i in range(8)]
            + _volts([(20, 25.0), (10, 25.0), (0, 25.0)])
        )
        assert not analyzer.is_voltage_stable(DEVICE)

    def test_voltage_stable(self, analyzer, add_series):
        add_series(_volts([(110 - 10 * i, 25.0 + (0.1 if i % 2 else -0.1)) for i in range(12)]))
        assert analyzer.is_voltage_stable(DEVICE)

    def test_voltage_unstable(self, analyzer, add_series):
        add_series(_volts([(110 - 10 * i, 22.0 + 0.5 * i) for i in range(12)]))
        assert not analyzer.is_voltage_stable(DEVICE)
