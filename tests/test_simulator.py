"""
tests/test_simulator.py
────────────────────────
Tests for the synthetic genset telemetry simulator.
"""
from datetime import UTC, datetime

import numpy as np
import pandas as pd

from config.parameters import ThresholdParameter
from src.data.simulator import (
    DEMO_FLEET,
    demo_specs,
    generate_history,
    generate_realtime_snapshot,
    seed_demo,
    to_dataframe,
)

EARLIEST = datetime(2000, 1, 1, tzinfo=UTC)
LATEST = datetime(2100, 1, 1, tzinfo=UTC)


class TestGenerateHistory:
    def test_returns_whole_fleet(self, now):
        history = generate_history(seed=42, hours=2, end=now)
        assert set(history) == set(DEMO_FLEET)

    def test_five_minute_cadence(self, now):
        history = generate_history(seed=42, hours=3, end=now)
        series = history["GEN-01"]
        assert len(series) == 3 * 12
        assert series[-1].timestamp == now
        gaps = {(b.timestamp - a.timestamp).total_seconds() for a, b in zip(series, series[1:])}
        assert gaps == {300.0}

    def test_values_in_range(self, now):
        history = generate_history(seed=42, hours=6, end=now)
        for snapshot in history["GEN-01"] + history["GEN-02"]:
            assert 0.0 <= snapshot.fuel_level <= 100.0
            assert 1400.0 < snapshot.rpm < 1600.0
            assert snapshot.e_stop is False
        assert all(25.0 < s.battery_volts < 29.0 for s in history["GEN-01"])
        assert all(10.4 < s.battery_volts <= 12.7 for s in history["GEN-02"])

    def test_fuel_burns_down(self, now):
        series = generate_history(seed=42, hours=2, end=now)["GEN-01"]
        assert series[-1].fuel_level < series[0].fuel_level

    def test_discharging_battery(self, now):
        series = generate_history(seed=42, hours=2, end=now)["GEN-02"]
        assert series[-1].battery_volts < series[0].battery_volts

    def test_reproducibility(self, now):
        h1 = generate_history(seed=99, hours=2, end=now)
        h2 = generate_history(seed=99, hours=2, end=now)
        assert h1["GEN-01"] == h2["GEN-01"]

    def test_different_seeds_differ(self, now):
        h1 = generate_history(seed=1, hours=2, end=now)
        h2 = generate_history(seed=2, hours=2, end=now)
        assert any(a.rpm != b.rpm for a, b in zip(h1["GEN-01"], h2["GEN-01"]))


class TestRealtimeSnapshot:
    def test_continues_state(self, now):
        last = generate_history(seed=42, hours=1, end=now)["GEN-02"][-1]
        snap = generate_realtime_snapshot(last, now=now, rng=np.random.default_rng(0))
        assert snap.device_id == "GEN-02"
        assert snap.timestamp == now
        assert snap.fuel_level < last.fuel_level
        assert snap.battery_volts < last.battery_volts

    def test_timestamp_is_aware(self, now):
        last = generate_history(seed=42, hours=1, end=now)["GEN-01"][-1]
        assert generate_realtime_snapshot(last).timestamp.tzinfo is not None


class TestSeedDemo:
    def test_registers_and_replays(self, monitor):
        seed_demo(monitor, seed=7, hours=2)
        assert monitor.list_devices() == sorted(s.device_id for s in demo_specs())
        for device_id in DEMO_FLEET:
            assert len(monitor.store.get_snapshots(device_id, EARLIEST, LATEST)) == 24

    def test_12v_battery_thresholds(self, monitor):
        seed_demo(monitor, seed=7, hours=1)
        rule = next(
            r for r in monitor.get_threshold_rules("GEN-02")
            if r.parameter == ThresholdParameter.BATTERY_VOLTAGE
        )
        assert (rule.min_value, rule.max_value) == (10.5, 14.4)


class TestToDataframe:
    def test_returns_dataframe(self, now):
        history = generate_history(seed=42, hours=2, end=now)
        df = to_dataframe(history["GEN-01"])
        assert isinstance(df, pd.DataFrame)
        assert len(df) == 24
        assert "fuel_level" in df.columns
        assert "battery_volts" in df.columns
