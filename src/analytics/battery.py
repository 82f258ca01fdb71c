"""
src/analytics/battery.py
────────────────────────
Battery runtime analyzer.

Drain rate is tracked in volts per hour on `battery_volts`. A stable voltage
yields no rate (treated as no measurable drain); a rising voltage is a
charge and also yields no rate. When nothing can be measured the analyzer
falls back to a conservative 0.5 V/h.

State of charge follows a piecewise-linear lead-acid curve with breakpoints
at 100 %, 50 % and 0 % per nominal voltage class (12 V / 24 V).
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import numpy as np

from config.analysis import BATTERY_ANALYSIS, CURVE_12V, CURVE_24V, BatteryAnalysis, VoltageCurve
from src.analytics.rates import RateEstimate, WindowRule, valid_value, window_rate
from src.data.models import DeviceSpec, RateSource, TelemetrySnapshot
from src.data.ports import TelemetryStore
from src.errors import DeviceNotFoundError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


# ── Voltage class helpers ─────────────────────────────────────────────────────

def curve_for(nominal_voltage: float | None, tuning: BatteryAnalysis = BATTERY_ANALYSIS) -> VoltageCurve:
    if nominal_voltage is not None and nominal_voltage >= tuning.high_voltage_class_above:
        return CURVE_24V
    return CURVE_12V


def nominal_voltage(
    spec: DeviceSpec | None,
    voltage: float | None = None,
    tuning: BatteryAnalysis = BATTERY_ANALYSIS,
) -> float:
    """Configured nominal voltage, else 24 V for readings above 20 V, else 12 V."""
    if spec is not None and spec.battery_voltage_nominal is not None:
        return spec.battery_voltage_nominal
    if voltage is not None and voltage > tuning.high_voltage_class_above:
        return 24.0
    return 12.0


def min_voltage(nominal: float | None) -> float:
    """Depletion threshold: the 0 % point of the voltage class."""
    return curve_for(nominal).empty


def estimate_soc(voltage: float | None, nominal: float | None = None) -> float | None:
    """
    State of charge (%) from resting voltage.

    12 V: 12.7 V → 100, 12.2 V → 50, 10.5 V → 0; 24 V doubles these.
    Clamped to [0, 100]; None for a missing or non-positive voltage.
    """
    if voltage is None or voltage <= 0:
        return None
    if nominal is None:
        nominal = nominal_voltage(None, voltage)
    curve = curve_for(nominal)

    if voltage >= curve.full:
        return 100.0
    if voltage <= curve.empty:
        return 0.0
    if voltage >= curve.half:
        return 50.0 + (voltage - curve.half) / (curve.full - curve.half) * 50.0
    return (voltage - curve.empty) / (curve.half - curve.empty) * 50.0


# ── Analyzer ──────────────────────────────────────────────────────────────────

class BatteryRuntimeAnalyzer:
    def __init__(
        self,
        store: TelemetryStore,
        tuning: BatteryAnalysis = BATTERY_ANALYSIS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._tuning = tuning
        self._clock = clock
        self._strict = WindowRule(tuning.min_points, tuning.min_change_volts, tuning.min_elapsed_hours)
        self._short = WindowRule(
            tuning.short_window_min_points,
            tuning.short_window_min_change_volts,
            tuning.short_window_min_elapsed_hours,
        )

    def _require_device(self, device_id: str) -> None:
        if not self._store.device_exists(device_id):
            raise DeviceNotFoundError(device_id)

    def _window(self, device_id: str, span: timedelta) -> list[TelemetrySnapshot]:
        now = self._clock()
        return self._store.get_snapshots(device_id, now - span, now)

    # ── Rates ─────────────────────────────────────────────────────────────────

    def current_rate(self, device_id: str, window_hours: float | None = None) -> float | None:
        """Measured drain (V/h); None when stable, charging or the window is unusable."""
        self._require_device(device_id)
        hours = window_hours if window_hours is not None else self._tuning.window_hours
        snapshots = self._window(device_id, timedelta(hours=hours))
        return window_rate(snapshots, "battery_volts", self._strict, stable_value=None)

    def adaptive_rate(self, device_id: str) -> RateEstimate:
        self._require_device(device_id)
        for hours in self._tuning.adaptive_windows_hours:
            rate = self.current_rate(device_id, hours)
            if rate is not None and rate > 0:
                return RateEstimate(rate, RateSource.MEASURED, hours)

        for minutes in self._tuning.adaptive_windows_minutes:
            snapshots = self._window(device_id, timedelta(minutes=minutes))
            rate = window_rate(snapshots, "battery_volts", self._short, stable_value=None)
            if rate is not None and rate > 0:
                return RateEstimate(rate, RateSource.MEASURED, minutes / 60.0)

        return RateEstimate(self.estimate_rate(device_id), RateSource.DEFAULT)

    def estimate_rate(self, device_id: str) -> float:
        self._require_device(device_id)
        logger.info(
            "Device %s: no measurable battery drain, using default %.2f V/h",
            device_id, self._tuning.default_volts_per_hour,
        )
        return self._tuning.default_volts_per_hour

    # ── Levels ────────────────────────────────────────────────────────────────

    def current_level(self, device_id: str) -> float | None:
        """Most recent valid battery voltage, looking back 5 → 15 → 60 minutes."""
        self._require_device(device_id)
        for minutes in self._tuning.level_lookback_minutes:
            for snapshot in reversed(self._window(device_id, timedelta(minutes=minutes))):
                voltage = valid_value(snapshot, "battery_volts")
                if voltage is not None:
                    return voltage
        logger.warning("No recent battery voltage for device %s", device_id)
        return None

    def nominal_voltage(self, device_id: str, voltage: float | None = None) -> float:
        self._require_device(device_id)
        return nominal_voltage(self._store.get_device_spec(device_id), voltage, self._tuning)

    def current_soc(self, device_id: str) -> float | None:
        voltage = self.current_level(device_id)
        if voltage is None:
            return None
        return estimate_soc(voltage, self.nominal_voltage(device_id, voltage))

    def remaining_capacity_ah(self, device_id: str) -> float | None:
        """SOC × rated Ah; None without a configured battery capacity."""
        self._require_device(device_id)
        spec = self._store.get_device_spec(device_id)
        if spec is None or spec.battery_capacity_ah is None:
            return None
        soc = self.current_soc(device_id)
        if soc is None:
            return None
        return soc / 100.0 * spec.battery_capacity_ah

    # ── State checks ──────────────────────────────────────────────────────────

    def is_charging(self, device_id: str) -> bool:
        """More than 60 % of above-noise transitions in the last 30 min are increases."""
        self._require_device(device_id)
        t = self._tuning
        snapshots = self._window(device_id, timedelta(minutes=t.charging_window_minutes))
        volts = [v for v in (valid_value(s, "battery_volts") for s in snapshots) if v is not None]
        if len(volts) < t.charging_min_points:
            return False

        transitions = increases = 0
        for prev, curr in zip(volts, volts[1:]):
            if abs(curr - prev) <= t.charging_noise_volts:
                continue
            transitions += 1
            if curr > prev:
                increases += 1
        return transitions > 0 and increases / transitions > t.charging_increase_ratio

    def is_voltage_stable(self, device_id: str) -> bool:
        self._require_device(device_id)
        t = self._tuning
        snapshots = self._window(device_id, timedelta(hours=t.stability_window_hours))
        volts = [v for v in (valid_value(s, "battery_volts") for s in snapshots) if v is not None]
        if len(volts) < t.stability_min_points:
            return False
        return float(np.std(volts)) < t.stability_max_std_volts
