"""
src/analytics/fuel.py
─────────────────────
Fuel runtime analyzer.

Burn rate is expressed in % of tank per hour so that no calibration data is
needed; tank capacity only adds a L/h figure for display.

Rate chain (adaptive_rate):
  2 h → 1 h            strict window rule (≥ 3 points, ≥ 0.2 % change)
  30 min → 15 min      short window rule  (≥ 2 points, ≥ 0.1 % change)
  load-based estimate  10 %/h × load factor, clamped to [1, 15] %/h
  default              5 %/h when neither load data nor rating is known
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import numpy as np

from config.analysis import FUEL_ANALYSIS, FuelAnalysis
from src.analytics.rates import RateEstimate, WindowRule, valid_value, window_rate
from src.data.models import DeviceSpec, RateSource, TelemetrySnapshot
from src.data.ports import TelemetryStore
from src.errors import DeviceNotFoundError

logger = logging.getLogger(__name__)

_PHASE_POWER_FIELDS = ("generator_p_l1", "generator_p_l2", "generator_p_l3")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def snapshot_load_kw(snapshot: TelemetrySnapshot) -> float | None:
    """Sum of the positive per-phase real power readings, None if none."""
    phases = [getattr(snapshot, f) for f in _PHASE_POWER_FIELDS]
    positive = [p for p in phases if p is not None and p > 0]
    return float(sum(positive)) if positive else None


def liters_per_hour(rate_percent_per_hour: float, spec: DeviceSpec | None) -> float | None:
    if spec is None or spec.fuel_tank_capacity_liters is None:
        return None
    return rate_percent_per_hour / 100.0 * spec.fuel_tank_capacity_liters


class FuelRuntimeAnalyzer:
    def __init__(
        self,
        store: TelemetryStore,
        tuning: FuelAnalysis = FUEL_ANALYSIS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._tuning = tuning
        self._clock = clock
        self._strict = WindowRule(tuning.min_points, tuning.min_change_percent, tuning.min_elapsed_hours)
        self._short = WindowRule(
            tuning.short_window_min_points,
            tuning.short_window_min_change_percent,
            tuning.short_window_min_elapsed_hours,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _require_device(self, device_id: str) -> None:
        if not self._store.device_exists(device_id):
            raise DeviceNotFoundError(device_id)

    def _window(self, device_id: str, span: timedelta) -> list[TelemetrySnapshot]:
        now = self._clock()
        return self._store.get_snapshots(device_id, now - span, now)

    # ── Rates ─────────────────────────────────────────────────────────────────

    def current_rate(self, device_id: str, window_hours: float | None = None) -> float | None:
        """
        Measured burn rate (%/h) over the last `window_hours`.

        0.0 when the level is stable, None when the window is unusable
        (too few points, refuel, too short).
        """
        self._require_device(device_id)
        hours = window_hours if window_hours is not None else self._tuning.window_hours
        snapshots = self._window(device_id, timedelta(hours=hours))
        rate = window_rate(snapshots, "fuel_level", self._strict, stable_value=0.0)
        if rate:
            logger.debug("Device %s fuel burn rate %.3f %%/h over %.2f h", device_id, rate, hours)
        return rate

    def adaptive_rate(self, device_id: str) -> RateEstimate:
        """First positive measured rate down the window chain, else the estimate."""
        self._require_device(device_id)
        for hours in self._tuning.adaptive_windows_hours:
            rate = self.current_rate(device_id, hours)
            if rate is not None and rate > 0:
                return RateEstimate(rate, RateSource.MEASURED, hours)

        for minutes in self._tuning.adaptive_windows_minutes:
            snapshots = self._window(device_id, timedelta(minutes=minutes))
            rate = window_rate(snapshots, "fuel_level", self._short, stable_value=None)
            if rate is not None and rate > 0:
                return RateEstimate(rate, RateSource.MEASURED, minutes / 60.0)

        logger.info("Device %s: no measurable fuel burn, using load-based estimate", device_id)
        return self._estimate(device_id)

    def estimate_rate(self, device_id: str) -> float:
        self._require_device(device_id)
        return self._estimate(device_id).value

    def _estimate(self, device_id: str) -> RateEstimate:
        t = self._tuning
        spec = self._store.get_device_spec(device_id)
        rated_kw = spec.generator_capacity_kw if spec else None
        load_kw = self.average_load(device_id, t.load_window_hours)

        if rated_kw is None:
            if load_kw is None:
                return RateEstimate(t.default_percent_per_hour, RateSource.DEFAULT)
            load_factor = t.unknown_capacity_load_factor
        else:
            if load_kw is None:
                load_kw = rated_kw * t.assumed_load_fraction
            load_factor = load_kw / rated_kw

        rate = float(np.clip(
            t.full_load_burn_percent_per_hour * load_factor,
            t.estimate_min_percent_per_hour,
            t.estimate_max_percent_per_hour,
        ))
        logger.info(
            "Device %s estimated fuel burn %.2f %%/h (load %.1f kW, factor %.2f)",
            device_id, rate, load_kw, load_factor,
        )
        return RateEstimate(rate, RateSource.ESTIMATED)

    # ── Levels and load ───────────────────────────────────────────────────────

    def current_level(self, device_id: str) -> float | None:
        """Most recent valid fuel level, looking back 5 → 15 → 60 minutes."""
        self._require_device(device_id)
        for minutes in self._tuning.level_lookback_minutes:
            snapshots = self._window(device_id, timedelta(minutes=minutes))
            for snapshot in reversed(snapshots):
                level = valid_value(snapshot, "fuel_level")
                if level is not None:
                    return level
        logger.warning("No recent fuel level for device %s", device_id)
        return None

    def average_load(self, device_id: str, hours: float | None = None) -> float | None:
        """Mean generator load (kW) over snapshots with at least one positive phase."""
        self._require_device(device_id)
        span = hours if hours is not None else self._tuning.load_window_hours
        loads = [
            load for load in (snapshot_load_kw(s) for s in self._window(device_id, timedelta(hours=span)))
            if load is not None
        ]
        if not loads:
            return None
        return float(np.mean(loads))

    def liters_per_hour(self, device_id: str, rate_percent_per_hour: float) -> float | None:
        self._require_device(device_id)
        return liters_per_hour(rate_percent_per_hour, self._store.get_device_spec(device_id))

    def is_consumption_stable(self, device_id: str) -> bool:
        """True when more than 80 % of significant level changes over 4 h are decreases."""
        self._require_device(device_id)
        t = self._tuning
        snapshots = self._window(device_id, timedelta(hours=t.stability_window_hours))
        levels = [v for v in (valid_value(s, "fuel_level") for s in snapshots) if v is not None]
        if len(levels) < t.stability_min_points:
            return False

        transitions = decreases = 0
        for prev, curr in zip(levels, levels[1:]):
            if abs(prev - curr) <= t.stability_noise_percent:
                continue
            transitions += 1
            if curr < prev:
                decreases += 1
        return transitions > 0 and decreases / transitions > t.stability_decrease_ratio
