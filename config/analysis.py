"""
config/analysis.py
──────────────────
Tunables for the runtime analyzers and the prediction engine.

Rates are derived from the first and last valid reading inside a sliding
window. A window is rejected (rate = None) when it has fewer than
`min_points` snapshots, spans less than `min_elapsed_hours`, or shows the
tracked quantity increasing (refuel / charge).

Lead-acid discharge curve (per nominal voltage class):
  12 V: 100% @ 12.7 V, 50% @ 12.2 V, 0% @ 10.5 V
  24 V: 100% @ 25.4 V, 50% @ 24.4 V, 0% @ 21.0 V
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class FuelAnalysis:
    window_hours: float = 2.0
    min_points: int = 3
    min_change_percent: float = 0.2
    min_elapsed_hours: float = 0.1         # 6 minutes
    # Adaptive fallback: hour windows use the strict rules above,
    # minute windows only need two points and a smaller change.
    adaptive_windows_hours: tuple[float, ...] = (2.0, 1.0)
    adaptive_windows_minutes: tuple[int, ...] = (30, 15)
    short_window_min_points: int = 2
    short_window_min_change_percent: float = 0.1
    short_window_min_elapsed_hours: float = 0.05
    # Current level lookback (minutes), most recent valid reading wins
    level_lookback_minutes: tuple[int, ...] = (5, 15, 60)
    # Load-based estimate
    full_load_burn_percent_per_hour: float = 10.0
    estimate_min_percent_per_hour: float = 1.0
    estimate_max_percent_per_hour: float = 15.0
    assumed_load_fraction: float = 0.5
    unknown_capacity_load_factor: float = 0.5
    load_window_hours: float = 1.0
    # Last resort when nothing else is usable
    default_percent_per_hour: float = 5.0
    # Stability check
    stability_window_hours: float = 4.0
    stability_min_points: int = 10
    stability_noise_percent: float = 0.1
    stability_decrease_ratio: float = 0.8


@dataclass(frozen=True)
class VoltageCurve:
    full: float
    half: float
    empty: float


@dataclass(frozen=True)
class BatteryAnalysis:
    window_hours: float = 2.0
    min_points: int = 5
    min_change_volts: float = 0.1
    min_elapsed_hours: float = 0.1
    adaptive_windows_hours: tuple[float, ...] = (2.0, 1.0)
    adaptive_windows_minutes: tuple[int, ...] = (30, 15)
    short_window_min_points: int = 2
    short_window_min_change_volts: float = 0.05
    short_window_min_elapsed_hours: float = 0.05
    level_lookback_minutes: tuple[int, ...] = (5, 15, 60)
    # Conservative drain when no history is usable
    default_volts_per_hour: float = 0.5
    # Charging detection
    charging_window_minutes: int = 30
    charging_min_points: int = 3
    charging_noise_volts: float = 0.05
    charging_increase_ratio: float = 0.6
    # Voltage stability
    stability_window_hours: float = 2.0
    stability_min_points: int = 10
    stability_max_std_volts: float = 0.5
    # Nominal class detection
    high_voltage_class_above: float = 20.0


CURVE_12V = VoltageCurve(full=12.7, half=12.2, empty=10.5)
CURVE_24V = VoltageCurve(full=25.4, half=24.4, empty=21.0)


@dataclass(frozen=True)
class PredictionTuning:
    # (upper bound in hours, confidence); last bucket is open-ended
    confidence_buckets: tuple[tuple[float, float], ...] = (
        (1.0, 0.95),
        (4.0, 0.85),
        (8.0, 0.70),
    )
    long_horizon_confidence: float = 0.50
    estimated_rate_penalty: float = 0.7


FUEL_ANALYSIS = FuelAnalysis()
BATTERY_ANALYSIS = BatteryAnalysis()
PREDICTION_TUNING = PredictionTuning()
