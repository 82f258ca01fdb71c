"""
src/analytics/rates.py
──────────────────────
Sliding-window depletion rate shared by the fuel and battery analyzers.

Selection policy: the FIRST and the LAST valid reading (non-null, > 0, fuel ≤ 100 %) in
chronological order. Readings between them never enter the rate, so a
mid-window refuel followed by burn-down back below the first reading still
yields first→last consumption. A last reading above the first is a refuel /
charge and produces no rate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from src.data.models import RateSource, TelemetrySnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowRule:
    min_points: int
    min_change: float
    min_elapsed_hours: float


@dataclass(frozen=True)
class RateEstimate:
    value: float
    source: RateSource
    window_hours: float | None = None

    @property
    def is_measured(self) -> bool:
        return self.source == RateSource.MEASURED


# Readings above these are sensor glitches, not levels
_PLAUSIBLE_MAX = {"fuel_level": 100.0}


def valid_value(snapshot: TelemetrySnapshot, field: str) -> float | None:
    value = getattr(snapshot, field)
    if value is None or value <= 0:
        return None
    if value > _PLAUSIBLE_MAX.get(field, float("inf")):
        return None
    return float(value)


def first_last_valid(
    snapshots: list[TelemetrySnapshot], field: str
) -> tuple[TelemetrySnapshot, TelemetrySnapshot] | None:
    """First and last snapshot carrying a valid `field` reading, or None if fewer than two."""
    valid = [s for s in sorted(snapshots, key=lambda s: s.timestamp) if valid_value(s, field) is not None]
    if len(valid) < 2:
        return None
    return valid[0], valid[-1]


def window_rate(
    snapshots: list[TelemetrySnapshot],
    field: str,
    rule: WindowRule,
    stable_value: float | None,
) -> float | None:
    """
    Depletion per hour of `field` across the window.

    Returns `stable_value` when the change is below `rule.min_change`,
    None on too few points, an increase, or too short an elapsed time.
    """
    if len(snapshots) < rule.min_points:
        logger.debug("Insufficient data points for %s rate: %d", field, len(snapshots))
        return None

    pair = first_last_valid(snapshots, field)
    if pair is None:
        logger.debug("No valid %s readings in window", field)
        return None
    first, last = pair

    change = getattr(first, field) - getattr(last, field)
    if abs(change) < rule.min_change:
        return stable_value
    if change < 0:
        logger.info("%s increased over window (refuel/charge), no depletion rate", field)
        return None

    elapsed_hours = (last.timestamp - first.timestamp).total_seconds() / 3600.0
    if elapsed_hours < rule.min_elapsed_hours:
        logger.debug("Window too short for %s rate: %.3f h", field, elapsed_hours)
        return None

    return change / elapsed_hours
