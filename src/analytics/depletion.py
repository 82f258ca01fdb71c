"""
src/analytics/depletion.py
──────────────────────────
Threshold-derived depletion events.

Fires once when a device crosses into the depleted state:
  generator → fuel level ≤ 1 %
  battery   → battery voltage ≤ class minimum (10.5 V / 21.0 V)
and re-arms only after the level has recovered (refuel / recharge).

The armed state lives in memory. After a restart each device is primed by
replaying its recent stored telemetry without firing, so a tank that is
still empty does not produce a second event.
"""
from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

from src.data.models import Subsystem, TelemetrySnapshot


@dataclass(frozen=True)
class DepletionLimits:
    fuel_empty_percent: float = 1.0
    fuel_rearm_percent: float = 5.0
    battery_rearm_margin_volts: float = 0.5


class DepletionDetector:
    def __init__(self, limits: DepletionLimits = DepletionLimits()) -> None:
        self._limits = limits
        self._lock = threading.Lock()
        self._tripped: set[tuple[str, Subsystem]] = set()
        self._primed: set[str] = set()

    def _transition(self, key: tuple[str, Subsystem], depleted: bool, recovered: bool) -> bool:
        if depleted and key not in self._tripped:
            self._tripped.add(key)
            return True
        if recovered:
            self._tripped.discard(key)
        return False

    def _apply(self, snapshot: TelemetrySnapshot, battery_min_voltage: float) -> list[Subsystem]:
        fired = []
        lim = self._limits
        fuel = snapshot.fuel_level
        if fuel is not None:
            key = (snapshot.device_id, Subsystem.GENERATOR)
            if self._transition(key, fuel <= lim.fuel_empty_percent, fuel >= lim.fuel_rearm_percent):
                fired.append(Subsystem.GENERATOR)

        volts = snapshot.battery_volts
        if volts is not None and volts > 0:
            key = (snapshot.device_id, Subsystem.BATTERY)
            recovered = volts >= battery_min_voltage + lim.battery_rearm_margin_volts
            if self._transition(key, volts <= battery_min_voltage, recovered):
                fired.append(Subsystem.BATTERY)
        return fired

    def observe(self, snapshot: TelemetrySnapshot, battery_min_voltage: float) -> list[Subsystem]:
        """Subsystems that became depleted with this snapshot."""
        with self._lock:
            return self._apply(snapshot, battery_min_voltage)

    def prime(self, device_id: str, history: Iterable[tuple[TelemetrySnapshot, float]]) -> None:
        """Replay (snapshot, battery minimum) pairs, oldest first, without firing."""
        with self._lock:
            for snapshot, battery_min_voltage in history:
                self._apply(snapshot, battery_min_voltage)
            self._primed.add(device_id)

    def is_primed(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._primed

    def is_tripped(self, device_id: str, subsystem: Subsystem) -> bool:
        with self._lock:
            return (device_id, subsystem) in self._tripped
