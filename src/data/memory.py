"""
src/data/memory.py
──────────────────
In-process store implementing both TelemetryStore and PredictionStore.

Used by the test suite and by short-lived simulations. All access is
guarded by a re-entrant lock; returned models are copies so callers cannot
mutate stored state behind the lock.
"""
from __future__ import annotations

import bisect
import threading
from collections import defaultdict
from datetime import datetime

from src.data.models import (
    CorrectionFactors,
    DeviceSpec,
    RuntimePrediction,
    Subsystem,
    TelemetrySnapshot,
    ThresholdRule,
)


class InMemoryStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._specs: dict[str, DeviceSpec] = {}
        self._snapshots: dict[str, list[TelemetrySnapshot]] = defaultdict(list)
        self._rules: dict[str, dict[str, ThresholdRule]] = defaultdict(dict)
        self._predictions: dict[int, RuntimePrediction] = {}
        self._factors: dict[tuple[str, Subsystem], CorrectionFactors] = {}
        self._next_id = 1

    # ── Devices ───────────────────────────────────────────────────────────────

    def device_exists(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._specs

    def list_devices(self) -> list[str]:
        with self._lock:
            return sorted(self._specs)

    def register_device(self, spec: DeviceSpec) -> None:
        with self._lock:
            self._specs[spec.device_id] = spec.model_copy()

    def get_device_spec(self, device_id: str) -> DeviceSpec | None:
        with self._lock:
            spec = self._specs.get(device_id)
            return spec.model_copy() if spec else None

    # ── Telemetry ─────────────────────────────────────────────────────────────

    def add_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        with self._lock:
            series = self._snapshots[snapshot.device_id]
            keys = [s.timestamp for s in series]
            series.insert(bisect.bisect_right(keys, snapshot.timestamp), snapshot)

    def get_snapshots(self, device_id: str, start: datetime, end: datetime) -> list[TelemetrySnapshot]:
        with self._lock:
            return [s for s in self._snapshots.get(device_id, []) if start <= s.timestamp <= end]

    def purge_snapshots(self, before: datetime) -> int:
        removed = 0
        with self._lock:
            for device_id, series in self._snapshots.items():
                kept = [s for s in series if s.timestamp >= before]
                removed += len(series) - len(kept)
                self._snapshots[device_id] = kept
        return removed

    # ── Thresholds ────────────────────────────────────────────────────────────

    def get_threshold_rules(self, device_id: str) -> list[ThresholdRule]:
        with self._lock:
            return [r.model_copy() for r in self._rules.get(device_id, {}).values()]

    def save_threshold_rules(self, rules: list[ThresholdRule]) -> None:
        with self._lock:
            for rule in rules:
                self._rules[rule.device_id][rule.parameter.value] = rule.model_copy()

    # ── Predictions ───────────────────────────────────────────────────────────

    def save_prediction(self, prediction: RuntimePrediction) -> RuntimePrediction:
        with self._lock:
            stored = prediction.model_copy(update={"id": self._next_id})
            self._predictions[self._next_id] = stored
            self._next_id += 1
            return stored.model_copy()

    def update_prediction(self, prediction: RuntimePrediction) -> None:
        if prediction.id is None:
            raise ValueError("Cannot update a prediction that was never saved")
        with self._lock:
            self._predictions[prediction.id] = prediction.model_copy()

    def find_predictions(
        self,
        device_id: str,
        subsystem: Subsystem,
        start: datetime,
        end: datetime,
    ) -> list[RuntimePrediction]:
        with self._lock:
            matches = [
                p.model_copy()
                for p in self._predictions.values()
                if p.device_id == device_id
                and p.subsystem == subsystem
                and start <= p.predicted_at <= end
            ]
        return sorted(matches, key=lambda p: (p.predicted_at, p.id), reverse=True)

    def latest_prediction(self, device_id: str, subsystem: Subsystem) -> RuntimePrediction | None:
        with self._lock:
            candidates = [
                p for p in self._predictions.values()
                if p.device_id == device_id and p.subsystem == subsystem
            ]
            if not candidates:
                return None
            return max(candidates, key=lambda p: (p.predicted_at, p.id)).model_copy()

    def recent_reconciled(self, device_id: str, limit: int = 10) -> list[RuntimePrediction]:
        with self._lock:
            done = [
                p.model_copy()
                for p in self._predictions.values()
                if p.device_id == device_id and p.actual_runtime_hours is not None
            ]
        done.sort(key=lambda p: (p.predicted_at, p.id), reverse=True)
        return done[:limit]

    def purge_predictions(self, before: datetime) -> int:
        with self._lock:
            stale = [
                pid for pid, p in self._predictions.items()
                if p.actual_runtime_hours is None and p.predicted_at < before
            ]
            for pid in stale:
                del self._predictions[pid]
        return len(stale)

    # ── Correction factors ────────────────────────────────────────────────────

    def get_correction_factors(self, device_id: str, subsystem: Subsystem) -> CorrectionFactors | None:
        with self._lock:
            factors = self._factors.get((device_id, subsystem))
            return factors.model_copy() if factors else None

    def save_correction_factors(self, factors: CorrectionFactors) -> None:
        with self._lock:
            self._factors[(factors.device_id, factors.subsystem)] = factors.model_copy()
