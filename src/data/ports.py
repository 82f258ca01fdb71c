"""
src/data/ports.py
─────────────────
Read/write ports between the analytics core and persistence.

The analyzers, the prediction engine and the learning loop only see these
protocols; `InMemoryStore` and `SqliteStore` are the two adapters.
"""
from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.data.models import (
    CorrectionFactors,
    DeviceSpec,
    RuntimePrediction,
    Subsystem,
    TelemetrySnapshot,
    ThresholdRule,
)


class TelemetryStore(Protocol):
    def device_exists(self, device_id: str) -> bool: ...

    def list_devices(self) -> list[str]: ...

    def register_device(self, spec: DeviceSpec) -> None: ...

    def get_device_spec(self, device_id: str) -> DeviceSpec | None: ...

    def add_snapshot(self, snapshot: TelemetrySnapshot) -> None: ...

    def get_snapshots(
        self, device_id: str, start: datetime, end: datetime
    ) -> list[TelemetrySnapshot]:
        """Snapshots with start <= timestamp <= end, oldest first."""
        ...

    def purge_snapshots(self, before: datetime) -> int: ...

    def get_threshold_rules(self, device_id: str) -> list[ThresholdRule]: ...

    def save_threshold_rules(self, rules: list[ThresholdRule]) -> None: ...


class PredictionStore(Protocol):
    def save_prediction(self, prediction: RuntimePrediction) -> RuntimePrediction:
        """Persist a new prediction and return it with its id assigned."""
        ...

    def update_prediction(self, prediction: RuntimePrediction) -> None: ...

    def find_predictions(
        self,
        device_id: str,
        subsystem: Subsystem,
        start: datetime,
        end: datetime,
    ) -> list[RuntimePrediction]:
        """Predictions made within [start, end], newest first."""
        ...

    def latest_prediction(self, device_id: str, subsystem: Subsystem) -> RuntimePrediction | None: ...

    def recent_reconciled(self, device_id: str, limit: int = 10) -> list[RuntimePrediction]: ...

    def purge_predictions(self, before: datetime) -> int:
        """Drop unreconciled predictions made before `before`."""
        ...

    def get_correction_factors(self, device_id: str, subsystem: Subsystem) -> CorrectionFactors | None: ...

    def save_correction_factors(self, factors: CorrectionFactors) -> None: ...


class MonitorStore(TelemetryStore, PredictionStore, Protocol):
    """A single backend serving both ports (InMemoryStore, SqliteStore)."""
