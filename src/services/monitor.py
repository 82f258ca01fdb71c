"""
src/services/monitor.py
───────────────────────
Monitoring service facade: the single entry point used by the scheduler,
the dashboard and inbound telemetry.

Concurrency:
  - Ingestion, prediction cycles and depletion events for one device run
    under that device's lock, so correction-factor read-modify-write
    sequences never interleave.
  - Different devices proceed in parallel.
  - Threshold evaluation is pure and takes no lock.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from config.parameters import PARAMETERS, ThresholdParameter
from config.settings import settings
from src.analytics import thresholds
from src.analytics.battery import BatteryRuntimeAnalyzer, min_voltage, nominal_voltage
from src.analytics.depletion import DepletionDetector
from src.analytics.fuel import FuelRuntimeAnalyzer
from src.analytics.learning import CorrectionLearningLoop
from src.analytics.prediction import RuntimePredictionEngine
from src.data.models import (
    AccuracyMetrics,
    Alarm,
    DeviceSpec,
    RuntimePrediction,
    Subsystem,
    TelemetrySnapshot,
    ThresholdRule,
    as_utc,
)
from src.data.ports import MonitorStore
from src.errors import DeviceNotFoundError, NoTelemetryError

logger = logging.getLogger(__name__)

# Telemetry replayed into the depletion detector on a device's first ingest
_PRIME_LOOKBACK = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class DeviceLocks:
    """Keyed registry of re-entrant locks, one per device."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, device_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = self._locks[device_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, device_id: str) -> Iterator[None]:
        with self.get(device_id):
            yield


@dataclass
class PredictionCycleResult:
    device_id: str
    generator: RuntimePrediction | None = None
    battery: RuntimePrediction | None = None
    notes: list[str] = field(default_factory=list)


@dataclass
class IngestResult:
    alarms: list[Alarm]
    depleted: list[Subsystem] = field(default_factory=list)


@dataclass(frozen=True)
class PurgeReport:
    predictions: int
    snapshots: int


class MonitoringService:
    def __init__(
        self,
        store: MonitorStore,
        clock: Callable[[], datetime] = _utcnow,
        detector: DepletionDetector | None = None,
        learning_rate: float | None = None,
    ) -> None:
        self.store = store
        self._clock = clock
        self._locks = DeviceLocks()
        self._detector = detector or DepletionDetector()
        self.fuel = FuelRuntimeAnalyzer(store, clock=clock)
        self.battery = BatteryRuntimeAnalyzer(store, clock=clock)
        self.engine = RuntimePredictionEngine(
            store, store, self.fuel, self.battery, clock=clock, learning_rate=learning_rate
        )
        self.learning = CorrectionLearningLoop(store, clock=clock, learning_rate=learning_rate)

    def _require_device(self, device_id: str) -> None:
        if not self.store.device_exists(device_id):
            raise DeviceNotFoundError(device_id)

    # ── Registration and thresholds ───────────────────────────────────────────

    def register_device(self, device_id: str, spec: DeviceSpec | None = None) -> list[ThresholdRule]:
        """Register (or re-register) a device; seeds default rules on first registration."""
        spec = spec or DeviceSpec(device_id=device_id)
        with self._locks.hold(device_id):
            self.store.register_device(spec.model_copy(update={"device_id": device_id}))
            rules = self.store.get_threshold_rules(device_id)
            if not rules:
                rules = thresholds.default_rules(device_id)
                self.store.save_threshold_rules(rules)
                logger.info("Registered device %s with %d default thresholds", device_id, len(rules))
        return rules

    def update_threshold(
        self,
        device_id: str,
        parameter: ThresholdParameter,
        min_value: float,
        max_value: float,
        unit: str | None = None,
    ) -> ThresholdRule:
        self._require_device(device_id)
        rule = ThresholdRule(
            device_id=device_id,
            parameter=parameter,
            min_value=min_value,
            max_value=max_value,
            unit=unit if unit is not None else PARAMETERS[parameter].unit,
        )
        thresholds.validate_rule(rule)
        self.store.save_threshold_rules([rule])
        return rule

    def get_threshold_rules(self, device_id: str) -> list[ThresholdRule]:
        self._require_device(device_id)
        return self.store.get_threshold_rules(device_id)

    def evaluate(self, device_id: str, snapshot: TelemetrySnapshot) -> list[Alarm]:
        self._require_device(device_id)
        return thresholds.evaluate(self.store.get_threshold_rules(device_id), snapshot)

    # ── Telemetry ─────────────────────────────────────────────────────────────

    def ingest(self, snapshot: TelemetrySnapshot) -> IngestResult:
        """Store a snapshot, raise alarms, and turn depletion crossings into events."""
        device_id = snapshot.device_id
        self._require_device(device_id)
        with self._locks.hold(device_id):
            spec = self.store.get_device_spec(device_id)
            if not self._detector.is_primed(device_id):
                history = self.store.get_snapshots(device_id, snapshot.timestamp - _PRIME_LOOKBACK, snapshot.timestamp)
                self._detector.prime(
                    device_id, [(s, min_voltage(nominal_voltage(spec, s.battery_volts))) for s in history]
                )

            self.store.add_snapshot(snapshot)
            alarms = self.evaluate(device_id, snapshot)

            floor = min_voltage(nominal_voltage(spec, snapshot.battery_volts))
            depleted = self._detector.observe(snapshot, floor)
            for subsystem in depleted:
                logger.info("Device %s %s depleted at %s", device_id, subsystem.value, snapshot.timestamp)
                self.learning.record_depletion_event(device_id, subsystem, snapshot.timestamp)
        return IngestResult(alarms=alarms, depleted=depleted)

    # ── Prediction and learning ───────────────────────────────────────────────

    def run_prediction_cycle(self, device_id: str) -> PredictionCycleResult:
        self._require_device(device_id)
        result = PredictionCycleResult(device_id=device_id)
        with self._locks.hold(device_id):
            try:
                result.generator = self.engine.predict_generator(device_id)
            except NoTelemetryError as exc:
                logger.warning("Device %s: %s", device_id, exc)
                result.notes.append(str(exc))
            result.battery = self.engine.predict_battery(device_id)
            if result.battery is None:
                result.notes.append("No battery prediction available")
        return result

    def record_depletion_event(
        self,
        device_id: str,
        subsystem: Subsystem,
        timestamp: datetime,
    ) -> RuntimePrediction | None:
        self._require_device(device_id)
        with self._locks.hold(device_id):
            return self.learning.record_depletion_event(device_id, subsystem, as_utc(timestamp))

    def get_latest_prediction(self, device_id: str, subsystem: Subsystem) -> RuntimePrediction | None:
        self._require_device(device_id)
        return self.store.latest_prediction(device_id, subsystem)

    def get_accuracy_metrics(self, device_id: str) -> AccuracyMetrics:
        self._require_device(device_id)
        return self.learning.accuracy_metrics(device_id)

    def list_devices(self) -> list[str]:
        return self.store.list_devices()

    # ── Retention ─────────────────────────────────────────────────────────────

    def purge_expired(self, now: datetime | None = None) -> PurgeReport:
        """Drop stale unreconciled predictions and telemetry past retention."""
        now = now or self._clock()
        report = PurgeReport(
            predictions=self.store.purge_predictions(now - timedelta(days=settings.PREDICTION_MAX_AGE_DAYS)),
            snapshots=self.store.purge_snapshots(now - timedelta(weeks=settings.TELEMETRY_RETENTION_WEEKS)),
        )
        if report.predictions or report.snapshots:
            logger.info(
                "Retention purge: %d predictions, %d snapshots", report.predictions, report.snapshots
            )
        return report

    def latest_snapshot(self, device_id: str, lookback: timedelta = timedelta(hours=1)) -> TelemetrySnapshot | None:
        self._require_device(device_id)
        now = self._clock()
        snapshots = self.store.get_snapshots(device_id, now - lookback, now)
        return snapshots[-1] if snapshots else None
