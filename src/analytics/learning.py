"""
src/analytics/learning.py
─────────────────────────
Self-correcting learning loop.

A depletion event is matched to the newest unreconciled prediction of the
same device/subsystem made within the lookback window (7 days) and at or
before the event. The prediction receives its actual runtime and error, and
the device's correction factor moves toward actual / raw runtime:

  factor ← α · (actual / raw) + (1 − α) · factor

The raw (uncorrected) runtime is the reference so that the factor does not
learn from its own previous correction.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from config.settings import settings
from src.analytics.prediction import get_or_create_factors
from src.data.models import (
    AccuracyMetrics,
    CorrectionFactors,
    RuntimePrediction,
    Subsystem,
    SubsystemAccuracy,
    as_utc,
)
from src.data.ports import PredictionStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def ema_update(old_factor: float, observed_ratio: float, learning_rate: float) -> float:
    return learning_rate * observed_ratio + (1.0 - learning_rate) * old_factor


def running_average(avg: float, count: int, sample: float) -> float:
    if count <= 0:
        return sample
    return (avg * count + sample) / (count + 1)


class CorrectionLearningLoop:
    def __init__(
        self,
        store: PredictionStore,
        lookback: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
        learning_rate: float | None = None,
    ) -> None:
        self._store = store
        self._lookback = lookback or timedelta(days=settings.PREDICTION_MAX_AGE_DAYS)
        self._clock = clock
        self._learning_rate = learning_rate

    def find_match(self, device_id: str, subsystem: Subsystem, event_at: datetime) -> RuntimePrediction | None:
        candidates = self._store.find_predictions(device_id, subsystem, event_at - self._lookback, event_at)
        for prediction in candidates:
            if prediction.actual_runtime_hours is None:
                return prediction
        return None

    def record_depletion_event(
        self,
        device_id: str,
        subsystem: Subsystem,
        event_at: datetime,
    ) -> RuntimePrediction | None:
        """
        Reconcile the matching prediction and learn from it.

        Returns the reconciled prediction, or None when nothing matched
        (in which case no correction state is touched).
        """
        event_at = as_utc(event_at)
        match = self.find_match(device_id, subsystem, event_at)
        if match is None:
            logger.warning(
                "No unreconciled %s prediction for device %s before %s; nothing learned",
                subsystem.value, device_id, event_at.isoformat(),
            )
            return None

        actual_hours = (event_at - match.predicted_at).total_seconds() / 3600.0
        error_hours = actual_hours - match.predicted_runtime_hours
        error_percent = error_hours / actual_hours * 100.0 if actual_hours > 0 else None

        reconciled = match.model_copy(update={
            "actual_runtime_hours": actual_hours,
            "actual_depletion_at": event_at,
            "prediction_error_hours": error_hours,
            "prediction_error_percent": error_percent,
        })
        self._store.update_prediction(reconciled)
        logger.info(
            "Device %s %s prediction %s reconciled: predicted %.2f h, actual %.2f h, error %.2f h",
            device_id, subsystem.value, reconciled.id,
            reconciled.predicted_runtime_hours, actual_hours, error_hours,
        )

        self._learn(reconciled, event_at)
        return reconciled

    def _learn(self, prediction: RuntimePrediction, event_at: datetime) -> None:
        now = self._clock()
        factors = get_or_create_factors(
            self._store, prediction.device_id, prediction.subsystem, now, self._learning_rate
        )
        actual = prediction.actual_runtime_hours
        raw = prediction.raw_runtime_hours

        if not actual or actual <= 0 or not raw or raw <= 0:
            logger.warning(
                "Device %s prediction %s: actual %.3f h / raw %.3f h unusable, factor unchanged",
                prediction.device_id, prediction.id, actual or 0.0, raw or 0.0,
            )
            self._store.save_correction_factors(
                factors.model_copy(update={"last_event_at": event_at, "last_updated_at": now})
            )
            return

        new_factor = ema_update(factors.correction_factor, actual / raw, factors.learning_rate)
        if not math.isfinite(new_factor) or new_factor <= 0:
            logger.error(
                "Device %s: rejected non-positive correction factor %r", prediction.device_id, new_factor
            )
            return

        updated: CorrectionFactors = factors.model_copy(update={
            "correction_factor": new_factor,
            "avg_error_percent": running_average(
                factors.avg_error_percent,
                factors.actual_event_count,
                abs(prediction.prediction_error_percent or 0.0),
            ),
            "actual_event_count": factors.actual_event_count + 1,
            "last_event_at": event_at,
            "last_updated_at": now,
        })
        self._store.save_correction_factors(updated)
        logger.info(
            "Device %s %s correction factor %.4f -> %.4f (avg error %.1f%%)",
            prediction.device_id, prediction.subsystem.value,
            factors.correction_factor, new_factor, updated.avg_error_percent,
        )

    def accuracy_metrics(self, device_id: str, recent_limit: int = 10) -> AccuracyMetrics:
        """Read-only summary; devices without learned state report the defaults."""
        per_subsystem = {}
        last_updated = None
        for subsystem in Subsystem:
            factors = self._store.get_correction_factors(device_id, subsystem)
            if factors is None:
                per_subsystem[subsystem] = SubsystemAccuracy(subsystem=subsystem)
                continue
            per_subsystem[subsystem] = SubsystemAccuracy(
                subsystem=subsystem,
                correction_factor=factors.correction_factor,
                prediction_count=factors.prediction_count,
                actual_event_count=factors.actual_event_count,
                avg_error_percent=factors.avg_error_percent,
                last_event_at=factors.last_event_at,
            )
            if factors.last_updated_at and (last_updated is None or factors.last_updated_at > last_updated):
                last_updated = factors.last_updated_at

        return AccuracyMetrics(
            device_id=device_id,
            generator=per_subsystem[Subsystem.GENERATOR],
            battery=per_subsystem[Subsystem.BATTERY],
            last_updated_at=last_updated,
            recent_reconciled=self._store.recent_reconciled(device_id, recent_limit),
        )
