"""
src/analytics/prediction.py
───────────────────────────
Runtime prediction engine.

  raw runtime       = remaining / rate
                      generator: fuel % / (%/h)
                      battery:   (V - V_min) / (V/h)
  corrected runtime = raw × learned correction factor
  confidence        = step function of the corrected horizon,
                      × 0.7 when the rate was not measured

Every prediction is persisted together with its inputs and increments the
device's prediction counter; the learning loop reconciles them later.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from config.analysis import PREDICTION_TUNING, PredictionTuning
from config.settings import settings
from src.analytics.battery import BatteryRuntimeAnalyzer, estimate_soc, min_voltage
from src.analytics.fuel import FuelRuntimeAnalyzer
from src.analytics.rates import RateEstimate
from src.data.models import CorrectionFactors, RuntimePrediction, Subsystem
from src.data.ports import PredictionStore, TelemetryStore
from src.errors import DeviceNotFoundError, NoTelemetryError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def confidence_score(
    runtime_hours: float,
    estimated: bool = False,
    tuning: PredictionTuning = PREDICTION_TUNING,
) -> float:
    """
    Trust in a runtime horizon:
      < 1 h → 0.95,  < 4 h → 0.85,  < 8 h → 0.70,  otherwise 0.50
    """
    score = tuning.long_horizon_confidence
    for upper_hours, bucket_score in tuning.confidence_buckets:
        if runtime_hours < upper_hours:
            score = bucket_score
            break
    if estimated:
        score *= tuning.estimated_rate_penalty
    return score


def get_or_create_factors(
    store: PredictionStore,
    device_id: str,
    subsystem: Subsystem,
    now: datetime,
    learning_rate: float | None = None,
) -> CorrectionFactors:
    factors = store.get_correction_factors(device_id, subsystem)
    if factors is not None:
        return factors
    logger.info("Creating %s correction factors for device %s", subsystem.value, device_id)
    factors = CorrectionFactors(
        device_id=device_id,
        subsystem=subsystem,
        learning_rate=learning_rate if learning_rate is not None else settings.LEARNING_RATE,
        created_at=now,
        last_updated_at=now,
    )
    store.save_correction_factors(factors)
    return factors


class RuntimePredictionEngine:
    def __init__(
        self,
        telemetry: TelemetryStore,
        predictions: PredictionStore,
        fuel: FuelRuntimeAnalyzer | None = None,
        battery: BatteryRuntimeAnalyzer | None = None,
        tuning: PredictionTuning = PREDICTION_TUNING,
        clock: Callable[[], datetime] = _utcnow,
        learning_rate: float | None = None,
    ) -> None:
        self._telemetry = telemetry
        self._predictions = predictions
        self._fuel = fuel or FuelRuntimeAnalyzer(telemetry, clock=clock)
        self._battery = battery or BatteryRuntimeAnalyzer(telemetry, clock=clock)
        self._tuning = tuning
        self._clock = clock
        self._learning_rate = learning_rate

    def _require_device(self, device_id: str) -> None:
        if not self._telemetry.device_exists(device_id):
            raise DeviceNotFoundError(device_id)

    def _finalize(
        self,
        device_id: str,
        subsystem: Subsystem,
        raw_hours: float,
        rate: RateEstimate,
        now: datetime,
        **inputs,
    ) -> RuntimePrediction:
        factors = get_or_create_factors(self._predictions, device_id, subsystem, now, self._learning_rate)
        corrected = raw_hours * factors.correction_factor
        confidence = confidence_score(corrected, estimated=not rate.is_measured, tuning=self._tuning)

        prediction = self._predictions.save_prediction(
            RuntimePrediction(
                device_id=device_id,
                subsystem=subsystem,
                predicted_at=now,
                burn_rate=rate.value,
                rate_source=rate.source,
                raw_runtime_hours=raw_hours,
                correction_factor=factors.correction_factor,
                predicted_runtime_hours=corrected,
                confidence_score=confidence,
                predicted_depletion_at=now + timedelta(hours=corrected),
                **inputs,
            )
        )
        self._predictions.save_correction_factors(
            factors.model_copy(update={"prediction_count": factors.prediction_count + 1})
        )
        logger.info(
            "Device %s %s runtime %.2f h (raw %.2f h, factor %.3f, confidence %.2f, rate %s)",
            device_id, subsystem.value, corrected, raw_hours,
            factors.correction_factor, confidence, rate.source.value,
        )
        return prediction

    # ── Generator ─────────────────────────────────────────────────────────────

    def predict_generator(self, device_id: str) -> RuntimePrediction:
        """Fuel-percentage runtime. Raises NoTelemetryError without a fuel level."""
        self._require_device(device_id)
        now = self._clock()

        level = self._fuel.current_level(device_id)
        if level is None:
            raise NoTelemetryError(device_id, "fuel level")

        rate = self._fuel.adaptive_rate(device_id)
        return self._finalize(
            device_id,
            Subsystem.GENERATOR,
            raw_hours=level / rate.value,
            rate=rate,
            now=now,
            burn_rate_unit="%/h",
            fuel_level_percent=level,
            avg_load_kw=self._fuel.average_load(device_id, 1.0),
            fuel_burn_rate_liters_per_hour=self._fuel.liters_per_hour(device_id, rate.value),
        )

    # ── Battery ───────────────────────────────────────────────────────────────

    def predict_battery(self, device_id: str) -> RuntimePrediction | None:
        """
        Voltage-based runtime down to the class minimum.

        None (no prediction available) when there is no voltage reading,
        the battery is charging, or it is already at/below minimum voltage.
        """
        self._require_device(device_id)
        now = self._clock()

        voltage = self._battery.current_level(device_id)
        if voltage is None:
            logger.warning("No battery voltage for device %s, skipping prediction", device_id)
            return None
        if self._battery.is_charging(device_id):
            logger.info("Battery charging on device %s, runtime prediction suppressed", device_id)
            return None

        nominal = self._battery.nominal_voltage(device_id, voltage)
        floor = min_voltage(nominal)
        headroom = voltage - floor
        if headroom <= 0:
            logger.warning("Battery on device %s already at minimum (%.2f V <= %.2f V)", device_id, voltage, floor)
            return None

        rate = self._battery.adaptive_rate(device_id)
        return self._finalize(
            device_id,
            Subsystem.BATTERY,
            raw_hours=headroom / rate.value,
            rate=rate,
            now=now,
            burn_rate_unit="V/h",
            battery_voltage=voltage,
            state_of_charge_percent=estimate_soc(voltage, nominal),
            avg_load_kw=self._fuel.average_load(device_id, 2.0),
        )
