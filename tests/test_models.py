"""
tests/test_models.py
─────────────────────
Tests for Pydantic v2 data models.
"""
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from config.alarms import AlarmSeverity
from config.parameters import ThresholdParameter
from src.data.models import (
    Alarm,
    CorrectionFactors,
    DeviceSpec,
    PredictionStatus,
    RuntimePrediction,
    Subsystem,
    TelemetrySnapshot,
    ThresholdRule,
)


class TestTelemetrySnapshot:
    def test_all_readings_optional(self, now):
        s = TelemetrySnapshot(device_id="D1", timestamp=now)
        assert s.fuel_level is None
        assert s.readings() == {}

    def test_readings_drop_nulls_and_identity(self, now):
        s = TelemetrySnapshot(device_id="D1", timestamp=now, fuel_level=50.0, e_stop=False)
        assert s.readings() == {"fuel_level": 50.0, "e_stop": False}

    def test_out_of_range_fuel_kept(self, now):
        s = TelemetrySnapshot(device_id="D1", timestamp=now, fuel_level=100.5, rpm=1800.0)
        assert s.fuel_level == 100.5
        assert s.rpm == 1800.0

    def test_naive_timestamp_taken_as_utc(self):
        s = TelemetrySnapshot(device_id="D1", timestamp=datetime(2024, 6, 1, 12, 0))
        assert s.timestamp == datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
        assert s.timestamp.tzinfo is not None

    def test_aware_timestamp_unchanged(self, now):
        assert TelemetrySnapshot(device_id="D1", timestamp=now).timestamp == now

    def test_frozen(self, now):
        s = TelemetrySnapshot(device_id="D1", timestamp=now, rpm=1500.0)
        with pytest.raises(ValidationError):
            s.rpm = 1400.0


class TestThresholdRule:
    def test_misconfigured(self):
        rule = ThresholdRule(device_id="D1", parameter=ThresholdParameter.RPM, min_value=10, max_value=5)
        assert rule.is_misconfigured

    def test_equal_bounds_valid(self):
        rule = ThresholdRule(device_id="D1", parameter=ThresholdParameter.E_STOP, min_value=0, max_value=0)
        assert not rule.is_misconfigured


class TestAlarm:
    def test_valid_alarm(self, now):
        alarm = Alarm(
            device_id="D1",
            parameter=ThresholdParameter.OIL_PRESSURE,
            message="Oil Pressure is below minimum threshold (2.00 Bar)",
            severity=AlarmSeverity.WARNING,
            value=1.5,
            timestamp=now,
        )
        assert alarm.severity == "WARNING"
        assert alarm.label == ""

    def test_invalid_severity(self, now):
        with pytest.raises(ValidationError):
            Alarm(
                device_id="D1",
                parameter=ThresholdParameter.RPM,
                message="x",
                severity="info",
                value=1.0,
                timestamp=now,
            )


class TestDeviceSpec:
    def test_everything_optional(self):
        spec = DeviceSpec(device_id="D1")
        assert spec.fuel_tank_capacity_liters is None

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValidationError):
            DeviceSpec(device_id="D1", fuel_tank_capacity_liters=0.0)


class TestRuntimePrediction:
    def _prediction(self, now, **overrides):
        fields = dict(
            device_id="D1",
            subsystem=Subsystem.GENERATOR,
            predicted_at=now,
            burn_rate=10.0,
            burn_rate_unit="%/h",
            raw_runtime_hours=5.0,
            correction_factor=1.0,
            predicted_runtime_hours=5.0,
            confidence_score=0.7,
            predicted_depletion_at=now,
        )
        fields.update(overrides)
        return RuntimePrediction(**fields)

    def test_status_pending_until_actual(self, now):
        assert self._prediction(now).status == PredictionStatus.PENDING_ACTUAL
        assert self._prediction(now, actual_runtime_hours=4.0).status == PredictionStatus.RECONCILED

    def test_confidence_bounds(self, now):
        with pytest.raises(ValidationError):
            self._prediction(now, confidence_score=1.5)

    def test_naive_times_taken_as_utc(self):
        naive = datetime(2024, 6, 1, 12, 0)
        p = self._prediction(naive, actual_depletion_at=datetime(2024, 6, 1, 18, 0))
        assert p.predicted_at == naive.replace(tzinfo=UTC)
        assert p.predicted_depletion_at.tzinfo is not None
        assert p.actual_depletion_at.tzinfo is not None


class TestCorrectionFactors:
    def test_defaults(self):
        f = CorrectionFactors(device_id="D1", subsystem=Subsystem.BATTERY)
        assert f.correction_factor == 1.0
        assert f.learning_rate == 0.3
        assert f.prediction_count == 0

    @pytest.mark.parametrize("rate", [0.0, 1.5])
    def test_learning_rate_range(self, rate):
        with pytest.raises(ValidationError):
            CorrectionFactors(device_id="D1", subsystem=Subsystem.BATTERY, learning_rate=rate)

    def test_factor_positive(self):
        with pytest.raises(ValidationError):
            CorrectionFactors(device_id="D1", subsystem=Subsystem.GENERATOR, correction_factor=0.0)

    def test_naive_timestamps_taken_as_utc(self):
        f = CorrectionFactors(
            device_id="D1",
            subsystem=Subsystem.GENERATOR,
            created_at=datetime(2024, 6, 1, 12, 0),
            last_event_at=datetime(2024, 6, 1, 13, 0),
        )
        assert f.created_at.tzinfo is not None
        assert f.last_event_at == datetime(2024, 6, 1, 13, 0, tzinfo=UTC)
