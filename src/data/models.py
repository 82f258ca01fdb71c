"""
src/data/models.py
──────────────────
Pydantic v2 value objects for telemetry, thresholds, alarms and predictions.
"""
from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from config.alarms import AlarmSeverity
from config.parameters import ThresholdParameter


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class Subsystem(str, Enum):
    GENERATOR = "generator"
    BATTERY = "battery"


class PredictionStatus(str, Enum):
    PENDING_ACTUAL = "pending_actual"
    RECONCILED = "reconciled"


class RateSource(str, Enum):
    MEASURED = "measured"
    ESTIMATED = "estimated"
    DEFAULT = "default"


class TelemetrySnapshot(BaseModel):
    """One immutable telemetry frame. Every reading may be missing."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    timestamp: UtcDatetime

    rpm: float | None = None
    generator_p_l1: float | None = None
    generator_p_l2: float | None = None
    generator_p_l3: float | None = None
    generator_q: float | None = None
    generator_power_factor: float | None = None
    generator_frequency: float | None = None
    generator_voltage_l1n: float | None = None
    generator_voltage_l2n: float | None = None
    generator_voltage_l3n: float | None = None
    generator_voltage_l1l2: float | None = None
    generator_voltage_l2l3: float | None = None
    generator_voltage_l3l1: float | None = None
    generator_current_l1: float | None = None
    generator_current_l2: float | None = None
    generator_current_l3: float | None = None
    earth_fault_current: float | None = None
    mains_bus_frequency: float | None = None
    mains_bus_voltage_l1n: float | None = None
    mains_bus_voltage_l2n: float | None = None
    mains_bus_voltage_l3n: float | None = None
    mains_bus_voltage_l1l2: float | None = None
    mains_bus_voltage_l2l3: float | None = None
    mains_bus_voltage_l3l1: float | None = None
    mains_power_factor: float | None = None
    rocof: float | None = None
    max_rocof: float | None = None
    load_p: float | None = None
    load_q: float | None = None
    load_power_factor: float | None = None
    battery_volts: float | None = None
    d_plus: float | None = None
    oil_pressure: float | None = None
    oil_temperature: float | None = None
    fuel_level: float | None = None
    e_stop: bool | None = None

    def readings(self) -> dict:
        """Reading fields only (no identity / timestamp), nulls dropped."""
        return self.model_dump(exclude={"device_id", "timestamp"}, exclude_none=True)


class ThresholdRule(BaseModel):
    device_id: str
    parameter: ThresholdParameter
    min_value: float
    max_value: float
    unit: str = ""

    @property
    def is_misconfigured(self) -> bool:
        return self.min_value > self.max_value


class Alarm(BaseModel):
    device_id: str
    parameter: ThresholdParameter
    label: str = ""
    message: str
    severity: AlarmSeverity
    value: float
    timestamp: UtcDatetime


class ConfigurationIssue(BaseModel):
    device_id: str
    parameter: ThresholdParameter
    message: str


class DeviceSpec(BaseModel):
    """Optional calibration data. Any field may be unknown."""

    device_id: str
    name: str | None = None
    fuel_tank_capacity_liters: float | None = Field(default=None, gt=0.0)
    battery_voltage_nominal: float | None = Field(default=None, gt=0.0)
    generator_capacity_kw: float | None = Field(default=None, gt=0.0)
    battery_capacity_ah: float | None = Field(default=None, gt=0.0)


class RuntimePrediction(BaseModel):
    id: int | None = None
    device_id: str
    subsystem: Subsystem
    predicted_at: UtcDatetime

    # Inputs at prediction time
    fuel_level_percent: float | None = None
    battery_voltage: float | None = None
    state_of_charge_percent: float | None = None
    avg_load_kw: float | None = None

    # Physics estimate
    burn_rate: float
    burn_rate_unit: str
    rate_source: RateSource = RateSource.MEASURED
    fuel_burn_rate_liters_per_hour: float | None = None
    raw_runtime_hours: float

    # Correction
    correction_factor: float
    predicted_runtime_hours: float
    confidence_score: float = Field(ge=0.0, le=1.0)
    predicted_depletion_at: UtcDatetime

    # Filled on reconciliation
    actual_runtime_hours: float | None = None
    actual_depletion_at: UtcDatetime | None = None
    prediction_error_hours: float | None = None
    prediction_error_percent: float | None = None

    @property
    def status(self) -> PredictionStatus:
        if self.actual_runtime_hours is None:
            return PredictionStatus.PENDING_ACTUAL
        return PredictionStatus.RECONCILED


class CorrectionFactors(BaseModel):
    device_id: str
    subsystem: Subsystem
    correction_factor: float = Field(default=1.0, gt=0.0)
    prediction_count: int = 0
    actual_event_count: int = 0
    avg_error_percent: float = 0.0
    learning_rate: float = Field(default=0.3, gt=0.0, le=1.0)
    created_at: UtcDatetime | None = None
    last_updated_at: UtcDatetime | None = None
    last_event_at: UtcDatetime | None = None


class SubsystemAccuracy(BaseModel):
    subsystem: Subsystem
    correction_factor: float = 1.0
    prediction_count: int = 0
    actual_event_count: int = 0
    avg_error_percent: float = 0.0
    last_event_at: UtcDatetime | None = None


class AccuracyMetrics(BaseModel):
    device_id: str
    generator: SubsystemAccuracy
    battery: SubsystemAccuracy
    last_updated_at: UtcDatetime | None = None
    recent_reconciled: list[RuntimePrediction] = Field(default_factory=list)
