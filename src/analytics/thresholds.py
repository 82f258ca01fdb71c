"""
src/analytics/thresholds.py
────────────────────────────
Threshold evaluation engine.

Provides:
  - Default rule set seeded at device registration
  - Stateless evaluation of one snapshot against a device's rules
  - Configuration checks for rules whose minimum exceeds their maximum

Bounds are inclusive: a reading equal to min or max is in range.
Below min → WARNING, above max → CRITICAL.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np

from config.alarms import AlarmSeverity
from config.parameters import PARAMETER_READINGS, PARAMETERS, ReadingSource, ThresholdParameter
from src.data.models import Alarm, ConfigurationIssue, TelemetrySnapshot, ThresholdRule
from src.errors import ThresholdConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedReading:
    label: str
    value: float


@dataclass
class ThresholdEvaluation:
    alarms: list[Alarm] = field(default_factory=list)
    issues: list[ConfigurationIssue] = field(default_factory=list)


# ── Rule bootstrap ────────────────────────────────────────────────────────────

def default_rules(device_id: str) -> list[ThresholdRule]:
    """One conservative rule per known parameter."""
    return [
        ThresholdRule(
            device_id=device_id,
            parameter=parameter,
            min_value=info.default_min,
            max_value=info.default_max,
            unit=info.unit,
        )
        for parameter, info in PARAMETERS.items()
    ]


def validate_rule(rule: ThresholdRule) -> None:
    if rule.is_misconfigured:
        raise ThresholdConfigurationError(
            f"Invalid threshold for {rule.parameter.value}: "
            f"min {rule.min_value} exceeds max {rule.max_value}"
        )


# ── Reading resolution ────────────────────────────────────────────────────────

def _coerce(raw) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    return float(raw)


def _resolve_source(snapshot: TelemetrySnapshot, source: ReadingSource) -> float | None:
    values = [v for v in (_coerce(getattr(snapshot, f, None)) for f in source.fields) if v is not None]
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return float(np.mean(values))


def resolve_readings(snapshot: TelemetrySnapshot, parameter: ThresholdParameter) -> list[ResolvedReading]:
    """
    Expand a logical parameter into the labelled physical readings present
    on the snapshot. Absent readings are dropped.
    """
    resolved = []
    for source in PARAMETER_READINGS.get(parameter, ()):
        value = _resolve_source(snapshot, source)
        if value is not None:
            resolved.append(ResolvedReading(label=source.label, value=value))
    return resolved


# ── Evaluation ────────────────────────────────────────────────────────────────

def _format_message(rule: ThresholdRule, label: str, direction: str, bound: float) -> str:
    name = PARAMETERS[rule.parameter].display_name
    if label:
        name = f"{name} {label}"
    limit = f"{bound:.2f} {rule.unit}".rstrip()
    return f"{name} is {direction} threshold ({limit})"


def _check(rule: ThresholdRule, reading: ResolvedReading, timestamp: datetime) -> Alarm | None:
    if reading.value < rule.min_value:
        return Alarm(
            device_id=rule.device_id,
            parameter=rule.parameter,
            label=reading.label,
            message=_format_message(rule, reading.label, "below minimum", rule.min_value),
            severity=AlarmSeverity.WARNING,
            value=reading.value,
            timestamp=timestamp,
        )
    if reading.value > rule.max_value:
        return Alarm(
            device_id=rule.device_id,
            parameter=rule.parameter,
            label=reading.label,
            message=_format_message(rule, reading.label, "above maximum", rule.max_value),
            severity=AlarmSeverity.CRITICAL,
            value=reading.value,
            timestamp=timestamp,
        )
    return None


def evaluate_rules(rules: list[ThresholdRule], snapshot: TelemetrySnapshot) -> ThresholdEvaluation:
    """
    Check every rule against the snapshot.

    Misconfigured rules (min > max) raise no alarm on either side and are
    reported as configuration issues instead.
    """
    result = ThresholdEvaluation()
    for rule in rules:
        if rule.is_misconfigured:
            result.issues.append(
                ConfigurationIssue(
                    device_id=rule.device_id,
                    parameter=rule.parameter,
                    message=(
                        f"Threshold for {rule.parameter.value} is misconfigured: "
                        f"min {rule.min_value} > max {rule.max_value}"
                    ),
                )
            )
            continue
        for reading in resolve_readings(snapshot, rule.parameter):
            alarm = _check(rule, reading, snapshot.timestamp)
            if alarm is not None:
                result.alarms.append(alarm)
    return result


def evaluate(rules: list[ThresholdRule], snapshot: TelemetrySnapshot) -> list[Alarm]:
    evaluation = evaluate_rules(rules, snapshot)
    for issue in evaluation.issues:
        logger.error("Device %s: %s", issue.device_id, issue.message)
    return evaluation.alarms
