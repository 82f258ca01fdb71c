"""
tests/test_thresholds.py
─────────────────────────
Tests for the threshold evaluation engine.
"""
import pytest

from config.alarms import AlarmSeverity
from config.parameters import PARAMETERS, ThresholdParameter
from src.analytics.thresholds import (
    default_rules,
    evaluate,
    evaluate_rules,
    resolve_readings,
    validate_rule,
)
from src.data.models import ThresholdRule
from src.errors import ThresholdConfigurationError


def _rule(parameter, lo, hi, unit=""):
    return ThresholdRule(device_id="D1", parameter=parameter, min_value=lo, max_value=hi, unit=unit)


class TestDefaultRules:
    def test_one_rule_per_parameter(self):
        rules = default_rules("D1")
        assert len(rules) == len(ThresholdParameter)
        assert {r.parameter for r in rules} == set(ThresholdParameter)

    def test_defaults_match_registry(self):
        rules = {r.parameter: r for r in default_rules("D1")}
        assert rules[ThresholdParameter.RPM].min_value == 1400.0
        assert rules[ThresholdParameter.RPM].max_value == 1600.0
        assert rules[ThresholdParameter.BATTERY_VOLTAGE].unit == "V"
        assert rules[ThresholdParameter.E_STOP].max_value == 0.0

    def test_no_default_is_misconfigured(self):
        assert not any(r.is_misconfigured for r in default_rules("D1"))


class TestBounds:
    @pytest.mark.parametrize("rpm", [1400.0, 1500.0, 1600.0])
    def test_inclusive_bounds(self, make_snapshot, rpm):
        rules = [_rule(ThresholdParameter.RPM, 1400.0, 1600.0, "rpm")]
        assert evaluate(rules, make_snapshot(rpm=rpm)) == []

    def test_below_min_is_warning(self, make_snapshot):
        rules = [_rule(ThresholdParameter.RPM, 1400.0, 1600.0, "rpm")]
        alarms = evaluate(rules, make_snapshot(rpm=1399.9))
        assert len(alarms) == 1
        assert alarms[0].severity == AlarmSeverity.WARNING
        assert alarms[0].value == pytest.approx(1399.9)
        assert alarms[0].message == "RPM is below minimum threshold (1400.00 rpm)"

    def test_above_max_is_critical(self, make_snapshot):
        rules = [_rule(ThresholdParameter.RPM, 1400.0, 1600.0, "rpm")]
        alarms = evaluate(rules, make_snapshot(rpm=1600.1))
        assert alarms[0].severity == AlarmSeverity.CRITICAL
        assert alarms[0].message == "RPM is above maximum threshold (1600.00 rpm)"

    def test_alarm_carries_snapshot_timestamp(self, make_snapshot, now):
        rules = [_rule(ThresholdParameter.OIL_PRESSURE, 2.0, 6.0, "Bar")]
        alarms = evaluate(rules, make_snapshot(oil_pressure=1.0))
        assert alarms[0].timestamp == now
        assert alarms[0].device_id == "D1"


class TestReadingExpansion:
    def test_phases_checked_independently(self, make_snapshot):
        rules = [_rule(ThresholdParameter.GENERATOR_VOLTAGE_LN, 200.0, 250.0, "V")]
        snap = make_snapshot(generator_voltage_l1n=230.0, generator_voltage_l2n=190.0, generator_voltage_l3n=260.0)
        alarms = evaluate(rules, snap)
        by_label = {a.label: a for a in alarms}
        assert set(by_label) == {"L2-N", "L3-N"}
        assert by_label["L2-N"].severity == AlarmSeverity.WARNING
        assert by_label["L3-N"].severity == AlarmSeverity.CRITICAL
        assert by_label["L2-N"].message == "Generator Voltage L-N L2-N is below minimum threshold (200.00 V)"

    def test_generator_real_power_uses_phase_mean(self, make_snapshot):
        rules = [_rule(ThresholdParameter.REAL_POWER, 0.0, 500.0, "kW")]
        # One phase above max, mean in range
        assert evaluate(rules, make_snapshot(generator_p_l1=100.0, generator_p_l2=200.0, generator_p_l3=600.0)) == []

        alarms = evaluate(rules, make_snapshot(generator_p_l1=600.0, generator_p_l2=600.0, generator_p_l3=600.0))
        assert len(alarms) == 1
        assert alarms[0].label == "(Generator)"
        assert alarms[0].value == pytest.approx(600.0)

    def test_mean_over_available_phases_only(self, make_snapshot):
        readings = resolve_readings(make_snapshot(generator_p_l1=100.0, generator_p_l3=300.0), ThresholdParameter.REAL_POWER)
        assert len(readings) == 1
        assert readings[0].value == pytest.approx(200.0)

    def test_power_factor_sources(self, make_snapshot):
        rules = [_rule(ThresholdParameter.POWER_FACTOR, 0.8, 1.0)]
        alarms = evaluate(rules, make_snapshot(generator_power_factor=0.95, load_power_factor=0.7))
        assert [a.label for a in alarms] == ["(Load)"]
        assert alarms[0].message == "Power Factor (Load) is below minimum threshold (0.80)"


class TestMissingAndBoolean:
    def test_null_readings_skipped(self, make_snapshot):
        assert evaluate(default_rules("D1"), make_snapshot()) == []

    def test_estop_engaged_is_critical(self, make_snapshot):
        rules = [_rule(ThresholdParameter.E_STOP, 0.0, 0.0)]
        alarms = evaluate(rules, make_snapshot(e_stop=True))
        assert alarms[0].severity == AlarmSeverity.CRITICAL
        assert alarms[0].value == 1.0

    def test_fuel_above_full_alarms_with_rest_of_frame(self, make_snapshot):
        alarms = evaluate(default_rules("D1"), make_snapshot(fuel_level=100.5, rpm=1800.0))
        by_parameter = {a.parameter: a for a in alarms}
        assert set(by_parameter) == {ThresholdParameter.FUEL_LEVEL, ThresholdParameter.RPM}
        assert by_parameter[ThresholdParameter.FUEL_LEVEL].severity == AlarmSeverity.CRITICAL
        assert by_parameter[ThresholdParameter.FUEL_LEVEL].value == pytest.approx(100.5)
        assert by_parameter[ThresholdParameter.RPM].severity == AlarmSeverity.CRITICAL

    def test_estop_released_is_ok(self, make_snapshot):
        rules = [_rule(ThresholdParameter.E_STOP, 0.0, 0.0)]
        assert evaluate(rules, make_snapshot(e_stop=False)) == []


class TestMisconfiguration:
    def test_reported_as_issue_not_alarm(self, make_snapshot):
        rules = [_rule(ThresholdParameter.FUEL_LEVEL, 10.0, 5.0, "%")]
        result = evaluate_rules(rules, make_snapshot(fuel_level=7.0))
        assert result.alarms == []
        assert len(result.issues) == 1
        assert result.issues[0].parameter == ThresholdParameter.FUEL_LEVEL

    def test_evaluate_skips_misconfigured_rule(self, make_snapshot):
        rules = [
            _rule(ThresholdParameter.FUEL_LEVEL, 10.0, 5.0, "%"),
            _rule(ThresholdParameter.RPM, 1400.0, 1600.0, "rpm"),
        ]
        alarms = evaluate(rules, make_snapshot(fuel_level=1.0, rpm=1700.0))
        assert [a.parameter for a in alarms] == [ThresholdParameter.RPM]

    def test_validate_rule_rejects_inverted_bounds(self):
        with pytest.raises(ThresholdConfigurationError):
            validate_rule(_rule(ThresholdParameter.RPM, 1600.0, 1400.0))

    def test_validate_rule_accepts_valid(self):
        validate_rule(_rule(ThresholdParameter.RPM, 1400.0, 1600.0))


class TestPurity:
    def test_idempotent(self, make_snapshot):
        rules = default_rules("D1")
        snap = make_snapshot(rpm=1700.0, oil_pressure=1.0, fuel_level=5.0, e_stop=True, battery_volts=20.0)
        first = evaluate(rules, snap)
        second = evaluate(rules, snap)
        assert first == second
        assert len(first) == 5

    def test_every_parameter_has_display_info(self):
        for parameter in ThresholdParameter:
            assert parameter in PARAMETERS
