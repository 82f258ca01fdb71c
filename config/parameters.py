"""
config/parameters.py
────────────────────
Monitored genset parameters, their physical readings, and default limits.

A logical parameter maps to one or more physical readings on a telemetry
snapshot. Each reading is checked independently against the same bounds:

  GENERATOR_VOLTAGE_LN → L1-N, L2-N, L3-N
  REAL_POWER           → mean(P L1..L3) (Generator), P (Load)
  POWER_FACTOR         → Generator, Mains, Load
"""
from dataclasses import dataclass
from enum import Enum


class ThresholdParameter(str, Enum):
    RPM = "RPM"
    GENERATOR_FREQUENCY = "GENERATOR_FREQUENCY"
    MAINS_BUS_FREQUENCY = "MAINS_BUS_FREQUENCY"
    GENERATOR_VOLTAGE_LN = "GENERATOR_VOLTAGE_LN"
    GENERATOR_VOLTAGE_LL = "GENERATOR_VOLTAGE_LL"
    MAINS_BUS_VOLTAGE_LN = "MAINS_BUS_VOLTAGE_LN"
    MAINS_BUS_VOLTAGE_LL = "MAINS_BUS_VOLTAGE_LL"
    GENERATOR_CURRENT = "GENERATOR_CURRENT"
    REAL_POWER = "REAL_POWER"
    REACTIVE_POWER = "REACTIVE_POWER"
    POWER_FACTOR = "POWER_FACTOR"
    EARTH_FAULT_CURRENT = "EARTH_FAULT_CURRENT"
    ROCOF = "ROCOF"
    OIL_PRESSURE = "OIL_PRESSURE"
    OIL_TEMPERATURE = "OIL_TEMPERATURE"
    FUEL_LEVEL = "FUEL_LEVEL"
    BATTERY_VOLTAGE = "BATTERY_VOLTAGE"
    E_STOP = "E_STOP"


@dataclass(frozen=True)
class ParameterInfo:
    display_name: str
    unit: str
    default_min: float
    default_max: float


# ── Parameter registry ────────────────────────────────────────────────────────
PARAMETERS: dict[ThresholdParameter, ParameterInfo] = {
    ThresholdParameter.RPM: ParameterInfo("RPM", "rpm", 1400.0, 1600.0),
    ThresholdParameter.GENERATOR_FREQUENCY: ParameterInfo("Generator Frequency", "Hz", 49.0, 51.0),
    ThresholdParameter.MAINS_BUS_FREQUENCY: ParameterInfo("Mains/Bus Frequency", "Hz", 49.0, 51.0),
    ThresholdParameter.GENERATOR_VOLTAGE_LN: ParameterInfo("Generator Voltage L-N", "V", 200.0, 250.0),
    ThresholdParameter.GENERATOR_VOLTAGE_LL: ParameterInfo("Generator Voltage L-L", "V", 380.0, 420.0),
    ThresholdParameter.MAINS_BUS_VOLTAGE_LN: ParameterInfo("Mains/Bus Voltage L-N", "V", 200.0, 250.0),
    ThresholdParameter.MAINS_BUS_VOLTAGE_LL: ParameterInfo("Mains/Bus Voltage L-L", "V", 380.0, 420.0),
    ThresholdParameter.GENERATOR_CURRENT: ParameterInfo("Generator Current", "A", 0.0, 100.0),
    ThresholdParameter.REAL_POWER: ParameterInfo("Real Power (P)", "kW", 0.0, 500.0),
    ThresholdParameter.REACTIVE_POWER: ParameterInfo("Reactive Power (Q)", "kVAr", -100.0, 100.0),
    ThresholdParameter.POWER_FACTOR: ParameterInfo("Power Factor", "", 0.8, 1.0),
    ThresholdParameter.EARTH_FAULT_CURRENT: ParameterInfo("Earth Fault Current", "A", 0.0, 1.0),
    ThresholdParameter.ROCOF: ParameterInfo("ROCOF", "Hz/s", -2.0, 2.0),
    ThresholdParameter.OIL_PRESSURE: ParameterInfo("Oil Pressure", "Bar", 2.0, 6.0),
    ThresholdParameter.OIL_TEMPERATURE: ParameterInfo("Oil Temperature", "°C", 0.0, 120.0),
    ThresholdParameter.FUEL_LEVEL: ParameterInfo("Fuel Level", "%", 10.0, 100.0),
    ThresholdParameter.BATTERY_VOLTAGE: ParameterInfo("Battery Voltage", "V", 22.0, 28.0),
    # E-STOP must never be engaged
    ThresholdParameter.E_STOP: ParameterInfo("E-STOP", "", 0.0, 0.0),
}


@dataclass(frozen=True)
class ReadingSource:
    """
    One physical reading backing a logical parameter.

    `fields` with more than one entry are aggregated by the mean of the
    non-null values (e.g. per-phase real power).
    """
    label: str
    fields: tuple[str, ...]


def _single(field: str, label: str = "") -> ReadingSource:
    return ReadingSource(label=label, fields=(field,))


# ── Logical parameter → physical readings ─────────────────────────────────────
PARAMETER_READINGS: dict[ThresholdParameter, tuple[ReadingSource, ...]] = {
    ThresholdParameter.RPM: (_single("rpm"),),
    ThresholdParameter.GENERATOR_FREQUENCY: (_single("generator_frequency"),),
    ThresholdParameter.MAINS_BUS_FREQUENCY: (_single("mains_bus_frequency"),),
    ThresholdParameter.GENERATOR_VOLTAGE_LN: (
        _single("generator_voltage_l1n", "L1-N"),
        _single("generator_voltage_l2n", "L2-N"),
        _single("generator_voltage_l3n", "L3-N"),
    ),
    ThresholdParameter.GENERATOR_VOLTAGE_LL: (
        _single("generator_voltage_l1l2", "L1-L2"),
        _single("generator_voltage_l2l3", "L2-L3"),
        _single("generator_voltage_l3l1", "L3-L1"),
    ),
    ThresholdParameter.MAINS_BUS_VOLTAGE_LN: (
        _single("mains_bus_voltage_l1n", "L1-N"),
        _single("mains_bus_voltage_l2n", "L2-N"),
        _single("mains_bus_voltage_l3n", "L3-N"),
    ),
    ThresholdParameter.MAINS_BUS_VOLTAGE_LL: (
        _single("mains_bus_voltage_l1l2", "L1-L2"),
        _single("mains_bus_voltage_l2l3", "L2-L3"),
        _single("mains_bus_voltage_l3l1", "L3-L1"),
    ),
    ThresholdParameter.GENERATOR_CURRENT: (
        _single("generator_current_l1", "L1"),
        _single("generator_current_l2", "L2"),
        _single("generator_current_l3", "L3"),
    ),
    ThresholdParameter.REAL_POWER: (
        ReadingSource("(Generator)", ("generator_p_l1", "generator_p_l2", "generator_p_l3")),
        _single("load_p", "(Load)"),
    ),
    ThresholdParameter.REACTIVE_POWER: (
        _single("generator_q", "(Generator)"),
        _single("load_q", "(Load)"),
    ),
    ThresholdParameter.POWER_FACTOR: (
        _single("generator_power_factor", "(Generator)"),
        _single("mains_power_factor", "(Mains)"),
        _single("load_power_factor", "(Load)"),
    ),
    ThresholdParameter.EARTH_FAULT_CURRENT: (_single("earth_fault_current"),),
    ThresholdParameter.ROCOF: (
        _single("rocof"),
        _single("max_rocof", "(Max)"),
    ),
    ThresholdParameter.OIL_PRESSURE: (_single("oil_pressure"),),
    ThresholdParameter.OIL_TEMPERATURE: (_single("oil_temperature"),),
    ThresholdParameter.FUEL_LEVEL: (_single("fuel_level"),),
    ThresholdParameter.BATTERY_VOLTAGE: (
        _single("battery_volts", "(Battery)"),
        _single("d_plus", "(D+)"),
    ),
    ThresholdParameter.E_STOP: (_single("e_stop"),),
}
