"""
src/data/simulator.py
─────────────────────
Synthetic genset telemetry for demos and the dashboard.

Generates:
  - HISTORY_HOURS of 5-minute snapshots per demo device
  - Fuel burn proportional to load (with a per-device bias the physics
    estimate does not know about), refuelling when the tank runs low
  - Battery float charge (GEN-01) or slow discharge with periodic
    recharge (GEN-02), so both charging and depletion paths are exercised
  - A fresh snapshot continuing from the last one on each live tick

Reproducible with SIMULATION_SEED for consistent demos.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import numpy as np
import pandas as pd

from config.parameters import ThresholdParameter
from config.settings import settings
from src.data.models import DeviceSpec, TelemetrySnapshot

logger = logging.getLogger(__name__)

STEP = timedelta(minutes=5)


@dataclass(frozen=True)
class DemoDevice:
    spec: DeviceSpec
    base_load_kw: float
    burn_bias: float            # true burn / textbook burn
    refuel_below: float         # % level that triggers a refuel
    refuel_to: float
    battery_mode: str           # "float" | "discharge"
    drain_volts_per_hour: float = 0.0
    recharge_below: float = 0.0


# ── Demo fleet ────────────────────────────────────────────────────────────────

DEMO_FLEET: dict[str, DemoDevice] = {
    "GEN-01": DemoDevice(
        spec=DeviceSpec(
            device_id="GEN-01",
            name="Hospital standby 250 kVA",
            fuel_tank_capacity_liters=400.0,
            battery_voltage_nominal=24.0,
            generator_capacity_kw=200.0,
            battery_capacity_ah=180.0,
        ),
        base_load_kw=120.0,
        burn_bias=1.15,
        refuel_below=12.0,
        refuel_to=95.0,
        battery_mode="float",
    ),
    "GEN-02": DemoDevice(
        spec=DeviceSpec(
            device_id="GEN-02",
            name="Telecom site 60 kVA",
            fuel_tank_capacity_liters=150.0,
            battery_voltage_nominal=12.0,
        ),
        base_load_kw=30.0,
        burn_bias=0.9,
        refuel_below=15.0,
        refuel_to=90.0,
        battery_mode="discharge",
        drain_volts_per_hour=0.12,
        recharge_below=10.45,
    ),
}

RATED_VOLTAGE_LN = 230.0


def _next_snapshot(
    device: DemoDevice,
    ts: datetime,
    fuel: float,
    volts: float,
    rng: np.random.Generator,
) -> tuple[TelemetrySnapshot, float, float]:
    """One 5-minute step. Returns the snapshot plus the carried fuel / voltage state."""
    spec = device.spec
    hours = STEP.total_seconds() / 3600.0
    load = float(np.clip(device.base_load_kw + rng.normal(0, device.base_load_kw * 0.05), 0.0, None))
    phases = np.clip(load / 3.0 + rng.normal(0, load * 0.01, size=3), 0.0, None)

    # Fuel: 10 %/h at full load, scaled by the device's hidden bias
    rated = spec.generator_capacity_kw or 100.0
    fuel -= 10.0 * (load / rated) * device.burn_bias * hours
    if fuel <= device.refuel_below:
        logger.debug("%s refuelled at %s", spec.device_id, ts)
        fuel = device.refuel_to

    if device.battery_mode == "float":
        nominal = spec.battery_voltage_nominal or 24.0
        volts = nominal * 1.133 + rng.normal(0, 0.02)
    else:
        volts -= device.drain_volts_per_hour * hours
        if volts <= device.recharge_below:
            volts = 12.7

    v_ln = RATED_VOLTAGE_LN + rng.normal(0, 2.0, size=3)
    v_ll = v_ln * np.sqrt(3) + rng.normal(0, 1.0, size=3)
    currents = phases * 1000.0 / v_ln
    snapshot = TelemetrySnapshot(
        device_id=spec.device_id,
        timestamp=ts,
        rpm=round(float(1500 + rng.normal(0, 5)), 1),
        generator_frequency=round(float(50 + rng.normal(0, 0.05)), 3),
        mains_bus_frequency=round(float(50 + rng.normal(0, 0.03)), 3),
        generator_p_l1=round(float(phases[0]), 2),
        generator_p_l2=round(float(phases[1]), 2),
        generator_p_l3=round(float(phases[2]), 2),
        generator_q=round(float(load * 0.3 + rng.normal(0, 1.0)), 2),
        generator_power_factor=round(float(np.clip(0.92 + rng.normal(0, 0.01), 0.0, 1.0)), 3),
        generator_voltage_l1n=round(float(v_ln[0]), 1),
        generator_voltage_l2n=round(float(v_ln[1]), 1),
        generator_voltage_l3n=round(float(v_ln[2]), 1),
        generator_voltage_l1l2=round(float(v_ll[0]), 1),
        generator_voltage_l2l3=round(float(v_ll[1]), 1),
        generator_voltage_l3l1=round(float(v_ll[2]), 1),
        generator_current_l1=round(float(currents[0]), 1),
        generator_current_l2=round(float(currents[1]), 1),
        generator_current_l3=round(float(currents[2]), 1),
        earth_fault_current=round(float(abs(rng.normal(0.05, 0.02))), 3),
        rocof=round(float(rng.normal(0, 0.1)), 3),
        load_p=round(load, 2),
        load_q=round(float(load * 0.3), 2),
        load_power_factor=round(float(np.clip(0.92 + rng.normal(0, 0.01), 0.0, 1.0)), 3),
        battery_volts=round(float(volts), 3),
        oil_pressure=round(float(4.0 + rng.normal(0, 0.15)), 2),
        oil_temperature=round(float(85 + rng.normal(0, 1.5)), 1),
        fuel_level=round(float(np.clip(fuel, 0.0, 100.0)), 2),
        e_stop=False,
    )
    return snapshot, fuel, volts


# ── Public API ────────────────────────────────────────────────────────────────

def demo_specs() -> list[DeviceSpec]:
    return [d.spec for d in DEMO_FLEET.values()]


def generate_history(
    seed: int = settings.SIMULATION_SEED,
    hours: int = settings.HISTORY_HOURS,
    end: datetime | None = None,
) -> dict[str, list[TelemetrySnapshot]]:
    """
    Generate `hours` of 5-minute snapshots for each demo device,
    ending at `end` (default: now). Returns dict keyed by device_id.
    """
    rng = np.random.default_rng(seed)
    end_ts = (end or datetime.now(tz=UTC)).replace(second=0, microsecond=0)
    steps = int(timedelta(hours=hours) / STEP)
    start_ts = end_ts - STEP * (steps - 1)

    history: dict[str, list[TelemetrySnapshot]] = {}
    for device_id, device in DEMO_FLEET.items():
        fuel = float(rng.uniform(60.0, 90.0))
        volts = 12.6 if device.battery_mode == "discharge" else 0.0
        series = []
        for i in range(steps):
            snapshot, fuel, volts = _next_snapshot(device, start_ts + STEP * i, fuel, volts, rng)
            series.append(snapshot)
        history[device_id] = series
    return history


def generate_realtime_snapshot(
    last: TelemetrySnapshot,
    now: datetime | None = None,
    rng: np.random.Generator | None = None,
) -> TelemetrySnapshot:
    """A fresh snapshot continuing the fuel / battery state of `last`."""
    device = DEMO_FLEET[last.device_id]
    rng = rng or np.random.default_rng(int(datetime.now(tz=UTC).timestamp()) % 10_000)
    ts = (now or datetime.now(tz=UTC)).replace(second=0, microsecond=0)
    snapshot, _, _ = _next_snapshot(device, ts, last.fuel_level or device.refuel_to, last.battery_volts or 12.6, rng)
    return snapshot


def seed_demo(monitor, seed: int = settings.SIMULATION_SEED, hours: int = settings.HISTORY_HOURS) -> None:
    """Register the demo fleet on a MonitoringService and replay its history."""
    for spec in demo_specs():
        monitor.register_device(spec.device_id, spec)
        if spec.battery_voltage_nominal == 12.0:
            monitor.update_threshold(spec.device_id, ThresholdParameter.BATTERY_VOLTAGE, 10.5, 14.4)
    for device_id, series in generate_history(seed, hours).items():
        for snapshot in series:
            monitor.ingest(snapshot)
        logger.info("Seeded %d snapshots for %s", len(series), device_id)


def to_dataframe(snapshots: list[TelemetrySnapshot]) -> pd.DataFrame:
    """Convert a list of TelemetrySnapshots to a pandas DataFrame."""
    return pd.DataFrame([s.model_dump() for s in snapshots])
