"""
tests/conftest.py
─────────────────
Shared pytest fixtures for the Genset Monitor test suite.
"""
import os
from datetime import datetime, timedelta, timezone

import pytest

# Use in-memory SQLite for tests
os.environ.setdefault("DATABASE_URL", ":memory:")
os.environ.setdefault("HISTORY_HOURS", "6")
os.environ.setdefault("SIMULATION_SEED", "42")

DEVICE = "GEN-TEST"


class FakeClock:
    """Settable clock injected wherever the code asks for `now`."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now) -> FakeClock:
    return FakeClock(now)


@pytest.fixture
def store():
    from src.data.memory import InMemoryStore
    return InMemoryStore()


@pytest.fixture
def spec():
    from src.data.models import DeviceSpec
    return DeviceSpec(
        device_id=DEVICE,
        fuel_tank_capacity_liters=400.0,
        battery_voltage_nominal=24.0,
        generator_capacity_kw=200.0,
        battery_capacity_ah=100.0,
    )


@pytest.fixture
def registered(store, spec):
    """Store with DEVICE registered and its default rules seeded."""
    from src.analytics.thresholds import default_rules
    store.register_device(spec)
    store.save_threshold_rules(default_rules(DEVICE))
    return store


@pytest.fixture
def make_snapshot(now):
    """Factory: snapshot `minutes_ago` before `now` with the given readings."""
    from src.data.models import TelemetrySnapshot

    def _make(minutes_ago: float = 0.0, device_id: str = DEVICE, **readings):
        return TelemetrySnapshot(
            device_id=device_id,
            timestamp=now - timedelta(minutes=minutes_ago),
            **readings,
        )

    return _make


@pytest.fixture
def add_series(registered, make_snapshot):
    """Add (minutes_ago, readings) pairs to the registered store."""

    def _add(points):
        for minutes_ago, readings in points:
            registered.add_snapshot(make_snapshot(minutes_ago, **readings))
        return registered

    return _add


@pytest.fixture
def monitor(store, clock):
    from src.services.monitor import MonitoringService
    return MonitoringService(store, clock=clock)
