"""
tests/test_store.py
────────────────────
Tests for the SQLite store adapter.
"""
from datetime import datetime, timedelta

import pytest

from config.parameters import ThresholdParameter
from src.analytics.thresholds import default_rules
from src.data.models import (
    CorrectionFactors,
    DeviceSpec,
    RateSource,
    RuntimePrediction,
    Subsystem,
    ThresholdRule,
)
from src.data.store import SqliteStore
from src.services.monitor import MonitoringService

DEVICE = "GEN-TEST"


@pytest.fixture
def db(spec):
    store = SqliteStore(":memory:")
    store.register_device(spec)
    yield store
    store.close()


def _prediction(at, subsystem=Subsystem.GENERATOR, **overrides):
    fields = dict(
        device_id=DEVICE,
        subsystem=subsystem,
        predicted_at=at,
        fuel_level_percent=56.0,
        burn_rate=12.0,
        burn_rate_unit="%/h",
        raw_runtime_hours=4.5,
        correction_factor=1.0,
        predicted_runtime_hours=4.5,
        confidence_score=0.7,
        predicted_depletion_at=at + timedelta(hours=4.5),
    )
    fields.update(overrides)
    return RuntimePrediction(**fields)


class TestDevices:
    def test_spec_round_trip(self, db, spec):
        assert db.device_exists(DEVICE)
        assert not db.device_exists("NOPE")
        assert db.get_device_spec(DEVICE) == spec
        assert db.get_device_spec("NOPE") is None

    def test_list_devices_sorted(self, db):
        db.register_device(DeviceSpec(device_id="A-01"))
        assert db.list_devices() == ["A-01", DEVICE]


class TestTelemetry:
    def test_range_inclusive_and_ordered(self, db, make_snapshot, now):
        for minutes_ago in (30, 90, 0, 200):
            db.add_snapshot(make_snapshot(minutes_ago, fuel_level=50.0 + minutes_ago / 10))
        series = db.get_snapshots(DEVICE, now - timedelta(minutes=90), now)
        assert [s.timestamp for s in series] == [
            now - timedelta(minutes=90),
            now - timedelta(minutes=30),
            now,
        ]

    def test_readings_preserved(self, db, make_snapshot, now):
        db.add_snapshot(make_snapshot(rpm=1500.0, e_stop=True, battery_volts=24.8))
        (snap,) = db.get_snapshots(DEVICE, now, now)
        assert snap.rpm == 1500.0
        assert snap.e_stop is True
        assert snap.battery_volts == 24.8
        assert snap.fuel_level is None

    def test_other_devices_excluded(self, db, make_snapshot, now):
        db.add_snapshot(make_snapshot(device_id="OTHER", rpm=1500.0))
        assert db.get_snapshots(DEVICE, now - timedelta(hours=1), now) == []

    def test_purge(self, db, make_snapshot, now):
        db.add_snapshot(make_snapshot(120, rpm=1500.0))
        db.add_snapshot(make_snapshot(0, rpm=1500.0))
        assert db.purge_snapshots(now - timedelta(hours=1)) == 1
        assert len(db.get_snapshots(DEVICE, now - timedelta(hours=3), now)) == 1


class TestThresholds:
    def test_upsert(self, db):
        db.save_threshold_rules(default_rules(DEVICE))
        db.save_threshold_rules([
            ThresholdRule(device_id=DEVICE, parameter=ThresholdParameter.RPM, min_value=1450, max_value=1550, unit="rpm")
        ])
        rules = db.get_threshold_rules(DEVICE)
        assert len(rules) == len(ThresholdParameter)
        rpm = next(r for r in rules if r.parameter == ThresholdParameter.RPM)
        assert (rpm.min_value, rpm.max_value) == (1450.0, 1550.0)

    def test_no_rules(self, db):
        assert db.get_threshold_rules("NOPE") == []


class TestPredictions:
    def test_save_assigns_id_and_round_trips(self, db, now):
        saved = db.save_prediction(_prediction(now, rate_source=RateSource.ESTIMATED))
        assert saved.id is not None
        loaded = db.latest_prediction(DEVICE, Subsystem.GENERATOR)
        assert loaded == saved
        assert loaded.battery_voltage is None

    def test_find_newest_first(self, db, now):
        first = db.save_prediction(_prediction(now - timedelta(hours=3)))
        second = db.save_prediction(_prediction(now - timedelta(hours=1)))
        db.save_prediction(_prediction(now - timedelta(hours=2), subsystem=Subsystem.BATTERY, burn_rate_unit="V/h"))
        found = db.find_predictions(DEVICE, Subsystem.GENERATOR, now - timedelta(hours=4), now)
        assert [p.id for p in found] == [second.id, first.id]

    def test_update_reconciles(self, db, now):
        saved = db.save_prediction(_prediction(now - timedelta(hours=5)))
        db.update_prediction(saved.model_copy(update={
            "actual_runtime_hours": 5.0,
            "actual_depletion_at": now,
            "prediction_error_hours": 0.5,
            "prediction_error_percent": 10.0,
        }))
        (reconciled,) = db.recent_reconciled(DEVICE)
        assert reconciled.actual_runtime_hours == 5.0
        assert reconciled.actual_depletion_at == now

    def test_update_requires_id(self, db, now):
        with pytest.raises(ValueError):
            db.update_prediction(_prediction(now))

    def test_purge_keeps_reconciled(self, db, now):
        old = now - timedelta(days=8)
        db.save_prediction(_prediction(old))
        db.save_prediction(_prediction(old, actual_runtime_hours=4.0, actual_depletion_at=old + timedelta(hours=4)))
        assert db.purge_predictions(now - timedelta(days=7)) == 1
        assert len(db.recent_reconciled(DEVICE)) == 1


class TestCorrectionFactors:
    def test_round_trip(self, db, now):
        factors = CorrectionFactors(
            device_id=DEVICE,
            subsystem=Subsystem.BATTERY,
            correction_factor=1.08,
            prediction_count=12,
            actual_event_count=2,
            avg_error_percent=7.5,
            created_at=now,
            last_updated_at=now,
        )
        db.save_correction_factors(factors)
        assert db.get_correction_factors(DEVICE, Subsystem.BATTERY) == factors
        assert db.get_correction_factors(DEVICE, Subsystem.GENERATOR) is None

    def test_replace(self, db):
        db.save_correction_factors(CorrectionFactors(device_id=DEVICE, subsystem=Subsystem.GENERATOR))
        db.save_correction_factors(
            CorrectionFactors(device_id=DEVICE, subsystem=Subsystem.GENERATOR, correction_factor=0.9)
        )
        assert db.get_correction_factors(DEVICE, Subsystem.GENERATOR).correction_factor == 0.9


class TestServiceOnSqlite:
    def test_prediction_cycle(self, clock, make_snapshot, spec):
        db = SqliteStore(":memory:")
        service = MonitoringService(db, clock=clock)
        service.register_device(DEVICE, spec)
        for minutes_ago, level in [(120, 80.0), (60, 68.0), (0, 56.0)]:
            service.ingest(make_snapshot(minutes_ago, fuel_level=level))

        cycle = service.run_prediction_cycle(DEVICE)
        assert cycle.generator.burn_rate == pytest.approx(12.0)
        assert db.get_correction_factors(DEVICE, Subsystem.GENERATOR).prediction_count == 1
        db.close()

    def test_depletion_event_with_naive_timestamp(self, clock, now, spec):
        db = SqliteStore(":memory:")
        service = MonitoringService(db, clock=clock)
        service.register_device(DEVICE, spec)
        db.save_prediction(_prediction(now))

        reconciled = service.record_depletion_event(DEVICE, Subsystem.GENERATOR, datetime(2024, 6, 1, 20, 0))
        assert reconciled is not None
        assert reconciled.actual_runtime_hours == pytest.approx(8.0)
        assert reconciled.actual_depletion_at == now + timedelta(hours=8)
        stored = db.latest_prediction(DEVICE, Subsystem.GENERATOR)
        assert stored.actual_runtime_hours == pytest.approx(8.0)
        db.close()
