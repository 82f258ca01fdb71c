"""
src/data/store.py
─────────────────
SQLite adapter for the telemetry and prediction ports.

Provides:
  - devices / threshold rules    : registration-time configuration
  - telemetry                    : one row per snapshot, readings as JSON
  - runtime_predictions          : prediction audit trail + reconciliation
  - correction_factors           : learned state, one row per device/subsystem

Thread safety: check_same_thread=False + a per-store re-entrant lock.
Timestamps are stored as UTC ISO-8601 strings with microseconds so that
lexical order equals chronological order.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from datetime import UTC, datetime
from enum import Enum

import pandas as pd

from config.parameters import ThresholdParameter
from src.data.models import (
    CorrectionFactors,
    DeviceSpec,
    RuntimePrediction,
    Subsystem,
    TelemetrySnapshot,
    ThresholdRule,
)

# ── Schema ────────────────────────────────────────────────────────────────────

_CREATE_DEVICES = """
CREATE TABLE IF NOT EXISTS devices (
    device_id                 TEXT PRIMARY KEY,
    name                      TEXT,
    fuel_tank_capacity_liters REAL,
    battery_voltage_nominal   REAL,
    generator_capacity_kw     REAL,
    battery_capacity_ah       REAL
);
"""

_CREATE_TELEMETRY = """
CREATE TABLE IF NOT EXISTS telemetry (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id   TEXT NOT NULL,
    timestamp   TEXT NOT NULL,
    readings    TEXT NOT NULL
);
"""

_CREATE_THRESHOLDS = """
CREATE TABLE IF NOT EXISTS thresholds (
    device_id   TEXT NOT NULL,
    parameter   TEXT NOT NULL,
    min_value   REAL NOT NULL,
    max_value   REAL NOT NULL,
    unit        TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (device_id, parameter)
);
"""

_CREATE_PREDICTIONS = """
CREATE TABLE IF NOT EXISTS runtime_predictions (
    id                              INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id                       TEXT NOT NULL,
    subsystem                       TEXT NOT NULL,
    predicted_at                    TEXT NOT NULL,
    fuel_level_percent              REAL,
    battery_voltage                 REAL,
    state_of_charge_percent         REAL,
    avg_load_kw                     REAL,
    burn_rate                       REAL NOT NULL,
    burn_rate_unit                  TEXT NOT NULL,
    rate_source                     TEXT NOT NULL,
    fuel_burn_rate_liters_per_hour  REAL,
    raw_runtime_hours               REAL NOT NULL,
    correction_factor               REAL NOT NULL,
    predicted_runtime_hours         REAL NOT NULL,
    confidence_score                REAL NOT NULL,
    predicted_depletion_at          TEXT NOT NULL,
    actual_runtime_hours            REAL,
    actual_depletion_at             TEXT,
    prediction_error_hours          REAL,
    prediction_error_percent        REAL
);
"""

_CREATE_FACTORS = """
CREATE TABLE IF NOT EXISTS correction_factors (
    device_id           TEXT NOT NULL,
    subsystem           TEXT NOT NULL,
    correction_factor   REAL NOT NULL DEFAULT 1.0,
    prediction_count    INTEGER NOT NULL DEFAULT 0,
    actual_event_count  INTEGER NOT NULL DEFAULT 0,
    avg_error_percent   REAL NOT NULL DEFAULT 0.0,
    learning_rate       REAL NOT NULL DEFAULT 0.3,
    created_at          TEXT,
    last_updated_at     TEXT,
    last_event_at       TEXT,
    PRIMARY KEY (device_id, subsystem)
);
"""

_CREATE_IDX = """
CREATE INDEX IF NOT EXISTS idx_telemetry_dev_ts   ON telemetry (device_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_predictions_dev_ts ON runtime_predictions (device_id, subsystem, predicted_at);
"""

_PREDICTION_COLUMNS = [name for name in RuntimePrediction.model_fields if name != "id"]
_FACTOR_COLUMNS = list(CorrectionFactors.model_fields)


def _ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _to_column(value):
    if isinstance(value, datetime):
        return _ts(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _frame_records(df: pd.DataFrame) -> list[dict]:
    """DataFrame rows as dicts with SQL NULLs (NaN) mapped back to None."""
    if df.empty:
        return []
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


class SqliteStore:
    """SQLite-backed TelemetryStore + PredictionStore."""

    def __init__(self, database_url: str) -> None:
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(database_url, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock, self._conn:
            self._conn.executescript(
                _CREATE_DEVICES + _CREATE_TELEMETRY + _CREATE_THRESHOLDS
                + _CREATE_PREDICTIONS + _CREATE_FACTORS + _CREATE_IDX
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── Devices ───────────────────────────────────────────────────────────────

    def device_exists(self, device_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM devices WHERE device_id = ?", (device_id,)
            ).fetchone()
        return row is not None

    def list_devices(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT device_id FROM devices ORDER BY device_id").fetchall()
        return [r["device_id"] for r in rows]

    def register_device(self, spec: DeviceSpec) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """INSERT OR REPLACE INTO devices
                   (device_id, name, fuel_tank_capacity_liters, battery_voltage_nominal,
                    generator_capacity_kw, battery_capacity_ah)
                   VALUES (?,?,?,?,?,?)""",
                (
                    spec.device_id,
                    spec.name,
                    spec.fuel_tank_capacity_liters,
                    spec.battery_voltage_nominal,
                    spec.generator_capacity_kw,
                    spec.battery_capacity_ah,
                ),
            )

    def get_device_spec(self, device_id: str) -> DeviceSpec | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM devices WHERE device_id = ?", (device_id,)
            ).fetchone()
        return DeviceSpec(**dict(row)) if row else None

    # ── Telemetry ─────────────────────────────────────────────────────────────

    def add_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO telemetry (device_id, timestamp, readings) VALUES (?,?,?)",
                (snapshot.device_id, _ts(snapshot.timestamp), json.dumps(snapshot.readings())),
            )

    def get_snapshots(self, device_id: str, start: datetime, end: datetime) -> list[TelemetrySnapshot]:
        with self._lock:
            df = pd.read_sql_query(
                """SELECT device_id, timestamp, readings FROM telemetry
                   WHERE device_id = ? AND timestamp >= ? AND timestamp <= ?
                   ORDER BY timestamp ASC, id ASC""",
                self._conn,
                params=(device_id, _ts(start), _ts(end)),
            )
        return [
            TelemetrySnapshot(
                device_id=row["device_id"],
                timestamp=datetime.fromisoformat(row["timestamp"]),
                **json.loads(row["readings"]),
            )
            for row in _frame_records(df)
        ]

    def purge_snapshots(self, before: datetime) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM telemetry WHERE timestamp < ?", (_ts(before),))
        return cur.rowcount

    # ── Thresholds ────────────────────────────────────────────────────────────

    def get_threshold_rules(self, device_id: str) -> list[ThresholdRule]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM thresholds WHERE device_id = ? ORDER BY rowid", (device_id,)
            ).fetchall()
        return [
            ThresholdRule(
                device_id=r["device_id"],
                parameter=ThresholdParameter(r["parameter"]),
                min_value=r["min_value"],
                max_value=r["max_value"],
                unit=r["unit"],
            )
            for r in rows
        ]

    def save_threshold_rules(self, rules: list[ThresholdRule]) -> None:
        if not rules:
            return
        rows = [(r.device_id, r.parameter.value, r.min_value, r.max_value, r.unit) for r in rules]
        with self._lock, self._conn:
            self._conn.executemany(
                """INSERT INTO thresholds (device_id, parameter, min_value, max_value, unit)
                   VALUES (?,?,?,?,?)
                   ON CONFLICT (device_id, parameter) DO UPDATE SET
                       min_value = excluded.min_value,
                       max_value = excluded.max_value,
                       unit      = excluded.unit""",
                rows,
            )

    # ── Predictions ───────────────────────────────────────────────────────────

    def save_prediction(self, prediction: RuntimePrediction) -> RuntimePrediction:
        values = [_to_column(getattr(prediction, c)) for c in _PREDICTION_COLUMNS]
        placeholders = ",".join("?" for _ in _PREDICTION_COLUMNS)
        with self._lock, self._conn:
            cur = self._conn.execute(
                f"INSERT INTO runtime_predictions ({', '.join(_PREDICTION_COLUMNS)}) VALUES ({placeholders})",
                values,
            )
        return prediction.model_copy(update={"id": cur.lastrowid})

    def update_prediction(self, prediction: RuntimePrediction) -> None:
        if prediction.id is None:
            raise ValueError("Cannot update a prediction that was never saved")
        assignments = ", ".join(f"{c} = ?" for c in _PREDICTION_COLUMNS)
        values = [_to_column(getattr(prediction, c)) for c in _PREDICTION_COLUMNS]
        with self._lock, self._conn:
            self._conn.execute(
                f"UPDATE runtime_predictions SET {assignments} WHERE id = ?",
                [*values, prediction.id],
            )

    def _query_predictions(self, where: str, params: list, limit: int | None = None) -> list[RuntimePrediction]:
        sql = f"SELECT * FROM runtime_predictions WHERE {where} ORDER BY predicted_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params = [*params, limit]
        with self._lock:
            df = pd.read_sql_query(sql, self._conn, params=params)
        return [RuntimePrediction(**row) for row in _frame_records(df)]

    def find_predictions(
        self,
        device_id: str,
        subsystem: Subsystem,
        start: datetime,
        end: datetime,
    ) -> list[RuntimePrediction]:
        return self._query_predictions(
            "device_id = ? AND subsystem = ? AND predicted_at >= ? AND predicted_at <= ?",
            [device_id, subsystem.value, _ts(start), _ts(end)],
        )

    def latest_prediction(self, device_id: str, subsystem: Subsystem) -> RuntimePrediction | None:
        found = self._query_predictions(
            "device_id = ? AND subsystem = ?", [device_id, subsystem.value], limit=1
        )
        return found[0] if found else None

    def recent_reconciled(self, device_id: str, limit: int = 10) -> list[RuntimePrediction]:
        return self._query_predictions(
            "device_id = ? AND actual_runtime_hours IS NOT NULL", [device_id], limit=limit
        )

    def purge_predictions(self, before: datetime) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "DELETE FROM runtime_predictions WHERE actual_runtime_hours IS NULL AND predicted_at < ?",
                (_ts(before),),
            )
        return cur.rowcount

    # ── Correction factors ────────────────────────────────────────────────────

    def get_correction_factors(self, device_id: str, subsystem: Subsystem) -> CorrectionFactors | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM correction_factors WHERE device_id = ? AND subsystem = ?",
                (device_id, subsystem.value),
            ).fetchone()
        return CorrectionFactors(**dict(row)) if row else None

    def save_correction_factors(self, factors: CorrectionFactors) -> None:
        values = [_to_column(getattr(factors, c)) for c in _FACTOR_COLUMNS]
        placeholders = ",".join("?" for _ in _FACTOR_COLUMNS)
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT OR REPLACE INTO correction_factors ({', '.join(_FACTOR_COLUMNS)}) VALUES ({placeholders})",
                values,
            )
