"""
config/settings.py
──────────────────
Application configuration loaded from environment variables.
"""
import os
from dataclasses import dataclass


@dataclass
class Settings:
    # Dashboard server
    DEBUG: bool = os.getenv("DEBUG", "true").lower() == "true"
    PORT: int = int(os.getenv("PORT", "8050"))
    HOST: str = os.getenv("HOST", "0.0.0.0")

    # SQLite path (":memory:" for tests)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "genset_monitor.db")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Live update interval in milliseconds
    UPDATE_INTERVAL_MS: int = int(os.getenv("UPDATE_INTERVAL_MS", "30000"))

    # Prediction cycle
    PREDICTION_INTERVAL_MINUTES: int = int(os.getenv("PREDICTION_INTERVAL_MINUTES", "30"))
    SCHEDULER_WORKERS: int = int(os.getenv("SCHEDULER_WORKERS", "4"))

    # Learning loop
    LEARNING_RATE: float = float(os.getenv("LEARNING_RATE", "0.3"))
    PREDICTION_MAX_AGE_DAYS: int = int(os.getenv("PREDICTION_MAX_AGE_DAYS", "7"))

    # Retention
    TELEMETRY_RETENTION_WEEKS: int = int(os.getenv("TELEMETRY_RETENTION_WEEKS", "6"))

    # Simulation: demo fleet seeding and live feed, off unless asked for
    SIMULATE_TELEMETRY: bool = os.getenv("SIMULATE_TELEMETRY", "false").lower() == "true"
    SIMULATION_SEED: int = int(os.getenv("SIMULATION_SEED", "42"))
    HISTORY_HOURS: int = int(os.getenv("HISTORY_HOURS", "24"))


settings = Settings()
