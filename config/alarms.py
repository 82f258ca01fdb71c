"""
config/alarms.py
────────────────
Alarm severity levels and display configuration.

WARNING  → reading below the configured minimum
CRITICAL → reading above the configured maximum
"""

from enum import Enum


class AlarmSeverity(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


SEVERITY_COLORS: dict[str, str] = {
    AlarmSeverity.WARNING: "#e8a020",
    AlarmSeverity.CRITICAL: "#da3633",
}

SEVERITY_LABELS: dict[str, str] = {
    AlarmSeverity.WARNING: "Warning",
    AlarmSeverity.CRITICAL: "Critical",
}

# Severity ordering for sorting (higher = more severe)
SEVERITY_ORDER: dict[str, int] = {
    AlarmSeverity.CRITICAL: 2,
    AlarmSeverity.WARNING: 1,
}

MAX_ALARMS_DISPLAY = 100
