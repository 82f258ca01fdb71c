"""
src/errors.py
─────────────
Exceptions raised by the monitoring core.

Only DeviceNotFoundError is expected to reach callers as a hard failure;
missing readings and short histories are handled by fallbacks instead.
"""


class MonitorError(Exception):
    """Base class for monitoring core errors."""


class DeviceNotFoundError(MonitorError):
    def __init__(self, device_id: str):
        super().__init__(f"Device not found: {device_id}")
        self.device_id = device_id


class NoTelemetryError(MonitorError):
    """Raised when a prediction needs a reading the device has not reported."""

    def __init__(self, device_id: str, quantity: str):
        super().__init__(
            f"No recent {quantity} data available for device {device_id}. "
            "Please ensure the device is sending telemetry."
        )
        self.device_id = device_id
        self.quantity = quantity


class ThresholdConfigurationError(MonitorError):
    """A threshold rule whose minimum exceeds its maximum."""
