"""Domain model: readings, thresholds, alerts, pump state and errors."""

from .models import (
    Alert,
    AlertType,
    Classification,
    NotificationSettings,
    PumpLog,
    PumpMode,
    PumpState,
    Reading,
    ThresholdSettings,
)
from .errors import (
    InvalidReading,
    ModeConflict,
    MonitorError,
    NotificationSoftFailure,
    PersistenceFailure,
    SettingsUnavailable,
    ValidationError,
)

__all__ = [
    "Alert",
    "AlertType",
    "Classification",
    "NotificationSettings",
    "PumpLog",
    "PumpMode",
    "PumpState",
    "Reading",
    "ThresholdSettings",
    "InvalidReading",
    "ModeConflict",
    "MonitorError",
    "NotificationSoftFailure",
    "PersistenceFailure",
    "SettingsUnavailable",
    "ValidationError",
]
