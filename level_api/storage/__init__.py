from .alert_repository import AlertRepository
from .pump_log_repository import PumpLogRepository
from .reading_repository import ReadingRepository
from .schema import ensure_schema
from .settings_repository import SettingsRepository

__all__ = [
    "AlertRepository",
    "PumpLogRepository",
    "ReadingRepository",
    "SettingsRepository",
    "ensure_schema",
]

