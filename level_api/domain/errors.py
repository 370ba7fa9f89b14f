"""Error taxonomy of the evaluation engine.

Only ValidationError and ModeConflict are meant to reach callers; the
rest are absorbed and logged inside the engine.
"""

from __future__ import annotations

from typing import Optional


class MonitorError(Exception):
    """Base for every error raised by the engine."""


class ValidationError(MonitorError):
    """Malformed or missing reading input. Rejected before persistence."""


class InvalidReading(ValidationError):
    """A directly supplied level that is not a finite, non-negative number."""


class SettingsUnavailable(MonitorError):
    """Threshold settings could not be loaded."""


class ModeConflict(MonitorError):
    """Pump command issued in a mode that does not accept it."""

    def __init__(self, message: str, current_mode: Optional[str] = None) -> None:
        super().__init__(message)
        self.current_mode = current_mode


class PersistenceFailure(MonitorError):
    """An alert or pump log could not be written."""


class NotificationSoftFailure(MonitorError):
    """Email or broadcast delivery failed. Never fatal."""
