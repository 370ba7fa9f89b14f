"""Events fanned out by the NotificationDispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from .models import Alert, NotificationSettings, PumpMode, PumpState, Reading, ThresholdSettings


@dataclass(frozen=True)
class WaterLevelRecorded:
    reading: Reading


@dataclass(frozen=True)
class AlertCreated:
    alert: Alert
    notifications: NotificationSettings = field(default_factory=NotificationSettings)


@dataclass(frozen=True)
class AlertAcknowledged:
    alert: Alert


@dataclass(frozen=True)
class PumpTransitioned:
    state: PumpState
    activated: bool
    activated_by: PumpMode
    level: Optional[float]
    unit: str = "cm"
    notifications: NotificationSettings = field(default_factory=NotificationSettings)


@dataclass(frozen=True)
class PumpStatusChanged:
    """Mode switch that did not produce an activation edge."""

    state: PumpState


@dataclass(frozen=True)
class SettingsChanged:
    thresholds: ThresholdSettings


@dataclass(frozen=True)
class AlarmCleared:
    reason: str = "no unacknowledged alerts"


Event = Union[
    WaterLevelRecorded,
    AlertCreated,
    AlertAcknowledged,
    PumpTransitioned,
    PumpStatusChanged,
    SettingsChanged,
    AlarmCleared,
]
