"""Domain models for the water level engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Classification(str, Enum):
    """Result of evaluating a level against the thresholds."""

    NONE = "none"
    WARNING = "warning"
    DANGER = "danger"


class AlertType(str, Enum):
    WARNING = "warning"
    DANGER = "danger"

    @classmethod
    def from_classification(cls, classification: Classification) -> Optional["AlertType"]:
        if classification == Classification.NONE:
            return None
        return cls(classification.value)


class PumpMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class Reading:
    """One water-level observation. Immutable once created."""

    level: float
    unit: str
    observed_at: datetime
    id: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.observed_at.isoformat(),
            "level": self.level,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class ThresholdSettings:
    warning_level: float
    danger_level: float
    min_level: float
    max_level: float
    pump_activation_level: float
    pump_deactivation_level: float
    unit: str = "cm"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "warningLevel": self.warning_level,
            "dangerLevel": self.danger_level,
            "minLevel": self.min_level,
            "maxLevel": self.max_level,
            "pumpActivationLevel": self.pump_activation_level,
            "pumpDeactivationLevel": self.pump_deactivation_level,
            "unit": self.unit,
        }


DEFAULT_THRESHOLDS = ThresholdSettings(
    warning_level=30.0,
    danger_level=20.0,
    min_level=0.0,
    max_level=100.0,
    pump_activation_level=40.0,
    pump_deactivation_level=20.0,
    unit="cm",
)


@dataclass(frozen=True)
class NotificationSettings:
    email_enabled: bool = False
    email_address: str = ""
    notify_on_warning: bool = True
    notify_on_danger: bool = True
    notify_on_pump_activation: bool = False

    def wants_alert_email(self, alert_type: AlertType) -> bool:
        if not self.email_enabled or not self.email_address:
            return False
        if alert_type == AlertType.WARNING:
            return self.notify_on_warning
        return self.notify_on_danger

    def wants_pump_email(self) -> bool:
        return self.email_enabled and bool(self.email_address) and self.notify_on_pump_activation

    def to_payload(self) -> Dict[str, Any]:
        return {
            "emailEnabled": self.email_enabled,
            "emailAddress": self.email_address,
            "notifyOnWarning": self.notify_on_warning,
            "notifyOnDanger": self.notify_on_danger,
            "notifyOnPumpActivation": self.notify_on_pump_activation,
        }


@dataclass(frozen=True)
class Alert:
    """Append-only alert record; only `acknowledged` ever changes."""

    level: float
    type: AlertType
    message: str
    created_at: datetime
    acknowledged: bool = False
    id: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.created_at.isoformat(),
            "level": self.level,
            "type": self.type.value,
            "message": self.message,
            "acknowledged": self.acknowledged,
        }


@dataclass(frozen=True)
class PumpState:
    """Snapshot of the pump. Replaced as a whole, never mutated in place."""

    is_active: bool = False
    mode: PumpMode = PumpMode.AUTO
    last_activated: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "isActive": self.is_active,
            "mode": self.mode.value,
            "lastActivated": self.last_activated.isoformat() if self.last_activated else None,
        }


@dataclass
class PumpLog:
    """Durable record of one activation/deactivation edge."""

    is_active: bool
    activated_by: PumpMode
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[float] = None  # seconds
    water_level_at_activation: Optional[float] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.is_active and self.start_time is not None and self.end_time is None

    def to_payload(self) -> Dict[str, Any]:
        data = asdict(self)
        data["activated_by"] = self.activated_by.value
        for key in ("start_time", "end_time", "created_at"):
            value = data[key]
            data[key] = value.isoformat() if value else None
        return data


@dataclass
class AlertHistory:
    warning_count: int = 0
    danger_count: int = 0
    unacknowledged_count: int = 0


@dataclass
class LevelStats:
    maximum: float
    minimum: float
    average: float
    unit: str
    samples: int = field(default=0)
