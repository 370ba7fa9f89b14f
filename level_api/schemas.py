from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator

from .domain.models import NotificationSettings, PumpMode, ThresholdSettings
from .notifications.email_gateway import is_valid_email


class ThresholdSettingsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    warning_level: float = Field(..., alias="warningLevel")
    danger_level: float = Field(..., alias="dangerLevel")
    min_level: float = Field(..., alias="minLevel")
    max_level: float = Field(..., alias="maxLevel")
    pump_activation_level: float = Field(..., alias="pumpActivationLevel")
    pump_deactivation_level: float = Field(..., alias="pumpDeactivationLevel")
    unit: str = Field("cm", min_length=1, max_length=16)

    @model_validator(mode="after")
    def _check_invariants(self) -> "ThresholdSettingsIn":
        if self.warning_level >= self.danger_level:
            raise ValueError("Warning level must be lower than danger level")
        if self.pump_deactivation_level >= self.pump_activation_level:
            raise ValueError("Pump deactivation level must be lower than pump activation level")
        if self.min_level >= self.max_level:
            raise ValueError("Minimum level must be lower than maximum level")
        levels = (
            self.warning_level,
            self.danger_level,
            self.pump_activation_level,
            self.pump_deactivation_level,
        )
        if any(v < self.min_level or v > self.max_level for v in levels):
            raise ValueError("All levels must be within min and max range")
        return self

    def to_domain(self) -> ThresholdSettings:
        return ThresholdSettings(
            warning_level=self.warning_level,
            danger_level=self.danger_level,
            min_level=self.min_level,
            max_level=self.max_level,
            pump_activation_level=self.pump_activation_level,
            pump_deactivation_level=self.pump_deactivation_level,
            unit=self.unit,
        )


class NotificationSettingsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email_enabled: StrictBool = Field(False, alias="emailEnabled")
    email_address: str = Field("", alias="emailAddress")
    notify_on_warning: StrictBool = Field(True, alias="notifyOnWarning")
    notify_on_danger: StrictBool = Field(True, alias="notifyOnDanger")
    notify_on_pump_activation: StrictBool = Field(False, alias="notifyOnPumpActivation")

    @model_validator(mode="after")
    def _check_address(self) -> "NotificationSettingsIn":
        self.email_address = (self.email_address or "").strip()
        if self.email_enabled and not self.email_address:
            raise ValueError("Email address is required when email notifications are enabled")
        if self.email_address and not is_valid_email(self.email_address):
            raise ValueError("Invalid email address format")
        return self

    def to_domain(self) -> NotificationSettings:
        return NotificationSettings(
            email_enabled=self.email_enabled,
            email_address=self.email_address,
            notify_on_warning=self.notify_on_warning,
            notify_on_danger=self.notify_on_danger,
            notify_on_pump_activation=self.notify_on_pump_activation,
        )


class PumpControlIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_active: StrictBool = Field(..., alias="isActive")


class PumpModeIn(BaseModel):
    mode: PumpMode


def ok(message: str, data: Any = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message, "data": data}
    body.update(extra)
    return body
