"""Collaborator contracts consumed by the engine.

The engine only depends on these protocols; `storage` ships the
SQLAlchemy implementations and the tests ship in-memory ones.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from ..domain.models import (
    Alert,
    AlertType,
    NotificationSettings,
    PumpLog,
    PumpMode,
    Reading,
    ThresholdSettings,
)


class ReadingStore(Protocol):
    async def create(self, reading: Reading) -> Reading: ...

    async def find_latest(self) -> Optional[Reading]: ...

    async def find_recent(self, limit: int) -> List[Reading]: ...

    async def find_between(self, start: datetime, end: datetime) -> List[Reading]: ...


class AlertStore(Protocol):
    async def create(self, alert: Alert) -> Alert: ...

    async def find_latest_unacknowledged(self, alert_type: AlertType) -> Optional[Alert]: ...

    async def count_unacknowledged(self) -> int: ...


class PumpLogStore(Protocol):
    async def create(self, log: PumpLog) -> PumpLog: ...

    async def find_latest_open(self) -> Optional[PumpLog]: ...

    async def find_latest(self) -> Optional[PumpLog]: ...

    async def find_latest_activation(self) -> Optional[PumpLog]: ...

    async def update(self, log_id: int, fields: Dict[str, Any]) -> None: ...


class SettingsStore(Protocol):
    async def get_threshold_settings(self) -> Optional[ThresholdSettings]: ...

    async def get_notification_settings(self) -> NotificationSettings: ...

    async def get_pump_mode(self) -> PumpMode: ...

    async def set_pump_mode(self, mode: PumpMode) -> None: ...
