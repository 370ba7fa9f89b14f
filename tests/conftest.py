"""Shared fixtures: in-memory stores, a controllable clock and recording transports."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from common.config import Settings
from level_api.domain.models import (
    Alert,
    AlertType,
    NotificationSettings,
    PumpLog,
    PumpMode,
    Reading,
    ThresholdSettings,
)
from level_api.engine.alarm import Buzzer
from level_api.engine.deduplicator import AlertDeduplicator
from level_api.engine.dispatcher import NotificationDispatcher
from level_api.engine.ingress import ReadingIngress
from level_api.engine.pump_controller import PumpController, PumpStateCell

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

# Well-formed thresholds: warning < danger, deactivation < activation.
STANDARD_THRESHOLDS = ThresholdSettings(
    warning_level=60.0,
    danger_level=80.0,
    min_level=0.0,
    max_level=100.0,
    pump_activation_level=70.0,
    pump_deactivation_level=30.0,
    unit="cm",
)


# =============================================================================
# FAKES
# =============================================================================

async def _io(store: Any) -> None:
    """Gives other tasks a turn, like a real round trip to the database."""
    if store.interleave:
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryReadings:
    def __init__(self) -> None:
        self.rows: List[Reading] = []
        self.fail_create = False
        self.interleave = False

    async def create(self, reading: Reading) -> Reading:
        await _io(self)
        if self.fail_create:
            raise RuntimeError("database unavailable")
        saved = replace(reading, id=len(self.rows) + 1)
        self.rows.append(saved)
        return saved

    async def find_latest(self) -> Optional[Reading]:
        return self.rows[-1] if self.rows else None

    async def find_recent(self, limit: int) -> List[Reading]:
        return list(reversed(self.rows))[:limit]

    async def find_between(self, start: datetime, end: datetime) -> List[Reading]:
        return [r for r in reversed(self.rows) if start <= r.observed_at <= end]


class InMemoryAlerts:
    def __init__(self) -> None:
        self.rows: List[Alert] = []
        self.fail_create = False
        self.interleave = False

    async def create(self, alert: Alert) -> Alert:
        await _io(self)
        if self.fail_create:
            raise RuntimeError("alerts table locked")
        saved = replace(alert, id=len(self.rows) + 1)
        self.rows.append(saved)
        return saved

    async def find_latest_unacknowledged(self, alert_type: AlertType) -> Optional[Alert]:
        await _io(self)
        open_alerts = [a for a in self.rows if a.type == alert_type and not a.acknowledged]
        if not open_alerts:
            return None
        return max(open_alerts, key=lambda a: (a.created_at, a.id))

    async def count_unacknowledged(self) -> int:
        return sum(1 for a in self.rows if not a.acknowledged)

    def acknowledge(self, alert_id: int) -> None:
        self.rows = [replace(a, acknowledged=True) if a.id == alert_id else a for a in self.rows]

    def of_type(self, alert_type: AlertType) -> List[Alert]:
        return [a for a in self.rows if a.type == alert_type]


class InMemoryPumpLogs:
    def __init__(self) -> None:
        self.rows: List[PumpLog] = []
        self.fail_create = False
        self.interleave = False

    async def create(self, log: PumpLog) -> PumpLog:
        await _io(self)
        if self.fail_create:
            raise RuntimeError("pump_logs table locked")
        saved = replace(log, id=len(self.rows) + 1)
        self.rows.append(saved)
        return replace(saved)

    async def find_latest_open(self) -> Optional[PumpLog]:
        await _io(self)
        for log in reversed(self.rows):
            if log.is_open:
                return replace(log)
        return None

    async def find_latest(self) -> Optional[PumpLog]:
        return replace(self.rows[-1]) if self.rows else None

    async def find_latest_activation(self) -> Optional[PumpLog]:
        for log in reversed(self.rows):
            if log.start_time is not None:
                return replace(log)
        return None

    async def find_recent(self, limit: int) -> List[PumpLog]:
        return [replace(log) for log in reversed(self.rows)][:limit]

    async def update(self, log_id: int, fields: Dict[str, Any]) -> None:
        await _io(self)
        self.rows = [replace(log, **fields) if log.id == log_id else log for log in self.rows]


class InMemorySettings:
    def __init__(
        self,
        thresholds: Optional[ThresholdSettings] = STANDARD_THRESHOLDS,
        notifications: Optional[NotificationSettings] = None,
        mode: PumpMode = PumpMode.AUTO,
    ) -> None:
        self.thresholds = thresholds
        self.notifications = notifications or NotificationSettings()
        self.mode = mode

    async def get_threshold_settings(self) -> Optional[ThresholdSettings]:
        return self.thresholds

    async def get_notification_settings(self) -> NotificationSettings:
        return self.notifications

    async def get_pump_mode(self) -> PumpMode:
        return self.mode

    async def set_pump_mode(self, mode: PumpMode) -> None:
        self.mode = mode


class RecordingBroadcaster:
    def __init__(self, delivered: bool = True) -> None:
        self.frames: List[Tuple[str, Dict[str, Any]]] = []
        self.delivered = delivered
        self.fail_types: set = set()

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> bool:
        if event_type in self.fail_types:
            raise ConnectionError("socket closed")
        self.frames.append((event_type, payload))
        return self.delivered

    @property
    def types(self) -> List[str]:
        return [t for t, _ in self.frames]


class RecordingEmail:
    def __init__(self, result: bool = True) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.result = result
        self.error: Optional[Exception] = None

    async def send(self, to: str, subject: str, body: str, html: Optional[str] = None) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "body": body, "html": html})
        return self.result


@dataclass
class EngineHarness:
    clock: FakeClock
    readings: InMemoryReadings
    alerts: InMemoryAlerts
    pump_logs: InMemoryPumpLogs
    settings: InMemorySettings
    broadcaster: RecordingBroadcaster
    email: RecordingEmail
    buzzer: Buzzer
    dispatcher: NotificationDispatcher
    controller: PumpController
    deduplicator: AlertDeduplicator
    ingress: ReadingIngress

    def interleave(self) -> None:
        """Makes every store call yield to the event loop."""
        for store in (self.readings, self.alerts, self.pump_logs):
            store.interleave = True


def build_harness(settings: Optional[InMemorySettings] = None) -> EngineHarness:
    clock = FakeClock()
    readings = InMemoryReadings()
    alerts = InMemoryAlerts()
    pump_logs = InMemoryPumpLogs()
    settings = settings or InMemorySettings()
    broadcaster = RecordingBroadcaster()
    email = RecordingEmail()
    buzzer = Buzzer()
    dispatcher = NotificationDispatcher(broadcaster, email, buzzer=buzzer)
    controller = PumpController(PumpStateCell(), pump_logs, settings, readings, clock=clock)
    deduplicator = AlertDeduplicator(alerts)
    ingress = ReadingIngress(readings, settings, deduplicator, controller, dispatcher, clock=clock)
    return EngineHarness(
        clock=clock,
        readings=readings,
        alerts=alerts,
        pump_logs=pump_logs,
        settings=settings,
        broadcaster=broadcaster,
        email=email,
        buzzer=buzzer,
        dispatcher=dispatcher,
        controller=controller,
        deduplicator=deduplicator,
        ingress=ingress,
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def thresholds() -> ThresholdSettings:
    return STANDARD_THRESHOLDS


@pytest_asyncio.fixture
async def harness():
    """Engine wired to in-memory fakes with the broadcast worker running."""
    h = build_harness()
    await h.dispatcher.start()
    yield h
    await h.dispatcher.stop()


def make_settings(tmp_path, **overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        database_url=f"sqlite:///{tmp_path / 'water_monitor_test.db'}",
        alert_cooldown_minutes=30.0,
        smtp_host=None,
        smtp_port=587,
        smtp_user=None,
        smtp_password=None,
        smtp_use_tls=True,
        email_from="alerts@example.com",
        email_timeout_seconds=5.0,
        dashboard_url="http://localhost:3000/dashboard",
        simulate_sensor=False,
        simulation_interval_seconds=5.0,
        reading_queue_size=100,
        buzzer_auto_off_seconds=0.0,
        device_name="Test Tank",
        log_level="WARNING",
        environment="test",
    )
    values.update(overrides)
    return Settings(**values)
