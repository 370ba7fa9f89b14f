"""Application services and the object graph wired at startup.

The endpoints and the `/ws` handler only talk to `MonitorServices`; the
engine, repositories and transports behind it are built once per app.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.engine import Engine

from common.config import Settings
from common.db import get_engine, make_session_factory

from .domain.events import (
    AlarmCleared,
    AlertAcknowledged,
    Event,
    PumpStatusChanged,
    PumpTransitioned,
    SettingsChanged,
)
from .domain.models import (
    Alert,
    AlertHistory,
    AlertType,
    LevelStats,
    NotificationSettings,
    PumpLog,
    PumpMode,
    PumpState,
    ThresholdSettings,
)
from .engine.alarm import Buzzer
from .engine.clock import Clock, utcnow
from .engine.deduplicator import AlertDeduplicator
from .engine.dispatcher import EmailGateway, NotificationDispatcher
from .engine.ingress import ReadingIngress
from .engine.pump_controller import ModeChange, PumpController, PumpStateCell, TransitionOutcome
from .engine.raw import DEFAULT_UNIT
from .notifications.email_gateway import SmtpEmailGateway
from .notifications.templates import EmailTemplates
from .realtime.hub import ConnectionHub
from .sources.channel import ReadingChannel
from .sources.simulator import SensorSimulator
from .storage import (
    AlertRepository,
    PumpLogRepository,
    ReadingRepository,
    SettingsRepository,
    ensure_schema,
)

logger = logging.getLogger(__name__)

REPORT_PERIOD = timedelta(days=7)


class AlertService:
    """Operator actions on alerts. Acknowledging is the only mutation."""

    def __init__(
        self,
        alerts: AlertRepository,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._alerts = alerts
        self._dispatcher = dispatcher

    async def find(
        self,
        alert_type: Optional[AlertType] = None,
        acknowledged: Optional[bool] = None,
    ) -> List[Alert]:
        return await self._alerts.find(alert_type=alert_type, acknowledged=acknowledged)

    async def acknowledge(self, alert_id: int) -> Optional[Alert]:
        existing = await self._alerts.get(alert_id)
        if existing is None:
            return None
        if existing.acknowledged:
            return existing

        alert = await self._alerts.acknowledge(alert_id)
        if alert is None:
            return None
        logger.info("[ALERT] Acknowledged alert id=%s type=%s", alert.id, alert.type.value)

        events: List[Event] = [AlertAcknowledged(alert)]
        if await self._alerts.count_unacknowledged() == 0:
            events.append(AlarmCleared("all alerts acknowledged"))
        self._dispatcher.dispatch_all(events)
        return alert

    async def acknowledge_all(self) -> List[Alert]:
        alerts = await self._alerts.acknowledge_all()
        logger.info("[ALERT] Acknowledged %d alerts", len(alerts))

        events: List[Event] = [AlertAcknowledged(a) for a in alerts]
        if await self._alerts.count_unacknowledged() == 0:
            events.append(AlarmCleared("all alerts acknowledged"))
        self._dispatcher.dispatch_all(events)
        return alerts


class PumpService:
    """Operator actions on the pump. Broadcasts whatever the controller decided."""

    def __init__(
        self,
        controller: PumpController,
        store: SettingsRepository,
        logs: PumpLogRepository,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._controller = controller
        self._store = store
        self._logs = logs
        self._dispatcher = dispatcher

    def status(self) -> PumpState:
        return self._controller.snapshot()

    async def logs(self, limit: int) -> List[PumpLog]:
        return await self._logs.find_recent(limit)

    async def command(self, activate: bool) -> TransitionOutcome:
        outcome = await self._controller.command(activate)
        if outcome.should_broadcast:
            await self._dispatch_transition(outcome)
        return outcome

    async def set_mode(self, mode: PumpMode) -> ModeChange:
        thresholds = await self._store.get_threshold_settings()

        change = await self._controller.set_mode(mode, thresholds)
        if change.transition is not None and change.transition.should_broadcast:
            await self._dispatch_transition(change.transition, thresholds.unit if thresholds else None)
        elif change.mode_changed:
            self._dispatcher.dispatch(PumpStatusChanged(change.state))
        return change

    async def _dispatch_transition(
        self, outcome: TransitionOutcome, unit: Optional[str] = None
    ) -> None:
        try:
            notifications = await self._store.get_notification_settings()
        except Exception as e:
            logger.warning("[PUMP] Loading notification settings failed, emails off: %s", e)
            notifications = NotificationSettings()
        if unit is None:
            thresholds = await self._store.get_threshold_settings()
            unit = thresholds.unit if thresholds else DEFAULT_UNIT
        self._dispatcher.dispatch(
            PumpTransitioned(
                state=outcome.state,
                activated=bool(outcome.activated),
                activated_by=outcome.activated_by,
                level=outcome.level,
                unit=unit,
                notifications=notifications,
            )
        )


class SettingsService:
    def __init__(
        self,
        store: SettingsRepository,
        dispatcher: NotificationDispatcher,
        templates: EmailTemplates,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._templates = templates
        self._clock = clock

    async def get_thresholds(self) -> Optional[ThresholdSettings]:
        return await self._store.get_threshold_settings()

    async def update_thresholds(self, thresholds: ThresholdSettings) -> ThresholdSettings:
        saved = await self._store.update_thresholds(thresholds, now=self._clock())
        logger.info("[SETTINGS] Thresholds updated %s", saved.to_payload())
        self._dispatcher.dispatch(SettingsChanged(saved))
        return saved

    async def get_notifications(self) -> NotificationSettings:
        return await self._store.get_notification_settings()

    async def update_notifications(self, notifications: NotificationSettings) -> NotificationSettings:
        saved = await self._store.update_notifications(notifications, now=self._clock())
        logger.info(
            "[SETTINGS] Notification settings updated email_enabled=%s", saved.email_enabled
        )
        if saved.email_enabled and saved.email_address:
            self._dispatcher.send_email(
                saved.email_address, self._templates.notification_confirmation()
            )
        return saved


class ReportService:
    def __init__(
        self,
        readings: ReadingRepository,
        alerts: AlertRepository,
        store: SettingsRepository,
        email: EmailGateway,
        templates: EmailTemplates,
        clock: Clock = utcnow,
    ) -> None:
        self._readings = readings
        self._alerts = alerts
        self._store = store
        self._email = email
        self._templates = templates
        self._clock = clock

    async def recipient(self) -> Optional[str]:
        notifications = await self._store.get_notification_settings()
        if not notifications.email_enabled or not notifications.email_address:
            return None
        return notifications.email_address

    async def summarize(
        self, end: Optional[datetime] = None
    ) -> Tuple[datetime, datetime, Optional[LevelStats], AlertHistory]:
        end = end or self._clock()
        start = end - REPORT_PERIOD
        readings = await self._readings.find_between(start, end)
        alerts = await self._alerts.find_between(start, end)

        stats = None
        if readings:
            levels = [r.level for r in readings]
            stats = LevelStats(
                maximum=max(levels),
                minimum=min(levels),
                average=sum(levels) / len(levels),
                unit=readings[0].unit,
                samples=len(levels),
            )
        history = AlertHistory(
            warning_count=sum(1 for a in alerts if a.type == AlertType.WARNING),
            danger_count=sum(1 for a in alerts if a.type == AlertType.DANGER),
            unacknowledged_count=sum(1 for a in alerts if not a.acknowledged),
        )
        return start, end, stats, history

    async def send_weekly_status(self, to: str) -> bool:
        start, end, stats, history = await self.summarize()
        message = self._templates.weekly_report(start, end, stats, history)
        try:
            sent = await self._email.send(to, message.subject, message.text, message.html)
        except Exception as e:
            logger.error("[EMAIL] Weekly report to %s failed: %s", to, e)
            return False
        logger.info("[EMAIL] Weekly report to %s sent=%s", to, sent)
        return sent


@dataclass
class MonitorServices:
    settings: Settings
    engine: Engine
    readings: ReadingRepository
    alerts: AlertRepository
    pump_logs: PumpLogRepository
    settings_store: SettingsRepository
    hub: ConnectionHub
    email: EmailGateway
    buzzer: Buzzer
    dispatcher: NotificationDispatcher
    controller: PumpController
    ingress: ReadingIngress
    channel: ReadingChannel
    alert_service: AlertService
    pump_service: PumpService
    settings_service: SettingsService
    report_service: ReportService
    simulator: Optional[SensorSimulator] = None

    async def start(self) -> None:
        ensure_schema(self.engine)
        self.settings_store.seed_defaults(now=utcnow())
        await self.controller.restore()
        await self._check_email()
        await self.dispatcher.start()
        await self.channel.start()
        if self.simulator is not None:
            await self.simulator.start()
        logger.info("[BOOT] Water level monitor started env=%s", self.settings.environment)

    async def _check_email(self) -> None:
        if not isinstance(self.email, SmtpEmailGateway) or not self.email.is_configured:
            logger.info("[BOOT] SMTP not configured, email notifications disabled")
            return
        if await run_in_threadpool(self.email.verify):
            logger.info("[BOOT] SMTP connection verified")
        else:
            logger.warning("[BOOT] SMTP verification failed, emails may not be delivered")

    async def stop(self) -> None:
        if self.simulator is not None:
            await self.simulator.stop()
        await self.channel.stop()
        await self.dispatcher.stop()
        await self.hub.close_all()
        self.buzzer.deactivate()
        self.engine.dispose()
        logger.info("[BOOT] Water level monitor stopped")


def build_services(
    settings: Settings,
    engine: Optional[Engine] = None,
    email: Optional[EmailGateway] = None,
    clock: Clock = utcnow,
) -> MonitorServices:
    engine = engine or get_engine(settings)
    session_factory = make_session_factory(engine)

    readings = ReadingRepository(session_factory)
    alerts = AlertRepository(session_factory)
    pump_logs = PumpLogRepository(session_factory)
    settings_store = SettingsRepository(session_factory)

    templates = EmailTemplates(
        dashboard_url=settings.dashboard_url, device_name=settings.device_name
    )
    if email is None:
        email = SmtpEmailGateway.from_settings(settings)
        if not settings.email_configured:
            logger.warning("[EMAIL] SMTP_HOST not set; email notifications are disabled")

    hub = ConnectionHub()
    buzzer = Buzzer(auto_off_seconds=settings.buzzer_auto_off_seconds)
    dispatcher = NotificationDispatcher(
        broadcaster=hub,
        email=email,
        templates=templates,
        buzzer=buzzer,
    )
    controller = PumpController(
        cell=PumpStateCell(),
        logs=pump_logs,
        settings=settings_store,
        readings=readings,
        clock=clock,
    )
    deduplicator = AlertDeduplicator(
        alerts, cooldown=timedelta(minutes=settings.alert_cooldown_minutes)
    )
    ingress = ReadingIngress(
        readings=readings,
        settings=settings_store,
        deduplicator=deduplicator,
        controller=controller,
        dispatcher=dispatcher,
        clock=clock,
    )
    channel = ReadingChannel(ingress, max_size=settings.reading_queue_size)
    simulator = None
    if settings.simulate_sensor:
        simulator = SensorSimulator(channel, interval_seconds=settings.simulation_interval_seconds)

    return MonitorServices(
        settings=settings,
        engine=engine,
        readings=readings,
        alerts=alerts,
        pump_logs=pump_logs,
        settings_store=settings_store,
        hub=hub,
        email=email,
        buzzer=buzzer,
        dispatcher=dispatcher,
        controller=controller,
        ingress=ingress,
        channel=channel,
        alert_service=AlertService(alerts, dispatcher),
        pump_service=PumpService(controller, settings_store, pump_logs, dispatcher),
        settings_service=SettingsService(settings_store, dispatcher, templates, clock),
        report_service=ReportService(readings, alerts, settings_store, email, templates, clock),
        simulator=simulator,
    )
