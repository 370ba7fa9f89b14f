"""Fan-out of engine state changes.

- Broadcast frames go through one ordered queue drained by a single
  background worker: publish order == dispatch order, and the caller
  never waits on sockets.
- Emails are scheduled as independent tasks, one attempt each
  (at-most-once). Failures are logged and dropped.
- Buzzer side effects run inline (they are local and synchronous).

`dispatch()` is synchronous on purpose so that the events of one
evaluation cycle are enqueued without interleaving with other cycles.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional, Protocol, Set, Tuple

from ..domain.errors import NotificationSoftFailure
from ..domain.events import (
    AlarmCleared,
    AlertAcknowledged,
    AlertCreated,
    Event,
    PumpStatusChanged,
    PumpTransitioned,
    SettingsChanged,
    WaterLevelRecorded,
)
from ..notifications.templates import EmailMessage, EmailTemplates
from .alarm import Buzzer

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

Frame = Tuple[str, Dict[str, Any]]


class Broadcaster(Protocol):
    async def publish(self, event_type: str, payload: Dict[str, Any]) -> bool: ...


class EmailGateway(Protocol):
    async def send(self, to: str, subject: str, body: str, html: Optional[str] = None) -> bool: ...


class NotificationDispatcher:
    def __init__(
        self,
        broadcaster: Broadcaster,
        email: EmailGateway,
        templates: Optional[EmailTemplates] = None,
        buzzer: Optional[Buzzer] = None,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._broadcaster = broadcaster
        self._email = email
        self._templates = templates or EmailTemplates()
        self._buzzer = buzzer
        self._queue: "asyncio.Queue[Frame]" = asyncio.Queue(maxsize=max_queue_size)
        self._task: Optional[asyncio.Task] = None
        self._email_tasks: Set[asyncio.Task] = set()

        # Metrics
        self._enqueued = 0
        self._dropped = 0
        self._published = 0
        self._undelivered = 0
        self._broadcast_errors = 0
        self._emails_sent = 0
        self._email_errors = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info("[DISPATCH] Broadcast worker started")

    async def stop(self) -> None:
        await self.flush()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[DISPATCH] Stopped. %s", self.metrics)

    async def flush(self) -> None:
        """Waits for queued broadcasts and in-flight emails."""
        if self.is_running:
            await self._queue.join()
        if self._email_tasks:
            await asyncio.gather(*list(self._email_tasks), return_exceptions=True)

    def dispatch(self, event: Event) -> None:
        if isinstance(event, WaterLevelRecorded):
            self._enqueue("waterLevel", event.reading.to_payload())

        elif isinstance(event, AlertCreated):
            if self._buzzer is not None:
                self._buzzer.activate(event.alert.type)
            self._enqueue("alert", event.alert.to_payload())
            if event.notifications.wants_alert_email(event.alert.type):
                self._schedule_email(
                    event.notifications.email_address,
                    self._templates.alert(event.alert),
                )

        elif isinstance(event, AlertAcknowledged):
            self._enqueue("alert", event.alert.to_payload())

        elif isinstance(event, PumpTransitioned):
            self._enqueue("pumpStatus", event.state.to_payload())
            if event.notifications.wants_pump_email():
                self._schedule_email(
                    event.notifications.email_address,
                    self._templates.pump(
                        activated=event.activated,
                        level=event.level,
                        unit=event.unit,
                        mode=event.activated_by,
                    ),
                )

        elif isinstance(event, PumpStatusChanged):
            self._enqueue("pumpStatus", event.state.to_payload())

        elif isinstance(event, SettingsChanged):
            self._enqueue("settings", event.thresholds.to_payload())

        elif isinstance(event, AlarmCleared):
            if self._buzzer is not None:
                self._buzzer.deactivate()

        else:
            logger.warning("[DISPATCH] Unknown event %s ignored", type(event).__name__)

    def dispatch_all(self, events: Iterable[Event]) -> None:
        for event in events:
            self.dispatch(event)

    def send_email(self, to: str, message: EmailMessage) -> None:
        """Best-effort email outside of an engine event (confirmations, reports)."""
        self._schedule_email(to, message)

    def _enqueue(self, event_type: str, payload: Dict[str, Any]) -> None:
        try:
            self._queue.put_nowait((event_type, payload))
            self._enqueued += 1
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning("[DISPATCH] Broadcast queue full, dropped %s frame", event_type)

    def _schedule_email(self, to: str, message: EmailMessage) -> None:
        task = asyncio.get_running_loop().create_task(self._send_email(to, message))
        self._email_tasks.add(task)
        task.add_done_callback(self._email_tasks.discard)

    async def _send_email(self, to: str, message: EmailMessage) -> None:
        try:
            if not await self._email.send(to, message.subject, message.text, message.html):
                raise NotificationSoftFailure(f"'{message.subject}' to {to} was not delivered")
        except NotificationSoftFailure as e:
            self._email_errors += 1
            logger.warning("[EMAIL] %s", e)
            return
        except Exception as e:
            self._email_errors += 1
            logger.error("[EMAIL] Sending '%s' to %s failed: %s", message.subject, to, e)
            return
        self._emails_sent += 1
        logger.info("[EMAIL] '%s' sent to %s", message.subject, to)

    async def _run_loop(self) -> None:
        while True:
            event_type, payload = await self._queue.get()
            try:
                delivered = await self._broadcaster.publish(event_type, payload)
                if delivered:
                    self._published += 1
                else:
                    self._undelivered += 1
                    logger.debug("[DISPATCH] No subscribers for %s", event_type)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._broadcast_errors += 1
                logger.warning("[DISPATCH] Broadcast of %s failed: %s", event_type, e)
            finally:
                self._queue.task_done()

    @property
    def metrics(self) -> dict:
        return {
            "queue_depth": self._queue.qsize(),
            "queue_max": self._queue.maxsize,
            "enqueued": self._enqueued,
            "dropped": self._dropped,
            "published": self._published,
            "undelivered": self._undelivered,
            "broadcast_errors": self._broadcast_errors,
            "emails_sent": self._emails_sent,
            "email_errors": self._email_errors,
            "pending_emails": len(self._email_tasks),
        }
