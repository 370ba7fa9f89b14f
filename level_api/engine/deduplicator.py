"""Alert cool-down gate.

Rules:
- No unacknowledged alert of the same type -> create one.
- An unacknowledged alert of the same type exists -> create a new one
  only when it is older than the cool-down.
- Acknowledging does not shorten any cool-down retroactively; the next
  reading simply sees an empty unacknowledged set.
- Lookup, decision and write run under a per-type lock, so concurrent
  readings of the same class create at most one alert.
- Classification NONE with zero unacknowledged alerts of either type
  -> "alarm clear" (derived, never stored).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from ..domain.errors import PersistenceFailure
from ..domain.models import Alert, AlertType, Classification
from ..storage.base import AlertStore

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(minutes=30)


@dataclass(frozen=True)
class AlertDecision:
    """Outcome of the gate for one reading."""

    classification: Classification
    alert: Optional[Alert] = None
    suppressed: bool = False
    alarm_clear: bool = False
    error: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.alert is not None


def build_alert_message(alert_type: AlertType, level: float, unit: str) -> str:
    return f"Water level has reached {alert_type.value} threshold ({level:g} {unit})"


class AlertDeduplicator:
    def __init__(self, alerts: AlertStore, cooldown: timedelta = DEFAULT_COOLDOWN) -> None:
        self._alerts = alerts
        self._cooldown = cooldown
        self._locks: Dict[AlertType, asyncio.Lock] = {t: asyncio.Lock() for t in AlertType}

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    async def should_create_alert(self, classification: Classification, now: datetime) -> bool:
        alert_type = AlertType.from_classification(classification)
        if alert_type is None:
            return False

        existing = await self._alerts.find_latest_unacknowledged(alert_type)
        if existing is None:
            return True
        return now - existing.created_at > self._cooldown

    async def evaluate(
        self,
        classification: Classification,
        level: float,
        unit: str,
        now: datetime,
    ) -> AlertDecision:
        """Runs the gate and persists the alert when one is warranted.

        A failed write is reported in `error` and the alert is left out of
        the decision so it is never broadcast as if it existed.
        """
        alert_type = AlertType.from_classification(classification)

        if alert_type is None:
            remaining = await self._alerts.count_unacknowledged()
            return AlertDecision(classification=classification, alarm_clear=remaining == 0)

        async with self._locks[alert_type]:
            return await self._gate_and_create(alert_type, classification, level, unit, now)

    async def _gate_and_create(
        self,
        alert_type: AlertType,
        classification: Classification,
        level: float,
        unit: str,
        now: datetime,
    ) -> AlertDecision:
        if not await self.should_create_alert(classification, now):
            logger.debug(
                "[ALERT] Suppressed %s alert at level=%s (cool-down %s)",
                alert_type.value, level, self._cooldown,
            )
            return AlertDecision(classification=classification, suppressed=True)

        alert = Alert(
            level=level,
            type=alert_type,
            message=build_alert_message(alert_type, level, unit),
            created_at=now,
            acknowledged=False,
        )
        try:
            saved = await self._alerts.create(alert)
        except Exception as e:
            failure = PersistenceFailure(f"alert write failed: {e}")
            logger.error("[ALERT] Failed to persist %s alert: %s", alert_type.value, failure)
            return AlertDecision(classification=classification, error=str(failure))

        logger.info("[ALERT] Created %s alert id=%s at level=%s", alert_type.value, saved.id, level)
        return AlertDecision(classification=classification, alert=saved)
