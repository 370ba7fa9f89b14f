"""Mock buzzer actuator driven by alert creation and alarm clear."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..domain.models import AlertType

logger = logging.getLogger(__name__)


class Buzzer:
    """Local siren. Activated on new alerts, silenced when the alarm clears.

    With `auto_off_seconds > 0` the buzzer silences itself after that
    long even if the alarm has not cleared.
    """

    def __init__(self, auto_off_seconds: float = 0.0) -> None:
        self._auto_off_seconds = float(auto_off_seconds)
        self._active = False
        self._alert_type: Optional[AlertType] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def alert_type(self) -> Optional[AlertType]:
        return self._alert_type

    def activate(self, alert_type: AlertType) -> None:
        self._cancel_timer()
        self._active = True
        self._alert_type = alert_type
        logger.warning("[BUZZER] Activated for %s alert", alert_type.value.upper())

        if self._auto_off_seconds > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            self._timer = loop.call_later(self._auto_off_seconds, self.deactivate)
            logger.info("[BUZZER] Will auto-deactivate after %.1fs", self._auto_off_seconds)

    def deactivate(self) -> None:
        self._cancel_timer()
        if self._active:
            self._active = False
            self._alert_type = None
            logger.info("[BUZZER] Deactivated")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
