"""Entry point of the evaluation engine.

One reading == one evaluation cycle, in this order:
1. normalise input (distance -> level, or validate level)
2. persist the Reading            (the only fatal step)
3. load thresholds                (missing -> cycle aborts, reading kept)
4. classify
5. alert gate
6. pump controller (auto path)
7. dispatch: waterLevel, alert, pumpStatus (in that order)

Steps 3-7 never raise; their failures are logged and reflected in the
outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple, Union

from ..domain.errors import SettingsUnavailable, ValidationError
from ..domain.events import AlarmCleared, AlertCreated, Event, PumpTransitioned, WaterLevelRecorded
from ..domain.models import Classification, NotificationSettings, Reading, ThresholdSettings
from ..storage.base import ReadingStore, SettingsStore
from .clock import Clock, utcnow
from .deduplicator import AlertDecision, AlertDeduplicator
from .dispatcher import NotificationDispatcher
from .evaluator import classify, distance_to_level, validate_level
from .pump_controller import PumpController, TransitionOutcome
from .raw import DEFAULT_UNIT, DistanceInput, LevelInput, RawReading, parse_raw_reading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestOutcome:
    reading: Reading
    classification: Optional[Classification] = None
    alert: Optional[AlertDecision] = None
    pump: Optional[TransitionOutcome] = None
    raw_distance: Optional[float] = None

    @property
    def evaluated(self) -> bool:
        return self.classification is not None


class ReadingIngress:
    def __init__(
        self,
        readings: ReadingStore,
        settings: SettingsStore,
        deduplicator: AlertDeduplicator,
        controller: PumpController,
        dispatcher: NotificationDispatcher,
        clock: Clock = utcnow,
    ) -> None:
        self._readings = readings
        self._settings = settings
        self._deduplicator = deduplicator
        self._controller = controller
        self._dispatcher = dispatcher
        self._clock = clock

    async def ingest(self, raw: Union[RawReading, Mapping[str, Any]]) -> IngestOutcome:
        if isinstance(raw, Mapping):
            raw = parse_raw_reading(raw)

        level, unit, thresholds = await self._normalize(raw)

        now = self._clock()
        reading = await self._readings.create(Reading(level=level, unit=unit, observed_at=now))
        logger.debug("[INGEST] Reading id=%s level=%s %s", reading.id, level, unit)

        raw_distance = float(raw.distance) if isinstance(raw, DistanceInput) else None
        events: List[Event] = [WaterLevelRecorded(reading)]

        if thresholds is None:
            thresholds = await self._load_thresholds()
        if thresholds is None:
            logger.error("[INGEST] %s; evaluation skipped for reading id=%s",
                         SettingsUnavailable("threshold settings not found"), reading.id)
            self._dispatcher.dispatch_all(events)
            return IngestOutcome(reading=reading, raw_distance=raw_distance)

        notifications = await self._load_notifications()

        classification = classify(level, thresholds)
        decision = await self._evaluate_alert(classification, level, unit, now)
        pump = await self._evaluate_pump(level, thresholds, now)

        if decision.alert is not None:
            events.append(AlertCreated(decision.alert, notifications))
        if pump.should_broadcast:
            events.append(
                PumpTransitioned(
                    state=pump.state,
                    activated=bool(pump.activated),
                    activated_by=pump.activated_by,
                    level=level,
                    unit=unit,
                    notifications=notifications,
                )
            )
        if decision.alarm_clear:
            events.append(AlarmCleared())

        self._dispatcher.dispatch_all(events)

        return IngestOutcome(
            reading=reading,
            classification=classification,
            alert=decision,
            pump=pump,
            raw_distance=raw_distance,
        )

    async def _normalize(self, raw: RawReading) -> Tuple[float, str, Optional[ThresholdSettings]]:
        if isinstance(raw, DistanceInput):
            thresholds = await self._load_thresholds()
            if thresholds is None:
                raise SettingsUnavailable("threshold settings are required to convert a distance")
            level = distance_to_level(raw.distance, thresholds)
            return level, thresholds.unit or DEFAULT_UNIT, thresholds

        if isinstance(raw, LevelInput):
            return validate_level(raw.level), raw.unit or DEFAULT_UNIT, None

        raise ValidationError(f"unsupported reading input {type(raw).__name__}")

    async def _load_thresholds(self) -> Optional[ThresholdSettings]:
        try:
            return await self._settings.get_threshold_settings()
        except Exception as e:
            logger.error("[INGEST] Loading thresholds failed: %s", e)
            return None

    async def _load_notifications(self) -> NotificationSettings:
        try:
            return await self._settings.get_notification_settings()
        except Exception as e:
            logger.warning("[INGEST] Loading notification settings failed, emails off: %s", e)
            return NotificationSettings()

    async def _evaluate_alert(
        self, classification: Classification, level: float, unit: str, now: datetime
    ) -> AlertDecision:
        try:
            return await self._deduplicator.evaluate(classification, level, unit, now)
        except Exception as e:
            logger.exception("[INGEST] Alert evaluation failed")
            return AlertDecision(classification=classification, error=str(e))

    async def _evaluate_pump(
        self, level: float, thresholds: ThresholdSettings, now: datetime
    ) -> TransitionOutcome:
        try:
            return await self._controller.evaluate_level(level, thresholds, now)
        except Exception as e:
            logger.exception("[INGEST] Pump evaluation failed")
            return TransitionOutcome(state=self._controller.snapshot(), error=str(e))
