"""Pump state machine.

States: Inactive / Active. Mode (Auto / Manual) is an orthogonal axis.

Transitions:
- Auto:   Inactive -> Active   when level >= pump_activation_level
- Auto:   Active   -> Inactive when level <= pump_deactivation_level
- Manual: explicit activate / deactivate commands, only in Manual mode
- Mode switch is always accepted; switching to Auto re-evaluates the
  latest known level and may fire a transition.

Concurrency: the read-decide-write step on PumpState never contains an
`await`, so two readings interleaving at I/O points cannot tear it. The
in-memory state is a cache; persisted PumpLog rows are authoritative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from ..domain.errors import ModeConflict, PersistenceFailure
from ..domain.models import PumpLog, PumpMode, PumpState, ThresholdSettings
from ..storage.base import PumpLogStore, ReadingStore, SettingsStore
from .clock import Clock, utcnow

logger = logging.getLogger(__name__)


class PumpStateCell:
    """Process-wide holder of the current PumpState.

    Owned by exactly one PumpController. Readers get a copy; writers
    replace the whole value.
    """

    def __init__(self, initial: Optional[PumpState] = None) -> None:
        self._state = initial or PumpState()

    def snapshot(self) -> PumpState:
        return replace(self._state)

    def replace(self, new_state: PumpState) -> PumpState:
        previous = self._state
        self._state = new_state
        return previous

    def compare_and_set(self, expected: PumpState, new_state: PumpState) -> bool:
        """Replaces the state only if nobody replaced `expected` meanwhile."""
        if self._state is not expected:
            return False
        self._state = new_state
        return True


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of one pump decision."""

    state: PumpState
    transitioned: bool = False
    activated: Optional[bool] = None
    activated_by: Optional[PumpMode] = None
    level: Optional[float] = None
    persisted: bool = True
    error: Optional[str] = None

    @property
    def should_broadcast(self) -> bool:
        return self.transitioned and self.persisted


@dataclass(frozen=True)
class ModeChange:
    state: PumpState
    mode_changed: bool
    transition: Optional[TransitionOutcome] = None


def decide_auto(state: PumpState, level: float, thresholds: ThresholdSettings) -> Optional[bool]:
    """Target `is_active` for an auto-mode reading, or None for no edge."""
    if not state.is_active and level >= thresholds.pump_activation_level:
        return True
    if state.is_active and level <= thresholds.pump_deactivation_level:
        return False
    return None


class PumpController:
    def __init__(
        self,
        cell: PumpStateCell,
        logs: PumpLogStore,
        settings: SettingsStore,
        readings: ReadingStore,
        clock: Clock = utcnow,
    ) -> None:
        self._cell = cell
        self._logs = logs
        self._settings = settings
        self._readings = readings
        self._clock = clock

    def snapshot(self) -> PumpState:
        return self._cell.snapshot()

    async def restore(self) -> PumpState:
        """Rebuilds the in-memory state from the latest PumpLog and the settings."""
        latest = await self._logs.find_latest()
        activation = await self._logs.find_latest_activation()
        mode = await self._settings.get_pump_mode()

        state = PumpState(
            is_active=bool(latest.is_active) if latest else False,
            mode=mode,
            last_activated=activation.start_time if activation else None,
        )
        self._cell.replace(state)
        logger.info(
            "[PUMP] Restored state is_active=%s mode=%s last_activated=%s",
            state.is_active, state.mode.value, state.last_activated,
        )
        return state

    async def evaluate_level(
        self,
        level: float,
        thresholds: ThresholdSettings,
        now: Optional[datetime] = None,
    ) -> TransitionOutcome:
        """Auto-mode path. A no-op when the pump is in Manual mode."""
        now = now or self._clock()

        current = self._cell.snapshot()
        if current.mode != PumpMode.AUTO:
            return TransitionOutcome(state=current)
        target = decide_auto(current, level, thresholds)
        if target is None:
            return TransitionOutcome(state=current)
        new_state = self._next_state(current, target, now)
        previous = self._cell.replace(new_state)

        return await self._record_edge(previous, new_state, PumpMode.AUTO, level, now)

    async def command(self, activate: bool, now: Optional[datetime] = None) -> TransitionOutcome:
        """Manual command. Raises ModeConflict unless the pump is in Manual mode."""
        level = None
        if activate:
            latest = await self._readings.find_latest()
            level = latest.level if latest else None
        now = now or self._clock()

        current = self._cell.snapshot()
        if current.mode != PumpMode.MANUAL:
            raise ModeConflict(
                "Cannot manually control pump in auto mode",
                current_mode=current.mode.value,
            )
        if current.is_active == activate:
            logger.debug("[PUMP] Manual command is_active=%s is a no-op", activate)
            return TransitionOutcome(state=current)
        new_state = self._next_state(current, activate, now)
        previous = self._cell.replace(new_state)

        return await self._record_edge(previous, new_state, PumpMode.MANUAL, level, now)

    async def set_mode(
        self,
        mode: PumpMode,
        thresholds: Optional[ThresholdSettings] = None,
        now: Optional[datetime] = None,
    ) -> ModeChange:
        await self._settings.set_pump_mode(mode)

        current = self._cell.snapshot()
        changed = current.mode != mode
        if changed:
            self._cell.replace(replace(current, mode=mode))
            logger.info("[PUMP] Mode %s -> %s", current.mode.value, mode.value)

        if mode != PumpMode.AUTO:
            return ModeChange(state=self._cell.snapshot(), mode_changed=changed)

        latest = await self._readings.find_latest()
        if thresholds is None:
            thresholds = await self._settings.get_threshold_settings()
        if latest is None or thresholds is None:
            logger.info("[PUMP] Auto mode set without a known level/thresholds; no re-evaluation")
            return ModeChange(state=self._cell.snapshot(), mode_changed=changed)

        transition = await self.evaluate_level(latest.level, thresholds, now)
        return ModeChange(state=transition.state, mode_changed=changed, transition=transition)

    def _next_state(self, current: PumpState, activate: bool, now: datetime) -> PumpState:
        if activate:
            return PumpState(is_active=True, mode=current.mode, last_activated=now)
        return PumpState(is_active=False, mode=current.mode, last_activated=current.last_activated)

    async def _record_edge(
        self,
        previous: PumpState,
        new_state: PumpState,
        activated_by: PumpMode,
        level: Optional[float],
        now: datetime,
    ) -> TransitionOutcome:
        try:
            if new_state.is_active:
                await self._open_log(activated_by, level, now)
            else:
                await self._close_log(activated_by, now)
        except Exception as e:
            failure = PersistenceFailure(f"pump log write failed: {e}")
            reverted = self._cell.compare_and_set(new_state, previous)
            logger.error(
                "[PUMP] %s (activate=%s reverted=%s)", failure, new_state.is_active, reverted,
            )
            return TransitionOutcome(
                state=self._cell.snapshot(),
                transitioned=True,
                activated=new_state.is_active,
                activated_by=activated_by,
                level=level,
                persisted=False,
                error=str(failure),
            )

        logger.info(
            "[PUMP] %s by %s at level=%s",
            "Activated" if new_state.is_active else "Deactivated",
            activated_by.value,
            level,
        )
        return TransitionOutcome(
            state=new_state,
            transitioned=True,
            activated=new_state.is_active,
            activated_by=activated_by,
            level=level,
        )

    async def _open_log(self, activated_by: PumpMode, level: Optional[float], now: datetime) -> None:
        await self._logs.create(
            PumpLog(
                is_active=True,
                activated_by=activated_by,
                start_time=now,
                water_level_at_activation=level,
                created_at=now,
            )
        )

    async def _close_log(self, activated_by: PumpMode, now: datetime) -> None:
        open_log = await self._logs.find_latest_open()
        if open_log is not None and open_log.id is not None and open_log.start_time is not None:
            duration = (now - open_log.start_time).total_seconds()
            await self._logs.update(
                open_log.id,
                {"is_active": False, "end_time": now, "duration": duration},
            )
        else:
            logger.warning("[PUMP] No open pump log to close; writing deactivation marker only")

        await self._logs.create(
            PumpLog(is_active=False, activated_by=activated_by, created_at=now)
        )
