"""Mock water level sensor for development (SIMULATE_SENSOR=true)."""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from typing import Callable, Optional

from ..engine.raw import DEFAULT_UNIT, LevelInput
from .channel import ReadingChannel, ReadingMessage

logger = logging.getLogger(__name__)


class SensorSimulator:
    """Sine wave around `base` with +-`noise` jitter, clamped to [0, max_level]."""

    def __init__(
        self,
        channel: ReadingChannel,
        interval_seconds: float = 5.0,
        base: float = 50.0,
        amplitude: float = 30.0,
        noise: float = 2.5,
        max_level: float = 100.0,
        unit: str = DEFAULT_UNIT,
        rng: Optional[random.Random] = None,
        time_source: Callable[[], float] = time.time,
    ) -> None:
        self._channel = channel
        self._interval = float(interval_seconds)
        self._base = base
        self._amplitude = amplitude
        self._noise = noise
        self._max_level = max_level
        self._unit = unit
        self._rng = rng or random.Random()
        self._time = time_source
        self._task: Optional[asyncio.Task] = None

    def next_level(self) -> float:
        phase = self._time() / 10.0
        jitter = self._rng.uniform(-self._noise, self._noise)
        level = self._base + self._amplitude * math.sin(phase) + jitter
        return max(0.0, min(self._max_level, round(level, 1)))

    def tick(self) -> bool:
        level = self.next_level()
        logger.debug("[SIM] Sensor reading: %s %s", level, self._unit)
        return self._channel.offer(
            ReadingMessage(raw=LevelInput(level=level, unit=self._unit), source="simulator")
        )

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info("[SIM] Sensor simulation started interval=%ss", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("[SIM] Sensor simulation stopped")

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.tick()
            except Exception:
                logger.exception("[SIM] Simulated reading failed")
