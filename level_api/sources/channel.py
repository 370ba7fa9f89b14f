"""Bounded queue between reading sources and the ingress.

Sources (simulator, hardware drivers) only `offer()` messages; a single
consumer task feeds them to `ReadingIngress.ingest` in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..domain.errors import MonitorError
from ..engine.ingress import ReadingIngress
from ..engine.raw import RawReading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadingMessage:
    raw: RawReading
    source: str = "sensor"


class ReadingChannel:
    def __init__(self, ingress: ReadingIngress, max_size: int = 1000) -> None:
        self._ingress = ingress
        self._queue: "asyncio.Queue[ReadingMessage]" = asyncio.Queue(maxsize=max_size)
        self._task: Optional[asyncio.Task] = None

        self._received = 0
        self._dropped = 0
        self._processed = 0
        self._failed = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def offer(self, message: ReadingMessage) -> bool:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "[INGEST] Reading channel full (%d), dropped reading from %s",
                self._queue.maxsize, message.source,
            )
            return False
        self._received += 1
        return True

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info("[INGEST] Reading channel consumer started")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[INGEST] Reading channel stopped. %s", self.metrics)

    async def drain(self) -> None:
        """Waits until every queued reading went through the ingress."""
        if self.is_running:
            await self._queue.join()

    async def _run_loop(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._ingress.ingest(message.raw)
                self._processed += 1
            except asyncio.CancelledError:
                raise
            except MonitorError as e:
                self._failed += 1
                logger.warning("[INGEST] Reading from %s rejected: %s", message.source, e)
            except Exception:
                self._failed += 1
                logger.exception("[INGEST] Reading from %s failed", message.source)
            finally:
                self._queue.task_done()

    @property
    def metrics(self) -> dict:
        return {
            "queue_depth": self._queue.qsize(),
            "queue_max": self._queue.maxsize,
            "received": self._received,
            "dropped": self._dropped,
            "processed": self._processed,
            "failed": self._failed,
        }
