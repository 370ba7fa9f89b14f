"""In-process registry of dashboard WebSocket connections."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Fan-out of `{"type", "data"}` frames to every connected client.

    `publish` returns False when nobody is listening; that is not an
    error. Sockets that fail on send are dropped.
    """

    def __init__(self) -> None:
        self._clients: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def register(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.add(websocket)
        logger.info("[WS] Client connected (clients=%d)", len(self._clients))

    async def unregister(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("[WS] Client disconnected (clients=%d)", len(self._clients))

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> bool:
        async with self._lock:
            clients: List[WebSocket] = list(self._clients)
        if not clients:
            return False

        message = json.dumps({"type": event_type, "data": payload}, default=str)
        delivered = 0
        dead: List[WebSocket] = []
        for client in clients:
            try:
                await client.send_text(message)
                delivered += 1
            except Exception as e:
                logger.warning("[WS] Send of %s failed, dropping client: %s", event_type, e)
                dead.append(client)

        if dead:
            async with self._lock:
                for client in dead:
                    self._clients.discard(client)
        return delivered > 0

    async def close_all(self) -> None:
        async with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for client in clients:
            try:
                await client.close()
            except Exception:
                logger.debug("[WS] Close on shutdown failed", exc_info=True)
