"""`/ws` endpoint: dashboard subscription plus alert acknowledgement.

Protocol:
1. Server -> {type: "connection", data: {status: "connected"}}
2. Server -> {type: "waterLevel"|"alert"|"pumpStatus"|"settings", data}
3. Client -> {type: "acknowledgeAlert", alertId}
4. Server -> {type: "alertAcknowledged", data: alert} or {type: "error", data: {message}}
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(message: str) -> Dict[str, Any]:
    return {"type": "error", "data": {"message": message}}


def _parse_alert_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().lower() in ("", "undefined", "null"):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@router.websocket("/ws")
async def websocket_updates(websocket: WebSocket):
    services = websocket.app.state.services
    hub = services.hub

    await websocket.accept()
    await hub.register(websocket)

    try:
        await websocket.send_json({"type": "connection", "data": {"status": "connected"}})
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json(_error("Invalid message format"))
                continue
            if not isinstance(message, dict):
                await websocket.send_json(_error("Invalid message format"))
                continue

            msg_type = message.get("type")
            if msg_type != "acknowledgeAlert":
                logger.debug("[WS] Ignoring message type=%s", msg_type)
                continue

            alert_id = _parse_alert_id(message.get("alertId"))
            if alert_id is None:
                logger.warning("[WS] acknowledgeAlert without a valid alertId: %s", message)
                await websocket.send_json(_error("Invalid alert ID"))
                continue

            try:
                alert = await services.alert_service.acknowledge(alert_id)
            except Exception:
                logger.exception("[WS] Acknowledging alert id=%s failed", alert_id)
                await websocket.send_json(_error("Failed to acknowledge alert"))
                continue
            if alert is None:
                await websocket.send_json(_error("Alert not found"))
                continue
            await websocket.send_json({"type": "alertAcknowledged", "data": alert.to_payload()})

    except WebSocketDisconnect:
        pass
    finally:
        await hub.unregister(websocket)
