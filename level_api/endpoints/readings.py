"""Reading ingestion (direct level and ESP32 distance) and history."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..dependencies import get_services
from ..domain.errors import MonitorError, ValidationError
from ..engine.ingress import IngestOutcome
from ..engine.raw import DistanceInput, LevelInput, parse_raw_reading
from ..schemas import ok
from ..services import MonitorServices

router = APIRouter(prefix="/api", tags=["water-level"])
logger = logging.getLogger(__name__)


async def _json_object(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _alert_summary(outcome: IngestOutcome) -> Dict[str, Any] | None:
    if outcome.alert is None or outcome.alert.alert is None:
        return None
    alert = outcome.alert.alert
    return {"id": alert.id, "type": alert.type.value, "message": alert.message}


async def _ingest(services: MonitorServices, raw) -> IngestOutcome:
    try:
        return await services.ingress.ingest(raw)
    except MonitorError:
        raise
    except Exception as e:
        logger.exception("[INGEST] Recording reading failed err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Failed to record water level")


@router.post("/water-level", status_code=201)
async def record_water_level(request: Request, services: MonitorServices = Depends(get_services)):
    payload = await _json_object(request)
    if "level" not in payload:
        raise ValidationError("Valid water level is required")
    raw = parse_raw_reading(payload)
    if not isinstance(raw, LevelInput):
        raise ValidationError("Valid water level is required")

    outcome = await _ingest(services, raw)
    return ok(
        "Water level recorded",
        {
            "waterLevel": outcome.reading.to_payload(),
            "classification": outcome.classification.value if outcome.classification else None,
            "alert": _alert_summary(outcome),
            "pump": outcome.pump.state.to_payload() if outcome.pump else None,
        },
    )


@router.post("/esp32/data", status_code=201)
async def receive_esp32_data(request: Request, services: MonitorServices = Depends(get_services)):
    payload = await _json_object(request)
    if "distance" not in payload:
        raise ValidationError("Valid distance measurement is required")
    raw = parse_raw_reading(payload)
    if not isinstance(raw, DistanceInput):
        raise ValidationError("Valid distance measurement is required")

    outcome = await _ingest(services, raw)
    return {
        "success": True,
        "message": "ESP32 data processed successfully",
        "data": {
            "rawDistance": outcome.raw_distance,
            "waterLevel": outcome.reading.level,
            "unit": outcome.reading.unit,
        },
        "alert": _alert_summary(outcome),
    }


@router.get("/water-level/current")
async def current_water_level(services: MonitorServices = Depends(get_services)):
    reading = await services.readings.find_latest()
    if reading is None:
        return ok("No water level data yet", None)
    return ok("Current water level", reading.to_payload())


@router.get("/water-level/history")
async def water_level_history(
    limit: int = Query(24, ge=1, le=1000),
    services: MonitorServices = Depends(get_services),
):
    readings = await services.readings.find_recent(limit)
    return ok("Water level history", [r.to_payload() for r in readings])
