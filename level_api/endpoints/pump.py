from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_services
from ..schemas import PumpControlIn, PumpModeIn, ok
from ..services import MonitorServices

router = APIRouter(prefix="/api/pump", tags=["pump"])
logger = logging.getLogger(__name__)


@router.get("/status")
def pump_status(services: MonitorServices = Depends(get_services)):
    return ok("Pump status", services.pump_service.status().to_payload())


@router.post("/control")
async def control_pump(payload: PumpControlIn, services: MonitorServices = Depends(get_services)):
    outcome = await services.pump_service.command(payload.is_active)
    if not outcome.persisted:
        logger.error("[API] Pump command is_active=%s not persisted: %s", payload.is_active, outcome.error)
        raise HTTPException(status_code=500, detail="Failed to record pump transition")
    return ok(
        "Pump state changed" if outcome.transitioned else "Pump state unchanged",
        outcome.state.to_payload(),
    )


@router.post("/mode")
async def set_pump_mode(payload: PumpModeIn, services: MonitorServices = Depends(get_services)):
    change = await services.pump_service.set_mode(payload.mode)
    return ok(
        f"Pump mode set to {change.state.mode.value}",
        change.state.to_payload(),
        mode=change.state.mode.value,
    )


@router.get("/logs")
async def pump_logs(
    limit: int = Query(50, ge=1, le=500),
    services: MonitorServices = Depends(get_services),
):
    logs = await services.pump_service.logs(limit)
    return ok("Pump logs", [log.to_payload() for log in logs])
