from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_services
from ..domain.errors import ValidationError
from ..domain.models import AlertType
from ..schemas import ok
from ..services import MonitorServices

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(
    type: Optional[str] = Query(None),
    acknowledged: Optional[str] = Query(None),
    services: MonitorServices = Depends(get_services),
):
    # Unknown filter values are ignored rather than rejected.
    alert_type = AlertType(type) if type in ("warning", "danger") else None
    ack = {"true": True, "false": False}.get((acknowledged or "").lower())

    alerts = await services.alert_service.find(alert_type=alert_type, acknowledged=ack)
    return ok("Alerts", [a.to_payload() for a in alerts])


@router.put("/{alert_id}/acknowledge")
async def acknowledge_alert(alert_id: str, services: MonitorServices = Depends(get_services)):
    try:
        parsed_id = int(alert_id)
    except ValueError:
        raise ValidationError("Invalid alert ID")

    alert = await services.alert_service.acknowledge(parsed_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return ok("Alert acknowledged", {"id": alert.id, "acknowledged": True})


@router.post("/acknowledge-all")
async def acknowledge_all_alerts(services: MonitorServices = Depends(get_services)):
    alerts = await services.alert_service.acknowledge_all()
    if not alerts:
        return ok("No alerts to acknowledge", {"count": 0})
    return ok(f"{len(alerts)} alerts acknowledged", {"count": len(alerts)})
