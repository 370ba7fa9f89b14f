from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_services
from ..domain.errors import ValidationError
from ..schemas import ok
from ..services import MonitorServices

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("/weekly-status")
async def send_weekly_status(services: MonitorServices = Depends(get_services)):
    recipient = await services.report_service.recipient()
    if recipient is None:
        raise ValidationError("Email notifications not configured")

    if not await services.report_service.send_weekly_status(recipient):
        raise HTTPException(status_code=500, detail="Failed to send weekly status report")
    return ok("Weekly status report sent successfully")
