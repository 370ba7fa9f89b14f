from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import get_services
from ..domain.errors import SettingsUnavailable
from ..schemas import NotificationSettingsIn, ThresholdSettingsIn, ok
from ..services import MonitorServices

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
async def get_threshold_settings(services: MonitorServices = Depends(get_services)):
    thresholds = await services.settings_service.get_thresholds()
    if thresholds is None:
        raise SettingsUnavailable("threshold settings not found")
    return ok("Threshold settings", thresholds.to_payload())


@router.post("")
async def update_threshold_settings(
    payload: ThresholdSettingsIn,
    services: MonitorServices = Depends(get_services),
):
    saved = await services.settings_service.update_thresholds(payload.to_domain())
    return ok("Threshold settings updated", saved.to_payload())


@router.get("/notifications")
async def get_notification_settings(services: MonitorServices = Depends(get_services)):
    notifications = await services.settings_service.get_notifications()
    return ok("Notification settings", notifications.to_payload())


@router.post("/notifications")
async def update_notification_settings(
    payload: NotificationSettingsIn,
    services: MonitorServices = Depends(get_services),
):
    saved = await services.settings_service.update_notifications(payload.to_domain())
    return ok("Notification settings updated", saved.to_payload())
