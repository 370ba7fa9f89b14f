"""Health, readiness and status endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from common.db import check_connection

from ..dependencies import get_services
from ..services import MonitorServices

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: ok while the process runs."""
    return {"status": "ok"}


@router.get("/ready")
def ready(services: MonitorServices = Depends(get_services)):
    """Readiness probe: checks DB connectivity."""
    if not check_connection(services.engine):
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready"}


@router.get("/api/status")
def status(services: MonitorServices = Depends(get_services)):
    return {
        "status": "ok",
        "environment": services.settings.environment,
        "device": services.settings.device_name,
        "pump": services.controller.snapshot().to_payload(),
        "buzzer": {
            "active": services.buzzer.is_active,
            "type": services.buzzer.alert_type.value if services.buzzer.alert_type else None,
        },
        "websocketClients": services.hub.client_count,
        "emailConfigured": services.settings.email_configured,
        "simulation": services.simulator is not None,
        "dispatcher": services.dispatcher.metrics,
        "readingChannel": services.channel.metrics,
    }
