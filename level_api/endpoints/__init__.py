"""HTTP endpoints, one router per resource."""

from .health import router as health_router
from .readings import router as readings_router
from .alerts import router as alerts_router
from .pump import router as pump_router
from .settings import router as settings_router
from .reports import router as reports_router

__all__ = [
    "health_router",
    "readings_router",
    "alerts_router",
    "pump_router",
    "settings_router",
    "reports_router",
]
