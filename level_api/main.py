from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.config import Settings, get_settings
from common.logging_setup import configure_logging

from .domain.errors import ModeConflict, MonitorError, SettingsUnavailable, ValidationError
from .endpoints import (
    alerts_router,
    health_router,
    pump_router,
    readings_router,
    reports_router,
    settings_router,
)
from .realtime.websocket import router as websocket_router
from .services import build_services

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    message = str(first.get("msg", "Invalid request"))
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {message}" if location else message


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _on_validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _on_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": _validation_message(exc)},
        )

    @app.exception_handler(ModeConflict)
    async def _on_mode_conflict(request: Request, exc: ModeConflict):
        return JSONResponse(
            status_code=409,
            content={"success": False, "message": str(exc), "currentMode": exc.current_mode},
        )

    @app.exception_handler(SettingsUnavailable)
    async def _on_settings_unavailable(request: Request, exc: SettingsUnavailable):
        logger.error("[API] %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"success": False, "message": str(exc)})

    @app.exception_handler(MonitorError)
    async def _on_monitor_error(request: Request, exc: MonitorError):
        logger.error("[API] %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"success": False, "message": "Server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        services = build_services(settings)
        await services.start()
        app.state.services = services
        try:
            yield
        finally:
            await services.stop()

    app = FastAPI(title="Water Level Monitor", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(readings_router)
    app.include_router(alerts_router)
    app.include_router(pump_router)
    app.include_router(settings_router)
    app.include_router(reports_router)
    app.include_router(websocket_router)
    return app


app = create_app()
