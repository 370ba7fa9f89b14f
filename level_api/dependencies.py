from __future__ import annotations

from fastapi import Request

from .services import MonitorServices


def get_services(request: Request) -> MonitorServices:
    return request.app.state.services
