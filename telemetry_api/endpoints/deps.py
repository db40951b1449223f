"""Dependencias FastAPI compartidas por los endpoints."""

from __future__ import annotations

from fastapi import HTTPException, Request

from ..container import ServiceContainer
from ..queries.device_telemetry import TelemetryQueryService


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="service not initialized")
    return container


def get_queries(request: Request) -> TelemetryQueryService:
    return get_container(request).queries
