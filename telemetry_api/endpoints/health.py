"""Health, readiness y métricas."""

from fastapi import APIRouter, Depends, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..container import ServiceContainer
from .deps import get_container

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: always returns ok if process is running."""
    return {"status": "ok"}


@router.get("/ready")
def ready(container: ServiceContainer = Depends(get_container)):
    """Readiness probe: checks time-series store connectivity."""
    status = container.health.get_status(
        mqtt_connected=container.mqtt.is_connected if container.mqtt else False,
        processed=container.dispatcher.stats.processed,
        failed=container.dispatcher.stats.failed,
        pending_points=container.buffer.pending,
    )
    if not status.store_connected:
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready", **status.to_dict()}


@router.get("/metrics")
def metrics():
    """Prometheus exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
