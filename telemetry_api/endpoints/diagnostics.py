"""Diagnóstico de ingesta: contadores del dispatcher, buffer y liveness."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..container import ServiceContainer
from ..schemas import DeviceLivenessOut, IngestionStatsOut
from .deps import get_container

router = APIRouter(tags=["diagnostics"])


@router.get("/api/ingestion/stats", response_model=IngestionStatsOut)
def get_ingestion_stats(container: ServiceContainer = Depends(get_container)):
    """Contadores en memoria del pipeline de ingesta.

    Incluye un snapshot del estado de liveness de cada dispositivo visto
    desde el arranque del proceso.
    """
    return IngestionStatsOut(
        dispatcher=container.dispatcher.stats.to_dict(),
        buffer=container.buffer.get_stats(),
        mqtt=container.mqtt.stats if container.mqtt else None,
        devices=[DeviceLivenessOut(**record.to_dict()) for record in container.tracker.devices()],
    )
