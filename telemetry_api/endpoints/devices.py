"""Endpoints de lectura por dispositivo: estado, última lectura e historial."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..errors import ClientRequestError, StoreQueryError
from ..queries.device_telemetry import DEFAULT_HISTORY_START, TelemetryQueryService
from ..schemas import (
    DeviceStatusOut,
    HistoryOut,
    HistoryPoint,
    HistoryStatsOut,
    LastReadingOut,
)
from .deps import get_queries

router = APIRouter(prefix="/api", tags=["devices"])
logger = logging.getLogger(__name__)


def _store_failure(endpoint: str, device: str, e: StoreQueryError) -> HTTPException:
    # No exponer stack traces al cliente; el detalle completo queda en logs
    logger.exception("[API] %s failed for device=%s", endpoint, device)
    return HTTPException(status_code=500, detail=f"Time-series store query failed: {e}")


@router.get("/status/{device}", response_model=DeviceStatusOut)
def get_device_status(
    device: str,
    queries: TelemetryQueryService = Depends(get_queries),
):
    """Estado online (1) / offline (0) del dispositivo.

    Un dispositivo nunca visto retorna 0, no error.
    """
    try:
        return DeviceStatusOut(status=queries.get_status(device))
    except StoreQueryError as e:
        raise _store_failure("status", device, e)


@router.get("/last-data/{device}", response_model=LastReadingOut)
def get_device_last_data(
    device: str,
    queries: TelemetryQueryService = Depends(get_queries),
):
    """Último valor de cada campo de telemetría (mapa vacío si no hay datos)."""
    try:
        return queries.get_last_reading(device)
    except StoreQueryError as e:
        raise _store_failure("last-data", device, e)


@router.get("/history/{device}", response_model=HistoryOut)
def get_device_history(
    device: str,
    field: Optional[str] = Query(None, description="Telemetry field, e.g. temperature"),
    start: str = Query(DEFAULT_HISTORY_START, description="Relative offset (-24h, -7d) or ISO-8601"),
    queries: TelemetryQueryService = Depends(get_queries),
):
    """Serie downsampleada de un campo y su resumen min/max/mean/last.

    Example response:
    ```json
    {
        "series": [{"time": "2026-10-19T10:00:00Z", "value": 22.4}],
        "stats": {"min": 18.1, "max": 27.9, "mean": 22.7, "last": 23.0}
    }
    ```
    """
    try:
        result = queries.get_history(device, field, start)
    except ClientRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreQueryError as e:
        raise _store_failure("history", device, e)

    return HistoryOut(
        series=[HistoryPoint(time=s.time, value=s.value) for s in result.series],
        stats=HistoryStatsOut(
            min=result.stats.min,
            max=result.stats.max,
            mean=result.stats.mean,
            last=result.stats.last,
        ),
    )
