"""Queries de dispositivo.

Funciones de consulta sobre el store de series temporales para estado,
última lectura e historial agregado.
"""

from .device_telemetry import (
    HistoryResult,
    HistorySample,
    HistoryStats,
    TelemetryQueryService,
)
from .windows import select_window

__all__ = [
    "HistoryResult",
    "HistorySample",
    "HistoryStats",
    "TelemetryQueryService",
    "select_window",
]
