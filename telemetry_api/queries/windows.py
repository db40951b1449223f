"""Tabla fija de ventanas de downsampling para consultas de historial.

El ancho de ventana depende SOLO del largo del rango pedido, para acotar el
tamaño de la respuesta (~288 muestras para 24h, ~336 para 7d).
"""

from __future__ import annotations

from typing import Tuple

MINUTE = 60.0
HOUR = 60 * MINUTE
DAY = 24 * HOUR

# (rango máximo en segundos, ancho de ventana en segundos, etiqueta)
WINDOW_TABLE: Tuple[Tuple[float, float, str], ...] = (
    (1 * HOUR, 1 * MINUTE, "1m"),
    (1 * DAY, 5 * MINUTE, "5m"),
    (7 * DAY, 30 * MINUTE, "30m"),
    (30 * DAY, 2 * HOUR, "2h"),
)
FALLBACK_WINDOW: Tuple[float, str] = (1 * DAY, "1d")


def select_window(range_seconds: float) -> Tuple[float, str]:
    """Retorna (ancho en segundos, etiqueta) para un rango dado."""
    for max_range, window, label in WINDOW_TABLE:
        if range_seconds <= max_range:
            return window, label
    return FALLBACK_WINDOW
