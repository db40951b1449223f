"""Módulo de endpoints HTTP.

Contiene los endpoints de consulta del servicio organizados por función.
"""

from .health import router as health_router
from .devices import router as devices_router
from .diagnostics import router as diagnostics_router

__all__ = [
    "health_router",
    "devices_router",
    "diagnostics_router",
]
