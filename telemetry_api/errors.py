"""Taxonomía de errores del servicio.

Errores de ingesta (parseo, encoding, escritura) se registran y se descartan
localmente. Errores de consulta se propagan al cliente HTTP.
"""

from __future__ import annotations

from typing import Optional


class TelemetryError(Exception):
    """Base de todos los errores del servicio."""


class TransportParseError(TelemetryError):
    """Payload MQTT malformado. Se descarta sin cambiar estado."""

    def __init__(self, topic: str, reason: str):
        self.topic = topic
        self.reason = reason
        super().__init__(f"Cannot parse message on '{topic}': {reason}")


class EncodingError(TelemetryError):
    """Lectura sin identidad de dispositivo."""


class StoreWriteError(TelemetryError):
    """Fallo al escribir un batch de puntos en el store."""

    def __init__(self, message: str, point_count: int = 0):
        self.point_count = point_count
        super().__init__(message)


class StoreQueryError(TelemetryError):
    """Fallo al consultar el store. Se expone como error 500."""


class ClientRequestError(TelemetryError):
    """Parámetro de consulta faltante o inválido. Se expone como error 400."""

    def __init__(self, message: str, param: Optional[str] = None):
        self.param = param
        super().__init__(message)
