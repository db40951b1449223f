"""Encoder de lecturas a TimeSeriesPoint.

Esquema explícito de campos: todos se convierten a float excepto
`wind_direction`, que es un entero (grados de brújula).

Campos ausentes o no numéricos se OMITEN. Rellenar con 0 es una política
opt-in por campo (`zero_default_fields`), porque un cero falso corrompe
las estadísticas (una batería sin lectura no es una batería en 0%).
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable, Dict, Iterable, Optional

from ..domain.data_point import (
    MAX_DEVICE_ID_LENGTH,
    STATUS_FIELD,
    STATUS_MEASUREMENT,
    TELEMETRY_MEASUREMENT,
    FieldValue,
    TimeSeriesPoint,
)
from ..domain.reading import TelemetryReading
from ...errors import EncodingError

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _to_int(value: Any) -> Optional[int]:
    result = _to_float(value)
    if result is None:
        return None
    return int(round(result))


FIELD_SCHEMA: Dict[str, Callable[[Any], Optional[FieldValue]]] = {
    "temperature": _to_float,
    "humidity": _to_float,
    "soil_moisture": _to_float,
    "battery": _to_float,
    "wind_speed": _to_float,
    "wind_direction": _to_int,
}

# Claves del envelope que nunca son mediciones
RESERVED_KEYS = frozenset({"ts", "timestamp", "device", "device_id", "deviceId", "id"})

_EXTENSION_FIELD_RE = re.compile(r"^[a-z][a-z0-9_]{0,63}$")


class PointEncoder:
    """Traduce TelemetryReading → TimeSeriesPoint.

    Sin efectos secundarios: no habla con el store.
    """

    def __init__(
        self,
        zero_default_fields: Iterable[str] = (),
        accept_extension_fields: bool = True,
    ):
        self._zero_default_fields = frozenset(zero_default_fields)
        self._accept_extension_fields = accept_extension_fields

    def encode(self, reading: TelemetryReading) -> TimeSeriesPoint:
        """Construye un punto de la familia telemetry.

        Raises:
            EncodingError: si la lectura no tiene identidad de dispositivo
        """
        device = self._require_device(reading.device_id)
        fields: Dict[str, FieldValue] = {}

        for name, raw in reading.fields.items():
            if name in RESERVED_KEYS:
                continue
            coerce = FIELD_SCHEMA.get(name)
            if coerce is None:
                if not self._accept_extension_fields or not _EXTENSION_FIELD_RE.match(name):
                    logger.debug("[ENCODER] Ignoring field %r for device=%s", name, device)
                    continue
                coerce = _to_float
            value = coerce(raw)
            if value is None:
                logger.debug(
                    "[ENCODER] Omitting non-numeric field %s=%r for device=%s",
                    name, raw, device,
                )
                continue
            fields[name] = value

        for name in self._zero_default_fields:
            if name not in fields:
                fields[name] = 0 if FIELD_SCHEMA.get(name) is _to_int else 0.0

        return TimeSeriesPoint(
            measurement=TELEMETRY_MEASUREMENT,
            device=device,
            fields=fields,
            timestamp=reading.captured_at,
        )

    def encode_status(
        self,
        device_id: str,
        status: int,
        measurement: str = STATUS_MEASUREMENT,
    ) -> TimeSeriesPoint:
        """Construye un punto de estado (status=1 online, status=0 offline)."""
        device = self._require_device(device_id)
        return TimeSeriesPoint(
            measurement=measurement,
            device=device,
            fields={STATUS_FIELD: 1 if status else 0},
        )

    @staticmethod
    def _require_device(device_id: Optional[str]) -> str:
        device = "" if device_id is None else str(device_id).strip()
        if not device:
            raise EncodingError("device identity is missing or empty")
        if len(device) > MAX_DEVICE_ID_LENGTH:
            raise EncodingError(
                f"device identity longer than {MAX_DEVICE_ID_LENGTH} characters ({len(device)})"
            )
        return device
