"""TimeSeriesPoint - unidad persistida en el store de series temporales.

Dos familias de measurement:
- "telemetry": campos del sensor (temperature, humidity, ...)
- "status": un solo campo entero `status` (1=online, 0=offline)

Y una tercera para el flag reportado por el propio dispositivo:
- "device_status"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Union

TELEMETRY_MEASUREMENT = "telemetry"
STATUS_MEASUREMENT = "status"
DEVICE_STATUS_MEASUREMENT = "device_status"
STATUS_FIELD = "status"

# Ancho de la columna `device` del store
MAX_DEVICE_ID_LENGTH = 128

FieldValue = Union[int, float]


@dataclass
class TimeSeriesPoint:
    """Punto append-only: measurement + tag de dispositivo + campos tipados.

    Si `timestamp` es None el store usa el momento de escritura.
    """

    measurement: str
    device: str
    fields: Dict[str, FieldValue] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    # Momento en que entró al WriteBuffer (monotónico, para edad de reintento)
    enqueued_at: Optional[float] = None

    @property
    def is_status(self) -> bool:
        return self.measurement in (STATUS_MEASUREMENT, DEVICE_STATUS_MEASUREMENT)

    def resolved_timestamp(self) -> datetime:
        """Timestamp efectivo del punto (UTC)."""
        if self.timestamp is None:
            return datetime.now(timezone.utc)
        if self.timestamp.tzinfo is None:
            return self.timestamp.replace(tzinfo=timezone.utc)
        return self.timestamp

    def __str__(self) -> str:
        fields = ",".join(f"{k}={v}" for k, v in sorted(self.fields.items()))
        return f"{self.measurement},device={self.device} {fields}"
