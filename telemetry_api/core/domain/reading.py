"""Modelo de dominio para lecturas de telemetría."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class TelemetryReading:
    """Lectura de una estación de campo ya parseada.

    Este es el contrato que fluye por el pipeline:
    MQTT → Validación → Encoder → WriteBuffer → Store

    `fields` conserva los valores tal como llegaron en el payload; la
    coerción numérica la hace el PointEncoder.
    """
    device_id: str
    fields: Dict[str, Any] = field(default_factory=dict)
    captured_at: Optional[datetime] = None
    topic: Optional[str] = None


@dataclass(frozen=True)
class DeviceStatusReport:
    """Flag de liveness publicado por el firmware en `{root}/{id}/status`."""
    device_id: str
    status: int
    topic: Optional[str] = None
