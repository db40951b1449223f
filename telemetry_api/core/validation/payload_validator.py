"""Parseo y validación de payloads MQTT.

Topics soportados:
- `{root}/{deviceId}/data`: objeto JSON con campos numéricos
  {"temperature": 22.5, "humidity": 60, "soil_moisture": 30, "battery": 90,
   "wind_speed": 3.2, "wind_direction": 270, "ts": 1760000000}
- `{root}/{deviceId}/status`: entero plano ("1" / "0") o {"status": 1}

Cualquier fallo se reporta como TransportParseError; el dispatcher lo
registra y descarta el mensaje.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..domain.reading import DeviceStatusReport, TelemetryReading
from ...errors import TransportParseError

logger = logging.getLogger(__name__)

MAX_PAYLOAD_BYTES = 64 * 1024


class DataPayload(BaseModel):
    """Envelope del payload de datos.

    Los campos de medición llegan como extras; solo el tiempo de captura
    tiene esquema propio.
    """

    model_config = ConfigDict(extra="allow")

    captured_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("ts", "timestamp"),
    )

    def measurement_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


def _decode(topic: str, payload: bytes) -> str:
    if len(payload) > MAX_PAYLOAD_BYTES:
        raise TransportParseError(topic, f"payload too large ({len(payload)} bytes)")
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TransportParseError(topic, f"invalid utf-8: {e}") from e


def parse_data_payload(topic: str, device_id: str, payload: bytes) -> TelemetryReading:
    """Parsea el payload de `{root}/{id}/data` a TelemetryReading."""
    text = _decode(topic, payload)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TransportParseError(topic, f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise TransportParseError(topic, f"expected JSON object, got {type(data).__name__}")

    try:
        envelope = DataPayload.model_validate(data)
    except ValidationError as e:
        raise TransportParseError(topic, f"invalid capture time: {e.errors()[0]['msg']}") from e

    captured_at = envelope.captured_at
    if captured_at is not None and captured_at.tzinfo is None:
        captured_at = captured_at.replace(tzinfo=timezone.utc)

    return TelemetryReading(
        device_id=device_id,
        fields=envelope.measurement_fields(),
        captured_at=captured_at,
        topic=topic,
    )


def parse_status_payload(topic: str, device_id: str, payload: bytes) -> DeviceStatusReport:
    """Parsea el flag entero de `{root}/{id}/status`."""
    text = _decode(topic, payload).strip()
    if not text:
        raise TransportParseError(topic, "empty status payload")

    raw: Any = text
    if text.startswith("{"):
        try:
            raw = json.loads(text).get("status")
        except (json.JSONDecodeError, AttributeError) as e:
            raise TransportParseError(topic, f"invalid status JSON: {e}") from e

    if isinstance(raw, bool):
        raise TransportParseError(topic, "status must be an integer")
    try:
        status = int(raw)
    except (TypeError, ValueError) as e:
        raise TransportParseError(topic, f"status must be an integer, got {raw!r}") from e

    if status not in (0, 1):
        raise TransportParseError(topic, f"status out of range: {status}")

    return DeviceStatusReport(device_id=device_id, status=status, topic=topic)
