"""Dispatcher de mensajes MQTT."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..domain.data_point import DEVICE_STATUS_MEASUREMENT
from ..monitoring.stats import Stats
from ..pipeline.encoder import PointEncoder
from ..validation.payload_validator import parse_data_payload, parse_status_payload
from .topics import TopicKind, TopicRouter
from ...device_state import LivenessTracker
from ...errors import EncodingError, TransportParseError
from ...metrics import MESSAGES_RECEIVED
from ...write_buffer import WriteBuffer

logger = logging.getLogger(__name__)


class IngestionDispatcher:
    """Maneja mensajes MQTT y los enruta por el pipeline.

    Responsabilidades:
    - Extraer el dispositivo desde el topic
    - Parsear y validar el payload
    - Encoder → WriteBuffer para los puntos
    - LivenessTracker para el estado online/offline
    - Tracking de estadísticas

    Nunca propaga excepciones al transporte: los mensajes inválidos se
    registran y se descartan sin tocar estado.
    """

    def __init__(
        self,
        encoder: PointEncoder,
        tracker: LivenessTracker,
        buffer: WriteBuffer,
        topics: Optional[TopicRouter] = None,
        trust_device_status: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self._encoder = encoder
        self._tracker = tracker
        self._buffer = buffer
        self._topics = topics or TopicRouter()
        self._trust_device_status = trust_device_status
        self._clock = clock
        self._stats = Stats()

    @property
    def topics(self) -> TopicRouter:
        return self._topics

    def handle(self, topic: str, payload: bytes):
        """Procesa un mensaje MQTT."""
        now = self._clock()
        self._stats.record_received(now)
        kind_label = "unknown"

        try:
            device_id, kind = self._topics.parse(topic)
            kind_label = kind.value

            if kind == TopicKind.DATA:
                self._handle_data(topic, device_id, payload, now)
            else:
                self._handle_status(topic, device_id, payload, now)

            self._stats.record_processed(status_report=kind == TopicKind.STATUS)
            MESSAGES_RECEIVED.labels(kind=kind_label, status="success").inc()

        except TransportParseError as e:
            logger.warning("[HANDLER] Discarding message: %s", e)
            self._stats.record_failed()
            MESSAGES_RECEIVED.labels(kind=kind_label, status="parse_error").inc()
            return
        except EncodingError as e:
            logger.warning("[HANDLER] Discarding message on %s: %s", topic, e)
            self._stats.record_failed()
            MESSAGES_RECEIVED.labels(kind=kind_label, status="parse_error").inc()
            return
        except Exception as e:
            logger.exception("[HANDLER] Error processing %s: %s", topic, e)
            self._stats.record_failed()
            MESSAGES_RECEIVED.labels(kind=kind_label, status="processing_error").inc()
            return

        # Log periódico
        if self._stats.processed % 100 == 0:
            logger.info("[HANDLER] %s", self._stats)

    def _handle_data(self, topic: str, device_id: str, payload: bytes, now: float):
        reading = parse_data_payload(topic, device_id, payload)
        point = self._encoder.encode(reading)
        if not point.fields:
            raise TransportParseError(topic, "payload has no numeric fields")

        self._buffer.enqueue(point)
        self._tracker.touch(point.device, now)

    def _handle_status(self, topic: str, device_id: str, payload: bytes, now: float):
        report = parse_status_payload(topic, device_id, payload)
        point = self._encoder.encode_status(
            report.device_id, report.status, measurement=DEVICE_STATUS_MEASUREMENT,
        )
        self._buffer.enqueue(point)

        if self._trust_device_status:
            self._tracker.apply_device_report(point.device, report.status, now)

    @property
    def stats(self) -> Stats:
        return self._stats
