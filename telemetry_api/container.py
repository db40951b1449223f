"""Cableado de componentes del servicio.

Un solo ServiceContainer por proceso: engine → store → buffer → tracker →
dispatcher → cliente MQTT, más la capa de consultas.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from common.config import Settings, get_settings
from common.db import dispose_engine, get_engine

from .core.monitoring.health import HealthChecker
from .core.pipeline.encoder import PointEncoder
from .core.transport.message_handler import IngestionDispatcher
from .core.transport.mqtt_client import MQTTClient
from .core.transport.topics import TopicRouter
from .device_state import LivenessTracker
from .queries.device_telemetry import TelemetryQueryService
from .storage.schema import ensure_schema
from .storage.timeseries import TimeSeriesStore
from .write_buffer import WriteBuffer

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: Engine
    store: TimeSeriesStore
    encoder: PointEncoder
    buffer: WriteBuffer
    tracker: LivenessTracker
    dispatcher: IngestionDispatcher
    queries: TelemetryQueryService
    health: HealthChecker
    mqtt: Optional[MQTTClient] = None
    # Solo el engine singleton del proceso se libera en stop(); uno inyectado es del caller
    owns_engine: bool = False

    def start(self) -> None:
        """Crea el esquema y arranca flush, sweep y MQTT."""
        ensure_schema(self.engine)
        self.buffer.start()
        self.tracker.start()
        if self.mqtt is not None:
            self.mqtt.connect()
        logger.info("[APP] Telemetry service started (mqtt=%s)", self.mqtt is not None)

    def stop(self) -> None:
        """Detiene MQTT primero para no perder puntos, luego sweep y flush final."""
        if self.mqtt is not None:
            self.mqtt.disconnect()
        self.tracker.stop()
        self.buffer.stop(flush_remaining=True)
        if self.owns_engine:
            dispose_engine()
        logger.info("[APP] Telemetry service stopped. %s", self.dispatcher.stats)


def build_container(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    enable_mqtt: Optional[bool] = None,
) -> ServiceContainer:
    settings = settings or get_settings()
    owns_engine = engine is None
    engine = engine or get_engine(settings)
    enable_mqtt = settings.mqtt_enabled if enable_mqtt is None else enable_mqtt

    store = TimeSeriesStore(engine, bucket=settings.store_bucket)
    encoder = PointEncoder(zero_default_fields=settings.zero_default_fields)
    buffer = WriteBuffer(
        store,
        buffer_size=settings.buffer_size,
        flush_interval=settings.flush_interval_seconds,
        max_pending=settings.max_pending,
        max_retry_age=settings.max_retry_age_seconds,
    )
    tracker = LivenessTracker(
        encoder,
        buffer,
        offline_threshold=settings.offline_threshold_seconds,
        sweep_interval=settings.sweep_interval_seconds,
    )
    topics = TopicRouter(settings.mqtt_topic_root)
    dispatcher = IngestionDispatcher(
        encoder,
        tracker,
        buffer,
        topics=topics,
        trust_device_status=settings.trust_device_status,
    )
    queries = TelemetryQueryService(
        store,
        tracker,
        status_lookback=settings.status_lookback,
        last_data_lookback=settings.last_data_lookback,
    )

    mqtt_client = None
    if enable_mqtt:
        mqtt_client = MQTTClient(
            broker_host=settings.mqtt_broker_host,
            broker_port=settings.mqtt_broker_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            topics=topics,
        )
        mqtt_client.set_message_handler(dispatcher.handle)

    return ServiceContainer(
        settings=settings,
        engine=engine,
        store=store,
        encoder=encoder,
        buffer=buffer,
        tracker=tracker,
        dispatcher=dispatcher,
        queries=queries,
        health=HealthChecker(store),
        mqtt=mqtt_client,
        owns_engine=owns_engine,
    )
