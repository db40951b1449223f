"""Transporte MQTT de las estaciones de campo.

paho maneja la reconexión en su propio thread de red; en cada CONNACK
exitoso se vuelven a suscribir los topics de datos y status, así que un
corte del broker no deja al servicio sordo.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from .topics import TopicRouter

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, bytes], None]


class MQTTClient:
    """Suscriptor MQTT que entrega (topic, payload) al dispatcher.

    El callback de mensajes corre en el thread de red de paho: el handler
    no debe bloquear ni propagar excepciones.
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "telemetry-ingest",
        topics: Optional[TopicRouter] = None,
        qos: int = 1,
        keepalive: int = 60,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self.topics = topics or TopicRouter()
        self.qos = qos
        self.keepalive = keepalive

        self._paho: Optional[mqtt.Client] = None
        self._online = threading.Event()
        self._handler: Optional[MessageHandler] = None
        self._sessions = 0

    def set_message_handler(self, handler: MessageHandler):
        self._handler = handler

    def connect(self, wait_seconds: float = 5.0) -> bool:
        """Arranca el loop de red y espera el primer CONNACK.

        Returns:
            True si hubo sesión dentro de `wait_seconds`. Con False paho sigue
            reintentando en background; el servicio arranca igual.
        """
        paho = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
        )
        paho.on_connect = self._on_connect
        paho.on_disconnect = self._on_disconnect
        paho.on_message = self._on_message
        paho.reconnect_delay_set(min_delay=1, max_delay=60)
        if self.username and self.password:
            paho.username_pw_set(self.username, self.password)
        self._paho = paho

        logger.info("[MQTT] Connecting to %s:%d as %s",
                    self.broker_host, self.broker_port, self.client_id)
        try:
            paho.connect_async(self.broker_host, self.broker_port, keepalive=self.keepalive)
            paho.loop_start()
        except (OSError, ValueError) as e:
            logger.error("[MQTT] Cannot start network loop: %s", e)
            return False

        if self._online.wait(wait_seconds):
            return True
        logger.error("[MQTT] No CONNACK after %.1fs; retrying in background", wait_seconds)
        return False

    def disconnect(self):
        """Cierra la sesión y detiene el loop de red."""
        paho, self._paho = self._paho, None
        if paho is not None:
            paho.disconnect()
            paho.loop_stop()
        self._online.clear()
        logger.info("[MQTT] Disconnected after %d session(s)", self._sessions)

    # ------------------------------------------------------------------
    # Callbacks de paho (thread de red)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            self._online.clear()
            logger.error("[MQTT] Broker refused session: rc=%s", reason_code)
            return

        self._sessions += 1
        self._online.set()
        logger.info("[MQTT] Session #%d established", self._sessions)
        for topic in self.topics.subscriptions():
            client.subscribe(topic, qos=self.qos)
            logger.info("[MQTT] Subscribed to %s (qos=%d)", topic, self.qos)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._online.clear()
        logger.warning("[MQTT] Session lost (rc=%s)", reason_code)

    def _on_message(self, client, userdata, msg):
        if self._handler is not None:
            self._handler(msg.topic, msg.payload)

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._online.is_set()

    @property
    def reconnect_count(self) -> int:
        return max(self._sessions - 1, 0)

    @property
    def stats(self) -> dict:
        return {
            "connected": self.is_connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "subscriptions": self.topics.subscriptions(),
            "reconnect_count": self.reconnect_count,
        }
