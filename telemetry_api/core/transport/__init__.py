"""Transport layer - Recepción de datos MQTT."""

from .mqtt_client import MQTTClient
from .message_handler import IngestionDispatcher
from .topics import TopicKind, TopicRouter

__all__ = ["MQTTClient", "IngestionDispatcher", "TopicKind", "TopicRouter"]
