"""Topics MQTT del servicio.

Formato: `{root}/{deviceId}/data` y `{root}/{deviceId}/status`.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Tuple

from ...errors import TransportParseError


class TopicKind(Enum):
    DATA = "data"
    STATUS = "status"


class TopicRouter:
    """Extrae identidad de dispositivo y tipo de mensaje desde el topic."""

    def __init__(self, root: str = "tarla"):
        self._root = root.strip("/")

    @property
    def root(self) -> str:
        return self._root

    def subscriptions(self) -> List[str]:
        return [f"{self._root}/+/{kind.value}" for kind in TopicKind]

    def parse(self, topic: str) -> Tuple[str, TopicKind]:
        """Retorna (device_id, kind).

        El device_id puede venir vacío (`root//data`); el encoder lo rechaza.

        Raises:
            TransportParseError: si el topic no corresponde a este servicio
        """
        parts = topic.split("/")
        if len(parts) != 3 or parts[0] != self._root:
            raise TransportParseError(topic, "unexpected topic layout")
        try:
            kind = TopicKind(parts[2])
        except ValueError as e:
            raise TransportParseError(topic, f"unknown message kind '{parts[2]}'") from e
        return parts[1].strip(), kind
