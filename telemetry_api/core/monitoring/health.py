"""Readiness del servicio de telemetría."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from ...storage.timeseries import TimeSeriesStore


@dataclass(frozen=True)
class HealthStatus:
    """Snapshot de readiness expuesto en /ready."""
    healthy: bool
    store_connected: bool
    mqtt_connected: bool
    messages_processed: int
    messages_failed: int
    pending_points: int

    def to_dict(self) -> dict:
        return asdict(self)


class HealthChecker:
    """Decide readiness a partir del store.

    Sin MQTT el servicio sigue respondiendo consultas, así que el estado del
    broker se informa pero no afecta `healthy`.
    """

    def __init__(self, store: Optional[TimeSeriesStore] = None):
        self._store = store

    def check_store(self) -> bool:
        return self._store is not None and self._store.ping()

    def get_status(
        self,
        mqtt_connected: bool,
        processed: int,
        failed: int,
        pending_points: int = 0,
    ) -> HealthStatus:
        store_ok = self.check_store()
        return HealthStatus(
            healthy=store_ok,
            store_connected=store_ok,
            mqtt_connected=mqtt_connected,
            messages_processed=processed,
            messages_failed=failed,
            pending_points=pending_points,
        )
