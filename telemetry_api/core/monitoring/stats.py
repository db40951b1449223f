"""Contadores del dispatcher de ingesta."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Stats:
    """Contadores de mensajes MQTT.

    `processed + failed == received` una vez que cada handle() termina.
    Se actualizan desde el thread de red de paho y se leen desde los
    endpoints, de ahí el lock.
    """

    received: int = 0
    processed: int = 0
    failed: int = 0
    status_reports: int = 0
    last_message_at: float = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __str__(self) -> str:
        return (f"received={self.received} processed={self.processed} "
                f"failed={self.failed} status_reports={self.status_reports}")

    def record_received(self, at: float) -> None:
        with self._lock:
            self.received += 1
            self.last_message_at = at

    def record_processed(self, status_report: bool = False) -> None:
        with self._lock:
            self.processed += 1
            if status_report:
                self.status_reports += 1

    def record_failed(self) -> None:
        with self._lock:
            self.failed += 1

    def to_dict(self) -> dict:
        with self._lock:
            handled = self.processed + self.failed
            return {
                "received": self.received,
                "processed": self.processed,
                "failed": self.failed,
                "status_reports": self.status_reports,
                "last_message_at": self.last_message_at,
                "started_at": self.started_at.isoformat(),
                "success_rate": self.processed / handled if handled else 1.0,
            }
