"""Módulo de Liveness del Dispositivo.

FUENTE ÚNICA DE VERDAD para el estado online/offline en memoria.

Máquina de estados por dispositivo:
- (ausente): nunca se recibió lectura; equivale a OFFLINE para los callers
- ONLINE: última lectura válida dentro del umbral
- OFFLINE: el sweep detectó silencio mayor al umbral

REGLAS:
- Una lectura válida siempre avanza last_seen_at. Solo la transición
  OFFLINE/ausente → ONLINE escribe un punto status=1.
- El sweep escribe exactamente un punto status=0 por transición a OFFLINE,
  nunca uno por tick mientras siga offline.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .core.domain.data_point import STATUS_MEASUREMENT
from .core.pipeline.encoder import PointEncoder
from .metrics import STATUS_TRANSITIONS, TRACKED_DEVICES
from .storage.timerange import to_datetime
from .write_buffer import WriteBuffer

logger = logging.getLogger(__name__)


class DeviceState(Enum):
    """Estados de liveness del dispositivo."""

    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


@dataclass(frozen=True)
class DeviceLiveness:
    """Snapshot inmutable del registro de un dispositivo."""

    device_id: str
    state: DeviceState
    last_seen_at: Optional[float]
    state_changed_at: float

    @property
    def status(self) -> int:
        """1 si está online, 0 si no."""
        return 1 if self.state == DeviceState.ONLINE else 0

    def to_dict(self) -> dict:
        return {
            "device_id": self.device_id,
            "state": self.state.value,
            "status": self.status,
            "last_seen_at": to_datetime(self.last_seen_at).isoformat() if self.last_seen_at else None,
            "state_changed_at": to_datetime(self.state_changed_at).isoformat(),
        }


class LivenessTracker:
    """Tracker de liveness con sweep periódico.

    ÚNICO PUNTO DE DECISIÓN para:
    - Registrar lecturas válidas (touch)
    - Detectar dispositivos silenciosos (sweep)
    - Exponer snapshots consistentes del estado (current_state)

    Todos los accesos a los registros ocurren bajo un mismo lock; los puntos
    de estado se encolan después de tomar la decisión.
    """

    DEFAULT_OFFLINE_THRESHOLD = 300.0  # segundos
    DEFAULT_SWEEP_INTERVAL = 60.0  # segundos

    def __init__(
        self,
        encoder: PointEncoder,
        buffer: WriteBuffer,
        offline_threshold: float = DEFAULT_OFFLINE_THRESHOLD,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._encoder = encoder
        self._buffer = buffer
        self._offline_threshold = offline_threshold
        self._sweep_interval = sweep_interval
        self._clock = clock

        self._records: Dict[str, DeviceLiveness] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweep_thread: Optional[threading.Thread] = None

    @property
    def offline_threshold(self) -> float:
        return self._offline_threshold

    def touch(self, device_id: str, now: Optional[float] = None) -> bool:
        """Registra una lectura válida del dispositivo.

        Returns:
            True si el dispositivo transicionó a ONLINE
        """
        now = self._clock() if now is None else now

        with self._lock:
            record = self._records.get(device_id)
            if record is None:
                self._records[device_id] = DeviceLiveness(
                    device_id=device_id,
                    state=DeviceState.ONLINE,
                    last_seen_at=now,
                    state_changed_at=now,
                )
                transitioned = True
            else:
                last_seen = max(record.last_seen_at or now, now)
                transitioned = record.state != DeviceState.ONLINE
                self._records[device_id] = DeviceLiveness(
                    device_id=device_id,
                    state=DeviceState.ONLINE,
                    last_seen_at=last_seen,
                    state_changed_at=now if transitioned else record.state_changed_at,
                )
            tracked = len(self._records)

        TRACKED_DEVICES.set(tracked)
        if transitioned:
            logger.info("[LIVENESS] device=%s → ONLINE", device_id)
            self._emit(device_id, DeviceState.ONLINE, now)
        return transitioned

    def current_state(self, device_id: str) -> Optional[DeviceLiveness]:
        """Snapshot del registro, o None si el dispositivo nunca reportó."""
        with self._lock:
            return self._records.get(device_id)

    def devices(self) -> List[DeviceLiveness]:
        """Snapshot de todos los registros."""
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.device_id)

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """Marca OFFLINE a los dispositivos silenciosos más allá del umbral.

        Returns:
            Dispositivos que transicionaron a OFFLINE en este sweep
        """
        now = self._clock() if now is None else now
        went_offline: List[str] = []

        with self._lock:
            for device_id, record in self._records.items():
                if record.state == DeviceState.OFFLINE or record.last_seen_at is None:
                    continue
                if now - record.last_seen_at > self._offline_threshold:
                    self._records[device_id] = DeviceLiveness(
                        device_id=device_id,
                        state=DeviceState.OFFLINE,
                        last_seen_at=record.last_seen_at,
                        state_changed_at=now,
                    )
                    went_offline.append(device_id)

        for device_id in went_offline:
            logger.info("[LIVENESS] device=%s → OFFLINE (silent > %.0fs)",
                        device_id, self._offline_threshold)
            self._emit(device_id, DeviceState.OFFLINE, now)
        return went_offline

    def apply_device_report(self, device_id: str, status: int, now: Optional[float] = None) -> bool:
        """Aplica el flag reportado por el firmware.

        status=1 cuenta como lectura válida; status=0 fuerza OFFLINE si el
        dispositivo estaba ONLINE.

        Returns:
            True si hubo transición de estado
        """
        if status:
            return self.touch(device_id, now)

        now = self._clock() if now is None else now
        with self._lock:
            record = self._records.get(device_id)
            if record is None or record.state == DeviceState.OFFLINE:
                return False
            self._records[device_id] = DeviceLiveness(
                device_id=device_id,
                state=DeviceState.OFFLINE,
                last_seen_at=record.last_seen_at,
                state_changed_at=now,
            )

        logger.info("[LIVENESS] device=%s → OFFLINE (reported by device)", device_id)
        self._emit(device_id, DeviceState.OFFLINE, now)
        return True

    def _emit(self, device_id: str, state: DeviceState, now: float) -> None:
        status = 1 if state == DeviceState.ONLINE else 0
        point = self._encoder.encode_status(device_id, status, measurement=STATUS_MEASUREMENT)
        point.timestamp = to_datetime(now)
        STATUS_TRANSITIONS.labels(state=state.value.lower()).inc()
        if not self._buffer.enqueue(point):
            logger.warning("[LIVENESS] Status point dropped by buffer: device=%s status=%d",
                           device_id, status)

    # ------------------------------------------------------------------
    # Timer de sweep
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Inicia el thread de sweep periódico."""
        if self._sweep_thread is not None and self._sweep_thread.is_alive():
            return

        self._stop_event.clear()
        self._sweep_thread = threading.Thread(
            target=self._sweep_loop, name="liveness-sweep", daemon=True,
        )
        self._sweep_thread.start()
        logger.info("[LIVENESS] Sweep started: interval=%.1fs threshold=%.1fs",
                    self._sweep_interval, self._offline_threshold)

    def stop(self) -> None:
        """Detiene el thread de sweep."""
        self._stop_event.set()
        if self._sweep_thread is not None:
            self._sweep_thread.join(timeout=5.0)
            self._sweep_thread = None
        logger.info("[LIVENESS] Sweep stopped. tracked=%d", len(self._records))

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("[LIVENESS] Sweep failed")
