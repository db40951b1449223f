"""Buffer de escritura con flush periódico al store de series temporales.

Características:
- Buffer en memoria con flush automático por tiempo o por cantidad
- flush() explícito para vaciar en el momento
- Si el flush falla, el batch se reescribe punto por punto: un punto que el
  store rechaza no bloquea al resto. Si el store está caído, los puntos
  vuelven al frente del buffer para el siguiente intervalo (at-least-once)
- Retención acotada: se descartan puntos más viejos que max_retry_age y
  el buffer nunca supera max_pending
- Thread-safe para uso concurrente (thread MQTT, thread de sweep, flush)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from .core.domain.data_point import TimeSeriesPoint
from .metrics import BUFFER_PENDING, FLUSH_FAILURES, POINTS_DROPPED, POINTS_FLUSHED
from .storage.timeseries import TimeSeriesStore

logger = logging.getLogger(__name__)


class WriteBuffer:
    """Buffer de puntos con flush periódico y reintento acotado."""

    DEFAULT_BUFFER_SIZE = 500
    DEFAULT_FLUSH_INTERVAL = 10.0  # segundos
    DEFAULT_MAX_BATCH_SIZE = 1000
    DEFAULT_MAX_PENDING = 10000
    DEFAULT_MAX_RETRY_AGE = 300.0  # segundos
    DEFAULT_ISOLATION_LIMIT = 3

    def __init__(
        self,
        store: TimeSeriesStore,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        max_pending: int = DEFAULT_MAX_PENDING,
        max_retry_age: float = DEFAULT_MAX_RETRY_AGE,
        clock: Callable[[], float] = time.monotonic,
        on_flush_callback: Optional[Callable[[int], None]] = None,
        isolation_limit: int = DEFAULT_ISOLATION_LIMIT,
    ):
        """Inicializa el buffer.

        Args:
            store: Store de series temporales destino
            buffer_size: Cantidad de puntos pendientes que dispara un flush anticipado
            flush_interval: Intervalo en segundos para flush periódico
            max_batch_size: Máximo de puntos por write_points
            max_pending: Tope duro de puntos retenidos
            max_retry_age: Edad máxima (s) de un punto retenido tras fallos
            clock: Reloj monotónico (inyectable en tests)
            on_flush_callback: Callback opcional llamado después de cada flush
            isolation_limit: Fallos seguidos, al reescribir un batch fallido,
                que indican store caído en lugar de un punto rechazado
        """
        self._store = store
        self._buffer_size = buffer_size
        self._flush_interval = flush_interval
        self._max_batch_size = max_batch_size
        self._max_pending = max(max_pending, buffer_size)
        self._max_retry_age = max_retry_age
        self._clock = clock
        self._on_flush_callback = on_flush_callback
        self._isolation_limit = max(isolation_limit, 1)

        self._buffer: List[TimeSeriesPoint] = []
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._flush_thread: Optional[threading.Thread] = None

        # Métricas
        self._total_buffered = 0
        self._total_flushed = 0
        self._total_dropped = 0
        self._failed_flushes = 0

    def start(self):
        """Inicia el thread de flush periódico."""
        if self._flush_thread is not None and self._flush_thread.is_alive():
            return

        self._stop_event.clear()
        self._flush_thread = threading.Thread(
            target=self._flush_loop, name="write-buffer-flush", daemon=True,
        )
        self._flush_thread.start()
        logger.info("[BUFFER] Started with buffer_size=%d, flush_interval=%.1fs",
                    self._buffer_size, self._flush_interval)

    def stop(self, flush_remaining: bool = True):
        """Detiene el buffer.

        Args:
            flush_remaining: Si True, hace flush de los puntos pendientes antes de parar
        """
        self._stop_event.set()
        self._wake_event.set()

        if self._flush_thread is not None:
            self._flush_thread.join(timeout=5.0)
            self._flush_thread = None

        if flush_remaining:
            self.flush()

        logger.info("[BUFFER] Stopped. Stats: buffered=%d, flushed=%d, dropped=%d",
                    self._total_buffered, self._total_flushed, self._total_dropped)

    def enqueue(self, point: TimeSeriesPoint) -> bool:
        """Agrega un punto al buffer.

        Returns:
            True si se agregó, False si se descartó por backpressure
        """
        point.enqueued_at = self._clock()

        with self._lock:
            if len(self._buffer) >= self._max_pending:
                self._total_dropped += 1
                POINTS_DROPPED.labels(reason="overflow").inc()
                logger.warning("[BUFFER] Buffer full (%d), dropping point for device=%s",
                               len(self._buffer), point.device)
                return False

            self._buffer.append(point)
            self._total_buffered += 1
            pending = len(self._buffer)

        BUFFER_PENDING.set(pending)
        if pending >= self._buffer_size:
            self._wake_event.set()
        return True

    def flush(self) -> int:
        """Envía todos los puntos pendientes al store.

        Un fallo de escritura NO se propaga. El batch fallido se reintenta
        punto por punto: los puntos que el store rechaza mientras sus vecinos
        se escriben se descartan; ante `isolation_limit` fallos seguidos el
        store se considera caído y el resto vuelve al frente del buffer
        hasta el siguiente intervalo.

        Returns:
            Cantidad de puntos escritos en este flush
        """
        flushed = 0
        with self._flush_lock:
            while True:
                with self._lock:
                    self._expire_locked()
                    if not self._buffer:
                        break
                    batch = self._buffer[:self._max_batch_size]
                    del self._buffer[:self._max_batch_size]

                try:
                    self._store.write_points(batch)
                    written, retained = len(batch), []
                except Exception as e:
                    self._failed_flushes += 1
                    FLUSH_FAILURES.inc()
                    logger.error("[BUFFER] Batch of %d points failed, writing one by one: %s",
                                 len(batch), e)
                    written, retained = self._write_isolated(batch)

                flushed += written
                self._total_flushed += written
                POINTS_FLUSHED.inc(written)

                if retained:
                    logger.error("[BUFFER] Store unavailable, retaining %d points", len(retained))
                    with self._lock:
                        self._buffer[:0] = retained
                        self._trim_locked()
                    break

        with self._lock:
            BUFFER_PENDING.set(len(self._buffer))

        if flushed:
            logger.debug("[BUFFER] Flushed %d points", flushed)
            if self._on_flush_callback:
                self._on_flush_callback(flushed)
        return flushed

    def _write_isolated(self, batch: List[TimeSeriesPoint]) -> Tuple[int, List[TimeSeriesPoint]]:
        """Escribe un batch fallido de a un punto.

        Returns:
            (puntos escritos, puntos a retener)
        """
        written = 0
        failing: List[TimeSeriesPoint] = []
        for index, point in enumerate(batch):
            try:
                self._store.write_points([point])
            except Exception as e:
                failing.append(point)
                if len(failing) >= self._isolation_limit:
                    return written, failing + batch[index + 1:]
                logger.debug("[BUFFER] Point rejected by store: %s (%s)", point, e)
                continue

            written += 1
            if failing:
                # El store acepta escrituras: lo que falló antes es un rechazo del punto
                self._drop_rejected(failing)
                failing = []

        return written, failing

    def _drop_rejected(self, points: List[TimeSeriesPoint]):
        self._total_dropped += len(points)
        POINTS_DROPPED.labels(reason="rejected").inc(len(points))
        for point in points:
            logger.warning("[BUFFER] Dropping point rejected by store: %s", point)

    def _flush_loop(self):
        """Loop principal del thread de flush."""
        while not self._stop_event.is_set():
            self._wake_event.wait(self._flush_interval)
            self._wake_event.clear()
            if self._stop_event.is_set():
                break
            try:
                self.flush()
            except Exception:
                logger.exception("[BUFFER] Unexpected error in flush loop")

    def _expire_locked(self):
        """Descarta puntos retenidos más allá de max_retry_age."""
        if not self._buffer:
            return
        cutoff = self._clock() - self._max_retry_age
        kept = [p for p in self._buffer if p.enqueued_at is None or p.enqueued_at >= cutoff]
        expired = len(self._buffer) - len(kept)
        if expired:
            self._buffer = kept
            self._total_dropped += expired
            POINTS_DROPPED.labels(reason="expired").inc(expired)
            logger.warning("[BUFFER] Dropped %d points older than %.0fs", expired, self._max_retry_age)

    def _trim_locked(self):
        """Aplica el tope max_pending descartando los puntos más viejos."""
        overflow = len(self._buffer) - self._max_pending
        if overflow > 0:
            del self._buffer[:overflow]
            self._total_dropped += overflow
            POINTS_DROPPED.labels(reason="overflow").inc(overflow)
            logger.warning("[BUFFER] Dropped %d oldest points over max_pending=%d",
                           overflow, self._max_pending)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    def get_stats(self) -> dict:
        """Retorna estadísticas del buffer."""
        with self._lock:
            pending = len(self._buffer)

        return {
            "pending": pending,
            "total_buffered": self._total_buffered,
            "total_flushed": self._total_flushed,
            "total_dropped": self._total_dropped,
            "failed_flushes": self._failed_flushes,
            "buffer_size": self._buffer_size,
            "flush_interval": self._flush_interval,
        }
