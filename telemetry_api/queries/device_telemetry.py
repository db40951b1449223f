"""Consultas de estado, última lectura e historial por dispositivo.

Se componen con las primitivas de rango del TimeSeriesStore. Los errores
del store se propagan como StoreQueryError; "sin datos" nunca es error.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..core.domain.data_point import STATUS_FIELD, STATUS_MEASUREMENT, TELEMETRY_MEASUREMENT
from ..device_state import LivenessTracker
from ..errors import ClientRequestError
from ..storage.timerange import resolve_start, to_datetime
from ..storage.timeseries import TimeSeriesStore
from .windows import select_window

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_START = "-24h"


@dataclass(frozen=True)
class HistorySample:
    time: datetime
    value: float


@dataclass(frozen=True)
class HistoryStats:
    """Resumen sobre las muestras CRUDAS del rango (no sobre la serie downsampleada)."""
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    last: Optional[float] = None
    count: int = 0


@dataclass(frozen=True)
class HistoryResult:
    device: str
    field: str
    start: datetime
    window: str
    series: List[HistorySample] = field(default_factory=list)
    stats: HistoryStats = field(default_factory=HistoryStats)


class TelemetryQueryService:
    """Capa de consulta/agregación.

    - get_status: snapshot en memoria → último punto de status → 0
    - get_last_reading: último valor de cada campo de telemetría
    - get_history: serie downsampleada + resumen min/max/mean/last
    """

    def __init__(
        self,
        store: TimeSeriesStore,
        tracker: Optional[LivenessTracker] = None,
        status_lookback: str = "-24h",
        last_data_lookback: str = "-1h",
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._tracker = tracker
        self._status_lookback = status_lookback
        self._last_data_lookback = last_data_lookback
        self._clock = clock

    def get_status(self, device: str) -> int:
        """1 si el dispositivo está online, 0 si no (o si no hay registro)."""
        if self._tracker is not None:
            record = self._tracker.current_state(device)
            if record is not None:
                return record.status

        latest = self._store.last_values(
            self._status_lookback,
            measurement=STATUS_MEASUREMENT,
            device=device,
            fields=[STATUS_FIELD],
            now=self._clock(),
        )
        row = latest.get(STATUS_FIELD)
        if row is None:
            return 0
        return 1 if row.value else 0

    def get_last_reading(self, device: str) -> Dict[str, float]:
        """Mapa plano campo → último valor (vacío si no hay datos)."""
        latest = self._store.last_values(
            self._last_data_lookback,
            measurement=TELEMETRY_MEASUREMENT,
            device=device,
            now=self._clock(),
        )
        return {name: row.value for name, row in sorted(latest.items())}

    def get_history(
        self,
        device: str,
        field: Optional[str],
        start: Optional[str] = DEFAULT_HISTORY_START,
    ) -> HistoryResult:
        """Serie downsampleada de un campo más su resumen sobre datos crudos.

        Raises:
            ClientRequestError: `field` vacío o `start` inválido (sin consultar el store)
            StoreQueryError: fallo del store
        """
        if field is None or not field.strip():
            raise ClientRequestError("field param required", param="field")
        field = field.strip()

        now = self._clock()
        try:
            start_ts = resolve_start(start or DEFAULT_HISTORY_START, now)
        except ValueError as e:
            raise ClientRequestError(f"invalid start: {e}", param="start") from e
        if start_ts >= now:
            raise ClientRequestError("start must be in the past", param="start")

        window_seconds, window_label = select_window(now - start_ts)

        series_rows, summary = self._store.query_series(
            start_ts,
            measurement=TELEMETRY_MEASUREMENT,
            device=device,
            field=field,
            window=window_seconds,
            aggregate="mean",
            now=now,
        )

        stats = HistoryStats()
        if summary.count:
            stats = HistoryStats(
                min=summary.minimum,
                max=summary.maximum,
                mean=summary.total / summary.count,
                last=summary.last,
                count=summary.count,
            )

        logger.debug(
            "[QUERY] history device=%s field=%s window=%s samples=%d raw=%d",
            device, field, window_label, len(series_rows), summary.count,
        )

        return HistoryResult(
            device=device,
            field=field,
            start=to_datetime(start_ts),
            window=window_label,
            series=[HistorySample(time=r.time, value=float(r.value)) for r in series_rows],
            stats=stats,
        )
