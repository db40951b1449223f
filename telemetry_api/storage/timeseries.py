"""Store de series temporales.

Primitivas que consume el resto del servicio:
- write_points: escritura append-only de un batch de puntos
- query_range: consulta por rango con filtros, downsampling opcional
  (ventana + función de agregación) y orden
- last_values: último valor de cada campo (equivalente a `last()` de Flux)
- query_series: serie downsampleada de un campo más su resumen crudo
  (count/sum/min/max/last), ambos de una misma lectura

Los resultados se drenan completos a listas; nunca se devuelven cursores.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, insert, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..core.domain.data_point import FieldValue, TimeSeriesPoint
from ..errors import StoreQueryError, StoreWriteError
from .schema import ts_points
from .timerange import StartSpec, resolve_start, to_datetime

logger = logging.getLogger(__name__)

AGGREGATES = ("mean", "min", "max", "sum", "count", "first", "last")


@dataclass(frozen=True)
class TimeSeriesRow:
    """Fila decodificada de una consulta."""
    time: datetime
    measurement: str
    device: str
    field: str
    value: FieldValue


@dataclass(frozen=True)
class RangeSummary:
    """Agregados sobre el rango crudo (sin ventanas)."""
    count: int
    total: Optional[float]
    minimum: Optional[float]
    maximum: Optional[float]
    last: Optional[float] = None


def _decode_value(value: float, value_type: str) -> FieldValue:
    if value_type == "int":
        return int(round(value))
    return float(value)


def _aggregate(fn: str, values: List[FieldValue]) -> FieldValue:
    if fn == "mean":
        return sum(values) / len(values)
    if fn == "min":
        return min(values)
    if fn == "max":
        return max(values)
    if fn == "sum":
        return sum(values)
    if fn == "count":
        return len(values)
    if fn == "first":
        return values[0]
    if fn == "last":
        return values[-1]
    raise ValueError(f"unsupported aggregate: {fn}")


def _check_window(window: float, aggregate: Optional[str]):
    if window <= 0:
        raise ValueError("window must be positive")
    if aggregate not in AGGREGATES:
        raise ValueError(f"unsupported aggregate: {aggregate}")


def _summarize(raw) -> RangeSummary:
    """Resumen de filas crudas ya ordenadas por tiempo ascendente."""
    if not raw:
        return RangeSummary(count=0, total=None, minimum=None, maximum=None)
    values = [float(r.value) for r in raw]
    return RangeSummary(
        count=len(values),
        total=sum(values),
        minimum=min(values),
        maximum=max(values),
        last=values[-1],
    )


class TimeSeriesStore:
    """Store de series temporales sobre un engine SQLAlchemy.

    `bucket` actúa como namespace: todas las escrituras y consultas quedan
    confinadas a él.
    """

    def __init__(self, engine: Engine, bucket: str = "telemetry"):
        self._engine = engine
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    # ------------------------------------------------------------------
    # Escritura
    # ------------------------------------------------------------------

    def write_points(self, points: Sequence[TimeSeriesPoint]) -> int:
        """Escribe un batch de puntos en una sola transacción.

        Returns:
            Cantidad de filas (campos) escritas

        Raises:
            StoreWriteError: si la transacción falla
        """
        rows = []
        for point in points:
            if not point.fields:
                logger.debug("[STORE] Skipping point without fields: %s", point)
                continue
            ts = point.resolved_timestamp().timestamp()
            for name, value in point.fields.items():
                is_int = isinstance(value, int) and not isinstance(value, bool)
                rows.append({
                    "bucket": self._bucket,
                    "measurement": point.measurement,
                    "device": point.device,
                    "field": name,
                    "value": float(value),
                    "value_type": "int" if is_int else "float",
                    "ts": ts,
                })

        if not rows:
            return 0

        try:
            with self._engine.begin() as conn:
                conn.execute(insert(ts_points), rows)
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"write of {len(points)} points failed: {type(e).__name__}",
                point_count=len(points),
            ) from e

        return len(rows)

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------

    def _filters(
        self,
        start_ts: float,
        stop_ts: Optional[float],
        measurement: Optional[str],
        device: Optional[str],
        fields: Optional[Iterable[str]],
    ) -> list:
        t = ts_points.c
        clauses = [t.bucket == self._bucket, t.ts >= start_ts]
        if stop_ts is not None:
            clauses.append(t.ts < stop_ts)
        if measurement is not None:
            clauses.append(t.measurement == measurement)
        if device is not None:
            clauses.append(t.device == device)
        if fields is not None:
            clauses.append(t.field.in_(list(fields)))
        return clauses

    def _select_raw(
        self,
        start: StartSpec,
        stop: Optional[StartSpec],
        now: Optional[float],
        measurement: Optional[str],
        device: Optional[str],
        fields: Optional[Iterable[str]],
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list:
        """Una sola lectura de filas crudas, drenada a lista."""
        now = time.time() if now is None else now
        start_ts = resolve_start(start, now)
        stop_ts = resolve_start(stop, now) if stop is not None else None

        t = ts_points.c
        stmt = select(
            t.measurement, t.device, t.field, t.value, t.value_type, t.ts,
        ).where(and_(*self._filters(start_ts, stop_ts, measurement, device, fields)))
        if descending:
            stmt = stmt.order_by(t.ts.desc(), t.id.desc())
        else:
            stmt = stmt.order_by(t.ts.asc(), t.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self._engine.connect() as conn:
                return conn.execute(stmt).fetchall()
        except SQLAlchemyError as e:
            raise StoreQueryError(f"range query failed: {type(e).__name__}") from e

    def query_range(
        self,
        start: StartSpec,
        *,
        measurement: Optional[str] = None,
        device: Optional[str] = None,
        fields: Optional[Iterable[str]] = None,
        stop: Optional[StartSpec] = None,
        window: Optional[float] = None,
        aggregate: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        now: Optional[float] = None,
    ) -> List[TimeSeriesRow]:
        """Consulta filas en [start, stop).

        Con `window` (segundos) y `aggregate` las filas se agrupan en ventanas
        alineadas a epoch, por campo; las ventanas vacías se omiten y el
        tiempo de cada muestra es el inicio de su ventana.

        Raises:
            StoreQueryError: si la consulta falla
        """
        if window is not None:
            _check_window(window, aggregate)
            raw = self._select_raw(start, stop, now, measurement, device, fields)
            rows = self._downsample(raw, window, aggregate)
            if descending:
                rows.reverse()
            return rows[:limit] if limit is not None else rows

        raw = self._select_raw(
            start, stop, now, measurement, device, fields, descending=descending, limit=limit,
        )
        return [
            TimeSeriesRow(
                time=to_datetime(r.ts),
                measurement=r.measurement,
                device=r.device,
                field=r.field,
                value=_decode_value(r.value, r.value_type),
            )
            for r in raw
        ]

    def query_series(
        self,
        start: StartSpec,
        *,
        measurement: str,
        device: str,
        field: str,
        window: float,
        aggregate: str = "mean",
        stop: Optional[StartSpec] = None,
        now: Optional[float] = None,
    ) -> Tuple[List[TimeSeriesRow], RangeSummary]:
        """Serie downsampleada de un campo y su resumen sobre las muestras crudas.

        Ambos salen de la misma lectura, así que el resumen (count, min, max,
        last) siempre es coherente con la serie aunque haya escrituras
        concurrentes.

        Raises:
            StoreQueryError: si la consulta falla
        """
        _check_window(window, aggregate)
        raw = self._select_raw(start, stop, now, measurement, device, [field])
        return self._downsample(raw, window, aggregate), _summarize(raw)

    @staticmethod
    def _downsample(raw, window: float, aggregate: str) -> List[TimeSeriesRow]:
        groups: "OrderedDict[tuple, List[FieldValue]]" = OrderedDict()
        for r in raw:
            window_start = (r.ts // window) * window
            key = (window_start, r.measurement, r.device, r.field)
            groups.setdefault(key, []).append(_decode_value(r.value, r.value_type))

        rows = [
            TimeSeriesRow(
                time=to_datetime(window_start),
                measurement=measurement,
                device=device,
                field=field,
                value=_aggregate(aggregate, values),
            )
            for (window_start, measurement, device, field), values in groups.items()
        ]
        rows.sort(key=lambda row: (row.time, row.measurement, row.device, row.field))
        return rows

    def last_values(
        self,
        start: StartSpec,
        *,
        measurement: str,
        device: str,
        fields: Optional[Iterable[str]] = None,
        now: Optional[float] = None,
    ) -> Dict[str, TimeSeriesRow]:
        """Última fila de cada campo dentro del rango.

        Raises:
            StoreQueryError: si la consulta falla
        """
        now = time.time() if now is None else now
        start_ts = resolve_start(start, now)
        t = ts_points.c
        clauses = self._filters(start_ts, None, measurement, device, fields)

        latest = (
            select(t.field.label("field"), func.max(t.ts).label("max_ts"))
            .where(and_(*clauses))
            .group_by(t.field)
            .subquery()
        )
        stmt = (
            select(t.measurement, t.device, t.field, t.value, t.value_type, t.ts)
            .join(latest, and_(t.field == latest.c.field, t.ts == latest.c.max_ts))
            .where(and_(*clauses))
            .order_by(t.id.asc())
        )

        try:
            with self._engine.connect() as conn:
                raw = conn.execute(stmt).fetchall()
        except SQLAlchemyError as e:
            raise StoreQueryError(f"last-value query failed: {type(e).__name__}") from e

        # Empates en timestamp: gana la última escritura
        result: Dict[str, TimeSeriesRow] = {}
        for r in raw:
            result[r.field] = TimeSeriesRow(
                time=to_datetime(r.ts),
                measurement=r.measurement,
                device=r.device,
                field=r.field,
                value=_decode_value(r.value, r.value_type),
            )
        return result

    def ping(self) -> bool:
        """Verifica conectividad con el store."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("[STORE] Ping failed")
            return False
