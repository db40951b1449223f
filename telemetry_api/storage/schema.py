"""Esquema del store de series temporales.

Formato largo (una fila por campo), igual que el modelo de Influx:
bucket + measurement + tag device + field + value + timestamp.
`value_type` conserva el tipo del campo para que un entero vuelva como
entero y un float no se trunque.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, Float, Index, Integer, MetaData, String, Table
from sqlalchemy.engine import Engine

from ..core.domain.data_point import MAX_DEVICE_ID_LENGTH

logger = logging.getLogger(__name__)

metadata = MetaData()

ts_points = Table(
    "ts_points",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("bucket", String(64), nullable=False),
    Column("measurement", String(64), nullable=False),
    Column("device", String(MAX_DEVICE_ID_LENGTH), nullable=False),
    Column("field", String(64), nullable=False),
    Column("value", Float(precision=53), nullable=False),
    Column("value_type", String(8), nullable=False, default="float"),
    # Epoch en segundos (UTC)
    Column("ts", Float(precision=53), nullable=False),
)

Index(
    "ix_ts_points_series_ts",
    ts_points.c.bucket,
    ts_points.c.measurement,
    ts_points.c.device,
    ts_points.c.field,
    ts_points.c.ts,
)


def ensure_schema(engine: Engine) -> None:
    """Crea tabla e índice si no existen. Idempotente."""
    logger.info("[STORE] Ensuring schema exists")
    metadata.create_all(engine, checkfirst=True)
