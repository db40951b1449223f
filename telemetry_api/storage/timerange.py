"""Resolución de inicios de rango estilo Flux.

Formatos aceptados para `start`:
- offset relativo negativo: "-15m", "-24h", "-7d", "-2w", "-1mo", "-1y", "-1h30m"
- timestamp absoluto ISO-8601: "2026-10-01T00:00:00Z"
- datetime, timedelta (se resta de now) o epoch en segundos
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

StartSpec = Union[str, datetime, timedelta, float, int]

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 7 * 86400,
    "mo": 30 * 86400,
    "y": 365 * 86400,
}

_DURATION_PART_RE = re.compile(r"(\d+)(mo|[smhdwy])")
_DURATION_RE = re.compile(r"^(?:\d+(?:mo|[smhdwy]))+$")


def parse_duration(text: str) -> float:
    """Convierte "1h30m" a segundos.

    Raises:
        ValueError: formato inválido o duración cero
    """
    body = text.strip()
    if not _DURATION_RE.match(body):
        raise ValueError(f"invalid duration: {text!r}")
    total = sum(int(n) * _UNIT_SECONDS[unit] for n, unit in _DURATION_PART_RE.findall(body))
    if total <= 0:
        raise ValueError(f"duration must be positive: {text!r}")
    try:
        return float(total)
    except OverflowError as e:
        raise ValueError(f"duration too large: {text!r}") from e


def resolve_start(start: StartSpec, now: Optional[float] = None) -> float:
    """Resuelve `start` a epoch en segundos.

    Raises:
        ValueError: si `start` no es un formato reconocido
    """
    now = time.time() if now is None else now
    return _representable(_resolve(start, now), start)


def _resolve(start: StartSpec, now: float) -> float:
    if isinstance(start, bool):
        raise ValueError("start must not be a boolean")
    if isinstance(start, (int, float)):
        return float(start)
    if isinstance(start, timedelta):
        return now - start.total_seconds()
    if isinstance(start, datetime):
        return _as_utc(start).timestamp()
    if not isinstance(start, str):
        raise ValueError(f"unsupported start type: {type(start).__name__}")

    text = start.strip()
    if not text:
        raise ValueError("start is empty")
    if text.startswith("-"):
        return now - parse_duration(text[1:])

    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00"))).timestamp()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"invalid start: {start!r}") from e


def _representable(epoch: float, start: StartSpec) -> float:
    """Rechaza epochs que no caben en un datetime (p.ej. "-3000y")."""
    try:
        to_datetime(epoch)
    except (ValueError, OverflowError, OSError) as e:
        raise ValueError(f"start out of range: {start!r}") from e
    return epoch


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_datetime(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)
