from __future__ import annotations

from typing import Optional
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from .config import Settings, get_settings


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def build_engine(url: str) -> Engine:
    """Crea un engine para el store de series temporales.

    SQLite en memoria necesita una única conexión compartida entre hilos
    (thread de flush, thread de MQTT y threadpool de FastAPI).
    """
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, future=True, **kwargs)

    return create_engine(url, pool_pre_ping=True, pool_recycle=300, future=True)


def get_engine(settings: Optional[Settings] = None) -> Engine:
    """Engine singleton del proceso."""
    global _engine

    if _engine is not None:
        return _engine

    settings = settings or get_settings()
    url = make_url(settings.store_url)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Crear engine backend=%s host=%s db=%s",
        url.get_backend_name(),
        url.host,
        url.database,
    )

    _engine = build_engine(settings.store_url)

    # Test de conexión: ayuda a ver en logs si el servicio realmente llega al store
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return _engine


def dispose_engine() -> None:
    global _engine

    if _engine is not None:
        _engine.dispose()
        _engine = None
