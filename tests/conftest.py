"""Fixtures compartidas para los tests del servicio de telemetría."""

import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import List

import pytest

from common.config import get_settings
from common.db import build_engine
from telemetry_api.core.domain.data_point import TimeSeriesPoint
from telemetry_api.core.pipeline.encoder import PointEncoder
from telemetry_api.core.transport.message_handler import IngestionDispatcher
from telemetry_api.core.transport.topics import TopicRouter
from telemetry_api.device_state import LivenessTracker
from telemetry_api.queries.device_telemetry import TelemetryQueryService
from telemetry_api.storage.schema import ensure_schema
from telemetry_api.storage.timeseries import TimeSeriesStore
from telemetry_api.write_buffer import WriteBuffer


class FakeClock:
    """Reloj controlable para tests de timing."""

    def __init__(self, start: float):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingBuffer:
    """Sustituto del WriteBuffer que solo registra los puntos encolados."""

    def __init__(self):
        self.points: List[TimeSeriesPoint] = []

    def enqueue(self, point: TimeSeriesPoint) -> bool:
        self.points.append(point)
        return True

    def status_points(self, device: str = None) -> List[TimeSeriesPoint]:
        return [
            p for p in self.points
            if p.measurement == "status" and (device is None or p.device == device)
        ]


def at(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Evita que un .env local altere la configuración de los tests."""
    monkeypatch.setenv("TELEMETRY_ENV_FILE", str(tmp_path / "missing.env"))


@pytest.fixture
def clock() -> FakeClock:
    # Alineado al minuto para que las ventanas de los tests sean predecibles
    return FakeClock(float(int(time.time()) // 60 * 60))


@pytest.fixture
def engine():
    """SQLite en memoria compartido entre hilos."""
    eng = build_engine("sqlite://")
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine) -> TimeSeriesStore:
    return TimeSeriesStore(engine, bucket="test")


@pytest.fixture
def encoder() -> PointEncoder:
    return PointEncoder()


@pytest.fixture
def recording_buffer() -> RecordingBuffer:
    return RecordingBuffer()


@pytest.fixture
def buffer(store) -> WriteBuffer:
    return WriteBuffer(store, buffer_size=100, flush_interval=3600.0)


@pytest.fixture
def tracker(encoder, buffer, clock) -> LivenessTracker:
    return LivenessTracker(encoder, buffer, offline_threshold=300.0, sweep_interval=60.0, clock=clock)


@pytest.fixture
def dispatcher(encoder, tracker, buffer, clock) -> IngestionDispatcher:
    return IngestionDispatcher(encoder, tracker, buffer, topics=TopicRouter("tarla"), clock=clock)


@pytest.fixture
def queries(store, tracker, clock) -> TelemetryQueryService:
    return TelemetryQueryService(store, tracker, clock=clock)


@pytest.fixture
def settings():
    return replace(
        get_settings(),
        store_url="sqlite://",
        store_bucket="test",
        mqtt_enabled=False,
    )
