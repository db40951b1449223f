"""
Tests para el WriteBuffer.

Tests:
1. Flush explícito escribe y vacía el buffer
2. Un flush fallido retiene los puntos para el siguiente intento
3. Retención acotada: edad máxima y tope max_pending
4. stop() hace el flush final
"""

from unittest.mock import MagicMock

import pytest

from telemetry_api.core.domain.data_point import TimeSeriesPoint
from telemetry_api.core.transport import IngestionDispatcher
from telemetry_api.device_state import LivenessTracker
from telemetry_api.errors import StoreWriteError
from telemetry_api.write_buffer import WriteBuffer

from conftest import FakeClock


def _point(device="sensorA", value=1.0):
    return TimeSeriesPoint(measurement="telemetry", device=device, fields={"temperature": value})


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def mono():
    return FakeClock(1000.0)


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.write_points.side_effect = lambda points: len(points)
    return store


@pytest.fixture
def wbuffer(mock_store, mono):
    return WriteBuffer(
        mock_store, buffer_size=10, flush_interval=3600.0, max_batch_size=5,
        max_pending=20, max_retry_age=300.0, clock=mono,
    )


# =============================================================================
# TESTS: FLUSH
# =============================================================================

class TestFlush:
    """Tests de flush explícito."""

    def test_enqueue_and_flush(self, wbuffer, mock_store):
        """Los puntos encolados se escriben en el flush."""
        assert wbuffer.enqueue(_point()) is True
        assert wbuffer.pending == 1

        assert wbuffer.flush() == 1
        assert wbuffer.pending == 0
        mock_store.write_points.assert_called_once()

    def test_flush_in_batches(self, wbuffer, mock_store):
        """Se respeta max_batch_size y el orden de llegada."""
        for i in range(12):
            wbuffer.enqueue(_point(value=float(i)))

        assert wbuffer.flush() == 12
        batches = [call.args[0] for call in mock_store.write_points.call_args_list]
        assert [len(b) for b in batches] == [5, 5, 2]
        assert [p.fields["temperature"] for b in batches for p in b] == [float(i) for i in range(12)]

    def test_empty_flush_does_not_touch_store(self, wbuffer, mock_store):
        assert wbuffer.flush() == 0
        mock_store.write_points.assert_not_called()

    def test_flush_callback(self, mock_store, mono):
        callback = MagicMock()
        buf = WriteBuffer(mock_store, clock=mono, on_flush_callback=callback)
        buf.enqueue(_point())
        buf.flush()
        callback.assert_called_once_with(1)

    def test_enqueue_sets_enqueued_at(self, wbuffer, mono):
        point = _point()
        wbuffer.enqueue(point)
        assert point.enqueued_at == mono.now


# =============================================================================
# TESTS: FALLOS Y RETENCIÓN
# =============================================================================

class TestFailureRetention:
    """Tests de reintento tras fallos del store."""

    def test_failed_flush_retains_points(self, wbuffer, mock_store):
        """Un fallo no pierde puntos ni propaga la excepción."""
        mock_store.write_points.side_effect = StoreWriteError("store down", point_count=3)
        for i in range(3):
            wbuffer.enqueue(_point(value=float(i)))

        assert wbuffer.flush() == 0
        assert wbuffer.pending == 3
        assert wbuffer.get_stats()["failed_flushes"] == 1

    def test_retained_points_written_next_interval(self, wbuffer, mock_store):
        """Cuando el store vuelve, los puntos retenidos se escriben en orden."""
        mock_store.write_points.side_effect = StoreWriteError("store down")
        wbuffer.enqueue(_point(value=1.0))
        wbuffer.flush()

        mock_store.write_points.side_effect = lambda points: len(points)
        wbuffer.enqueue(_point(value=2.0))
        assert wbuffer.flush() == 2

        written = mock_store.write_points.call_args_list[-1].args[0]
        assert [p.fields["temperature"] for p in written] == [1.0, 2.0]
        assert wbuffer.pending == 0

    def test_transient_batch_failure_is_rewritten(self, wbuffer, mock_store):
        """Si el segundo batch falla una vez, sus puntos se escriben de a uno."""
        calls = {"n": 0}

        def flaky(points):
            calls["n"] += 1
            if calls["n"] == 2:
                raise StoreWriteError("timeout")
            return len(points)

        mock_store.write_points.side_effect = flaky
        for i in range(8):
            wbuffer.enqueue(_point(value=float(i)))

        assert wbuffer.flush() == 8
        assert wbuffer.pending == 0
        assert wbuffer.get_stats()["failed_flushes"] == 1

    def test_expired_points_dropped(self, wbuffer, mock_store, mono):
        """Puntos retenidos más allá de max_retry_age se descartan."""
        mock_store.write_points.side_effect = StoreWriteError("store down")
        wbuffer.enqueue(_point(value=1.0))
        wbuffer.flush()

        mono.advance(301.0)
        mock_store.write_points.side_effect = lambda points: len(points)
        wbuffer.enqueue(_point(value=2.0))

        assert wbuffer.flush() == 1
        written = mock_store.write_points.call_args_list[-1].args[0]
        assert [p.fields["temperature"] for p in written] == [2.0]
        assert wbuffer.get_stats()["total_dropped"] == 1

    def test_max_pending_rejects_new_points(self, wbuffer):
        """Con el buffer lleno, enqueue rechaza el punto nuevo."""
        for _ in range(20):
            assert wbuffer.enqueue(_point()) is True

        assert wbuffer.enqueue(_point()) is False
        assert wbuffer.pending == 20
        assert wbuffer.get_stats()["total_dropped"] == 1

    def test_max_pending_never_below_buffer_size(self, mock_store, mono):
        buf = WriteBuffer(mock_store, buffer_size=50, max_pending=10, clock=mono)
        for _ in range(50):
            assert buf.enqueue(_point()) is True
        assert buf.enqueue(_point()) is False


# =============================================================================
# TESTS: PUNTOS RECHAZADOS POR EL STORE
# =============================================================================

def _rejecting_store(bad_device):
    """Store que rechaza todo batch que contenga `bad_device` (como un VARCHAR corto)."""
    store = MagicMock()
    written = []

    def write(points):
        if any(p.device == bad_device for p in points):
            raise StoreWriteError("value too long for column device")
        written.extend(points)
        return len(points)

    store.write_points.side_effect = write
    return store, written


class TestRejectedPoints:
    """Un punto que el store rechaza no retiene al resto del batch."""

    def test_rejected_point_does_not_block_batch(self, mono):
        store, written = _rejecting_store("bad")
        buf = WriteBuffer(store, buffer_size=10, max_batch_size=100, clock=mono)
        buf.enqueue(_point(device="good0"))
        buf.enqueue(_point(device="bad"))
        for i in range(1, 5):
            buf.enqueue(_point(device=f"good{i}"))

        assert buf.flush() == 5
        assert buf.pending == 0
        assert sorted(p.device for p in written) == [f"good{i}" for i in range(5)]
        assert buf.get_stats()["total_dropped"] == 1

    def test_rejected_point_first_in_batch(self, mono):
        store, written = _rejecting_store("bad")
        buf = WriteBuffer(store, clock=mono)
        buf.enqueue(_point(device="bad"))
        buf.enqueue(_point(device="good"))

        assert buf.flush() == 1
        assert [p.device for p in written] == ["good"]
        assert buf.pending == 0

    def test_trailing_rejection_retried_with_next_points(self, mono):
        """Sin un éxito posterior el punto se retiene; el siguiente flush lo descarta."""
        store, written = _rejecting_store("bad")
        buf = WriteBuffer(store, clock=mono)
        buf.enqueue(_point(device="good0"))
        buf.enqueue(_point(device="bad"))

        assert buf.flush() == 1
        assert buf.pending == 1

        buf.enqueue(_point(device="good1"))
        assert buf.flush() == 1
        assert buf.pending == 0
        assert [p.device for p in written] == ["good0", "good1"]

    def test_store_down_stops_after_isolation_limit(self, mock_store, mono):
        """Con el store caído no se reintenta punto por punto todo el batch."""
        mock_store.write_points.side_effect = StoreWriteError("connection refused")
        buf = WriteBuffer(mock_store, max_batch_size=100, clock=mono, isolation_limit=3)
        for _ in range(50):
            buf.enqueue(_point())

        assert buf.flush() == 0
        assert buf.pending == 50
        assert mock_store.write_points.call_count == 1 + 3
        assert buf.get_stats()["total_dropped"] == 0

    def test_long_device_never_reaches_store(self, encoder, store, clock):
        """Un id más largo que la columna se descarta en el dispatcher; el resto se escribe."""
        buf = WriteBuffer(store, clock=clock)
        tracker = LivenessTracker(encoder, buf, clock=clock)
        dispatcher = IngestionDispatcher(encoder, tracker, buf, clock=clock)

        dispatcher.handle(f"tarla/{'x' * 200}/data", b'{"temperature": 1}')
        for i in range(5):
            dispatcher.handle(f"tarla/good{i}/data", b'{"temperature": 2}')

        assert buf.flush() == 10  # 5 telemetry + 5 status
        assert dispatcher.stats.failed == 1
        assert tracker.current_state("x" * 200) is None


# =============================================================================
# TESTS: CICLO DE VIDA
# =============================================================================

class TestLifecycle:
    """Tests de start/stop."""

    def test_stop_flushes_remaining(self, wbuffer, mock_store):
        wbuffer.start()
        wbuffer.enqueue(_point())
        wbuffer.stop(flush_remaining=True)

        assert wbuffer.pending == 0
        assert wbuffer.get_stats()["total_flushed"] == 1

    def test_stop_without_flush(self, wbuffer, mock_store):
        wbuffer.enqueue(_point())
        wbuffer.stop(flush_remaining=False)

        assert wbuffer.pending == 1
        mock_store.write_points.assert_not_called()

    def test_stats(self, wbuffer):
        wbuffer.enqueue(_point())
        stats = wbuffer.get_stats()
        assert stats["pending"] == 1
        assert stats["total_buffered"] == 1
        assert stats["buffer_size"] == 10


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
