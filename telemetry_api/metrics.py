"""Métricas Prometheus del pipeline de ingesta."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

MESSAGES_RECEIVED = Counter(
    "telemetry_messages_received_total",
    "Total MQTT messages received",
    ["kind", "status"],  # kind: data|status|unknown; status: success|parse_error|processing_error
)

POINTS_FLUSHED = Counter(
    "telemetry_points_flushed_total",
    "Points written to the time-series store",
)

POINTS_DROPPED = Counter(
    "telemetry_points_dropped_total",
    "Points dropped by the write buffer",
    ["reason"],  # overflow|expired|rejected
)

FLUSH_FAILURES = Counter(
    "telemetry_flush_failures_total",
    "Failed flush attempts against the time-series store",
)

STATUS_TRANSITIONS = Counter(
    "telemetry_status_transitions_total",
    "Liveness state transitions",
    ["state"],  # online|offline
)

TRACKED_DEVICES = Gauge(
    "telemetry_tracked_devices",
    "Devices currently tracked by the liveness tracker",
)

BUFFER_PENDING = Gauge(
    "telemetry_buffer_pending_points",
    "Points waiting in the write buffer",
)
