"""Domain layer - Modelos de lectura y punto de serie temporal."""

from .reading import DeviceStatusReport, TelemetryReading
from .data_point import (
    DEVICE_STATUS_MEASUREMENT,
    MAX_DEVICE_ID_LENGTH,
    STATUS_FIELD,
    STATUS_MEASUREMENT,
    TELEMETRY_MEASUREMENT,
    TimeSeriesPoint,
)

__all__ = [
    "TelemetryReading",
    "DeviceStatusReport",
    "TimeSeriesPoint",
    "TELEMETRY_MEASUREMENT",
    "STATUS_MEASUREMENT",
    "DEVICE_STATUS_MEASUREMENT",
    "STATUS_FIELD",
    "MAX_DEVICE_ID_LENGTH",
]
