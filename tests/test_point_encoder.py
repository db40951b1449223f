"""
Tests para el encoder de lecturas a puntos de series temporales.

Tests:
1. Esquema de campos: float por defecto, wind_direction entero
2. Campos ausentes o no numéricos se omiten
3. Política opt-in de cero por defecto
4. Identidad de dispositivo obligatoria
5. Puntos de estado
"""

import math
from datetime import datetime, timezone

import pytest

from telemetry_api.core.domain.data_point import (
    DEVICE_STATUS_MEASUREMENT,
    MAX_DEVICE_ID_LENGTH,
    STATUS_MEASUREMENT,
    TELEMETRY_MEASUREMENT,
)
from telemetry_api.core.domain.reading import TelemetryReading
from telemetry_api.core.pipeline.encoder import PointEncoder
from telemetry_api.errors import EncodingError


def _reading(device="sensorA", **fields):
    return TelemetryReading(device_id=device, fields=fields, topic=f"tarla/{device}/data")


# =============================================================================
# TESTS: ESQUEMA DE CAMPOS
# =============================================================================

class TestFieldSchema:
    """Tests de conversión de tipos por campo."""

    def test_full_reading(self, encoder):
        """Una lectura completa produce un punto telemetry con todos los campos."""
        point = encoder.encode(_reading(
            temperature=22.5, humidity=60, soil_moisture=30,
            battery=3.7, wind_speed=4, wind_direction=270,
        ))

        assert point.measurement == TELEMETRY_MEASUREMENT
        assert point.device == "sensorA"
        assert point.fields == {
            "temperature": 22.5,
            "humidity": 60.0,
            "soil_moisture": 30.0,
            "battery": 3.7,
            "wind_speed": 4.0,
            "wind_direction": 270,
        }

    def test_float_fields_are_floats(self, encoder):
        """Enteros en campos float se guardan como float."""
        point = encoder.encode(_reading(humidity=60, battery=90))
        assert isinstance(point.fields["humidity"], float)
        assert isinstance(point.fields["battery"], float)

    def test_battery_fraction_is_preserved(self, encoder):
        """battery=3.7 no se trunca a 3."""
        point = encoder.encode(_reading(battery=3.7))
        assert point.fields["battery"] == pytest.approx(3.7)

    def test_wind_direction_is_integer(self, encoder):
        """wind_direction se redondea a entero."""
        point = encoder.encode(_reading(wind_direction=269.6))
        assert point.fields["wind_direction"] == 270
        assert isinstance(point.fields["wind_direction"], int)

    def test_numeric_strings_are_coerced(self, encoder):
        """Strings numéricos se convierten."""
        point = encoder.encode(_reading(temperature=" 21.5 ", wind_direction="90"))
        assert point.fields == {"temperature": 21.5, "wind_direction": 90}

    def test_extension_field_accepted(self, encoder):
        """Campos numéricos adicionales con nombre válido se aceptan como float."""
        point = encoder.encode(_reading(temperature=20, rain_mm=1.2))
        assert point.fields["rain_mm"] == pytest.approx(1.2)

    def test_extension_fields_can_be_disabled(self):
        """Con accept_extension_fields=False solo pasa el esquema fijo."""
        enc = PointEncoder(accept_extension_fields=False)
        point = enc.encode(_reading(temperature=20, rain_mm=1.2))
        assert point.fields == {"temperature": 20.0}

    def test_invalid_extension_name_ignored(self, encoder):
        """Nombres que no parecen identificadores se ignoran."""
        point = encoder.encode(_reading(**{"temperature": 20, "Bad-Name": 3}))
        assert "Bad-Name" not in point.fields

    def test_reserved_keys_ignored(self, encoder):
        """Claves del envelope no son mediciones."""
        point = encoder.encode(_reading(temperature=20, id=5, device_id=7))
        assert point.fields == {"temperature": 20.0}


# =============================================================================
# TESTS: CAMPOS AUSENTES
# =============================================================================

class TestMissingFields:
    """Tests de omisión de campos ausentes o inválidos."""

    def test_missing_fields_are_omitted(self, encoder):
        """Un campo ausente no se rellena con cero."""
        point = encoder.encode(_reading(temperature=22.0))
        assert point.fields == {"temperature": 22.0}
        assert "battery" not in point.fields

    @pytest.mark.parametrize("value", [None, "abc", True, float("nan"), float("inf"), [1], {"v": 1}])
    def test_non_numeric_values_omitted(self, encoder, value):
        """Valores no numéricos se omiten."""
        point = encoder.encode(_reading(temperature=20.0, humidity=value))
        assert "humidity" not in point.fields

    def test_no_fields_gives_empty_point(self, encoder):
        """Una lectura vacía produce un punto sin campos (el dispatcher la descarta)."""
        point = encoder.encode(_reading())
        assert point.fields == {}

    def test_zero_default_is_opt_in(self):
        """Solo los campos configurados se rellenan con cero."""
        enc = PointEncoder(zero_default_fields=("battery", "wind_direction"))
        point = enc.encode(_reading(temperature=22.0))

        assert point.fields["battery"] == 0.0
        assert point.fields["wind_direction"] == 0
        assert isinstance(point.fields["wind_direction"], int)
        assert "humidity" not in point.fields

    def test_zero_default_does_not_override_value(self):
        """Un valor presente gana sobre el cero por defecto."""
        enc = PointEncoder(zero_default_fields=("battery",))
        point = enc.encode(_reading(battery=80))
        assert point.fields["battery"] == 80.0


# =============================================================================
# TESTS: IDENTIDAD Y TIEMPO
# =============================================================================

class TestIdentity:
    """Tests de identidad de dispositivo y timestamp."""

    @pytest.mark.parametrize("device", ["", "   ", None])
    def test_empty_device_rejected(self, encoder, device):
        """Sin identidad de dispositivo el encoder falla."""
        with pytest.raises(EncodingError):
            encoder.encode(_reading(device=device, temperature=20))

    def test_device_longer_than_column_rejected(self, encoder):
        """Un id que no cabe en la columna `device` se rechaza antes del store."""
        with pytest.raises(EncodingError):
            encoder.encode(_reading(device="x" * (MAX_DEVICE_ID_LENGTH + 1), temperature=20))
        with pytest.raises(EncodingError):
            encoder.encode_status("x" * (MAX_DEVICE_ID_LENGTH + 1), 1)

    def test_device_at_column_width_accepted(self, encoder):
        device = "x" * MAX_DEVICE_ID_LENGTH
        assert encoder.encode(_reading(device=device, temperature=20)).device == device

    def test_device_is_stripped(self, encoder):
        """Espacios alrededor del id se eliminan."""
        point = encoder.encode(_reading(device=" sensorA ", temperature=20))
        assert point.device == "sensorA"

    def test_capture_time_propagates(self, encoder):
        """El tiempo de captura del payload es el timestamp del punto."""
        captured = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
        reading = TelemetryReading(device_id="s1", fields={"temperature": 1}, captured_at=captured)
        point = encoder.encode(reading)
        assert point.timestamp == captured

    def test_without_capture_time_timestamp_is_deferred(self, encoder):
        """Sin tiempo de captura el store asigna el tiempo de escritura."""
        point = encoder.encode(_reading(temperature=1))
        assert point.timestamp is None
        assert point.resolved_timestamp().tzinfo is not None


# =============================================================================
# TESTS: PUNTOS DE ESTADO
# =============================================================================

class TestStatusPoints:
    """Tests de encode_status."""

    @pytest.mark.parametrize("status,expected", [(1, 1), (0, 0), (5, 1)])
    def test_status_point(self, encoder, status, expected):
        """El punto de estado es {status: 1|0} en la familia status."""
        point = encoder.encode_status("sensorA", status)
        assert point.measurement == STATUS_MEASUREMENT
        assert point.fields == {"status": expected}
        assert point.is_status

    def test_device_status_family(self, encoder):
        """Los reportes del firmware van a su propia familia."""
        point = encoder.encode_status("sensorA", 1, measurement=DEVICE_STATUS_MEASUREMENT)
        assert point.measurement == DEVICE_STATUS_MEASUREMENT

    def test_status_requires_device(self, encoder):
        with pytest.raises(EncodingError):
            encoder.encode_status("", 1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
