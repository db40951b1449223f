from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


def _default_env_file() -> str:
    # .env junto al directorio de trabajo; se puede apuntar a otro con TELEMETRY_ENV_FILE.
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class Settings:
    store_url: str
    store_bucket: str

    mqtt_enabled: bool
    mqtt_broker_host: str
    mqtt_broker_port: int
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    mqtt_topic_root: str

    flush_interval_seconds: float
    buffer_size: int
    max_pending: int
    max_retry_age_seconds: float

    sweep_interval_seconds: float
    offline_threshold_seconds: float
    trust_device_status: bool

    status_lookback: str
    last_data_lookback: str
    zero_default_fields: Tuple[str, ...]

    log_level: str


def _read_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _read_list(name: str) -> Tuple[str, ...]:
    value = os.getenv(name, "")
    return tuple(item.strip() for item in value.split(",") if item.strip())


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables de entorno reales.
    env_file = os.getenv("TELEMETRY_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        store_url=os.getenv("TS_STORE_URL", "sqlite:///./telemetry.db"),
        store_bucket=os.getenv("TS_STORE_BUCKET", "telemetry").strip() or "telemetry",
        mqtt_enabled=_read_bool("MQTT_ENABLED", True),
        mqtt_broker_host=os.getenv("MQTT_BROKER_HOST", "localhost"),
        mqtt_broker_port=_read_int("MQTT_BROKER_PORT", 1883),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        mqtt_topic_root=os.getenv("MQTT_TOPIC_ROOT", "tarla").strip("/ ") or "tarla",
        flush_interval_seconds=_read_float("TELEMETRY_FLUSH_INTERVAL_SECONDS", 10.0),
        buffer_size=_read_int("TELEMETRY_BUFFER_SIZE", 500),
        max_pending=_read_int("TELEMETRY_MAX_PENDING", 10000),
        max_retry_age_seconds=_read_float("TELEMETRY_MAX_RETRY_AGE_SECONDS", 300.0),
        sweep_interval_seconds=_read_float("TELEMETRY_SWEEP_INTERVAL_SECONDS", 60.0),
        offline_threshold_seconds=_read_float("TELEMETRY_OFFLINE_THRESHOLD_SECONDS", 300.0),
        trust_device_status=_read_bool("TELEMETRY_TRUST_DEVICE_STATUS", False),
        status_lookback=os.getenv("TELEMETRY_STATUS_LOOKBACK", "-24h").strip() or "-24h",
        last_data_lookback=os.getenv("TELEMETRY_LAST_DATA_LOOKBACK", "-1h").strip() or "-1h",
        zero_default_fields=_read_list("TELEMETRY_ZERO_DEFAULT_FIELDS"),
        log_level=(os.getenv("LOG_LEVEL", "INFO").strip() or "INFO").upper(),
    )
