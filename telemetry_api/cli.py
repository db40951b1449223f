"""CLI entry point del servicio de telemetría."""

from __future__ import annotations

import argparse
import logging
import os

import uvicorn

from common.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    p = argparse.ArgumentParser(description="Field telemetry service (MQTT ingest + query API)")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "3000")))
    p.add_argument("--log-level", default=settings.log_level)
    p.add_argument("--no-mqtt", action="store_true", help="serve queries only, do not subscribe")
    args = p.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    if args.no_mqtt:
        os.environ["MQTT_ENABLED"] = "false"

    logger.info("Telemetry service starting on %s:%d", args.host, args.port)
    logger.info(
        "Config: store_bucket=%s topic_root=%s flush=%.1fs sweep=%.1fs offline_threshold=%.1fs",
        settings.store_bucket,
        settings.mqtt_topic_root,
        settings.flush_interval_seconds,
        settings.sweep_interval_seconds,
        settings.offline_threshold_seconds,
    )

    uvicorn.run(
        "telemetry_api.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
