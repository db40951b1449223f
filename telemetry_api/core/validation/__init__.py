"""Validation layer - Parseo de payloads MQTT."""

from .payload_validator import parse_data_payload, parse_status_payload

__all__ = ["parse_data_payload", "parse_status_payload"]
