"""Servicio de telemetría de campo: ingesta MQTT, liveness y consultas agregadas."""

__version__ = "0.1.0"
