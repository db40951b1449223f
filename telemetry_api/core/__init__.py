"""Core module - Pipeline de ingesta de telemetría.

Estructura:
- transport/   → Recepción MQTT y despacho de mensajes
- domain/      → Lecturas y puntos de serie temporal
- validation/  → Parseo de payloads
- pipeline/    → Encoder de puntos
- monitoring/  → Estadísticas y health checks
"""
