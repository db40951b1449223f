"""Pipeline layer - Codificación de lecturas a puntos de serie temporal."""

from .encoder import FIELD_SCHEMA, PointEncoder

__all__ = ["FIELD_SCHEMA", "PointEncoder"]
