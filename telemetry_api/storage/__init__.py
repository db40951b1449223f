"""Storage layer - Store de series temporales sobre SQLAlchemy."""

from .schema import ensure_schema, ts_points
from .timeseries import AGGREGATES, RangeSummary, TimeSeriesRow, TimeSeriesStore

__all__ = [
    "AGGREGATES",
    "RangeSummary",
    "TimeSeriesRow",
    "TimeSeriesStore",
    "ensure_schema",
    "ts_points",
]
