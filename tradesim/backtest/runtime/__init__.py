"""Runtime helpers: timeframes and candle aggregation."""

from .timeframe import tf_duration, tf_minutes, bars_per_year
from .aggregation import aggregate_candles, aggregate_by_count, bucket_start, CandleBucket

__all__ = [
    "tf_duration",
    "tf_minutes",
    "bars_per_year",
    "aggregate_candles",
    "aggregate_by_count",
    "bucket_start",
    "CandleBucket",
]
