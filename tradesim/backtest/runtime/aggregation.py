"""
Timeframe aggregation: a pre-pass that rolls source candles up into
coarser candles before they reach the engine.

Buckets are aligned to the Unix epoch (a 4h bucket starts at 00:00,
04:00, ...). Each emitted candle is:

    open = first.open, high = max(highs), low = min(lows),
    close = last.close, volume = sum(volumes), timestamp = bucket start

Source candles must be strictly time-ordered; anything else raises
InvalidCandleError before a single candle is emitted to the caller.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Union

from .timeframe import tf_duration
from ..sim.errors import InvalidCandleError
from ..sim.types import Candle

_EPOCH_NAIVE = datetime(1970, 1, 1)
_EPOCH_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class CandleBucket:
    """
    Accumulates source candles for one output bucket.

    accumulate() is O(1); freeze() builds the output Candle.
    """
    start: datetime
    open: float = 0.0
    high: float = float("-inf")
    low: float = float("inf")
    close: float = 0.0
    volume: float = 0.0
    count: int = 0

    def accumulate(self, candle: Candle) -> None:
        if self.count == 0:
            self.open = candle.open
        self.high = max(self.high, candle.high)
        self.low = min(self.low, candle.low)
        self.close = candle.close
        self.volume += candle.volume
        self.count += 1

    def freeze(self) -> Candle:
        return Candle(
            timestamp=self.start,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


def bucket_start(timestamp: datetime, duration: timedelta) -> datetime:
    """Start of the epoch-aligned bucket containing `timestamp`."""
    epoch = _EPOCH_NAIVE if timestamp.tzinfo is None else _EPOCH_UTC
    elapsed = timestamp - epoch
    return epoch + (elapsed // duration) * duration


def _check_order(candle: Candle, previous: Optional[Candle], index: int) -> None:
    if previous is not None and not candle.timestamp > previous.timestamp:
        raise InvalidCandleError(
            f"Aggregation input not strictly time-ordered: {candle.timestamp} "
            f"after {previous.timestamp} at candle #{index}",
            index,
        )


def aggregate_candles(
    candles: Iterable[Candle],
    timeframe: Union[str, timedelta],
) -> List[Candle]:
    """
    Roll candles up into epoch-aligned buckets of `timeframe`.

    Args:
        candles: Strictly time-ordered source candles
        timeframe: Target timeframe string ("4h") or a timedelta

    Returns:
        One candle per non-empty bucket, in time order

    Raises:
        InvalidCandleError: If the source is not strictly time-ordered
        ValueError: If the timeframe is unknown or not positive
    """
    duration = tf_duration(timeframe) if isinstance(timeframe, str) else timeframe
    if duration <= timedelta(0):
        raise ValueError(f"Aggregation timeframe must be positive, got {duration}")

    result: List[Candle] = []
    bucket: Optional[CandleBucket] = None
    previous: Optional[Candle] = None

    for index, candle in enumerate(candles):
        _check_order(candle, previous, index)
        start = bucket_start(candle.timestamp, duration)
        if bucket is None or start != bucket.start:
            if bucket is not None:
                result.append(bucket.freeze())
            bucket = CandleBucket(start=start)
        bucket.accumulate(candle)
        previous = candle

    if bucket is not None:
        result.append(bucket.freeze())
    return result


def aggregate_by_count(candles: Iterable[Candle], factor: int) -> List[Candle]:
    """
    Group every `factor` consecutive candles into one.

    The output timestamp is the first source candle's. An incomplete
    trailing group is dropped.

    Raises:
        InvalidCandleError: If the source is not strictly time-ordered
        ValueError: If factor < 1
    """
    if factor < 1:
        raise ValueError(f"Aggregation factor must be >= 1, got {factor}")

    result: List[Candle] = []
    bucket: Optional[CandleBucket] = None
    previous: Optional[Candle] = None

    for index, candle in enumerate(candles):
        _check_order(candle, previous, index)
        if bucket is None:
            bucket = CandleBucket(start=candle.timestamp)
        bucket.accumulate(candle)
        if bucket.count == factor:
            result.append(bucket.freeze())
            bucket = None
        previous = candle

    return result
