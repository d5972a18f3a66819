"""
OHLCV data adapter.

Converts pandas OHLCV rows to Candle objects and validates candles.

Handles:
- Dict rows and pandas Series rows
- Timestamp parsing (ISO strings, pandas Timestamps, epoch milliseconds)
- OHLC envelope and time-ordering validation
- CSV loading via pandas
"""
from __future__ import annotations

import math
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, TYPE_CHECKING

import pandas as pd

from ..errors import InvalidCandleError
from ..types import Candle
from ....utils.helpers import is_real_number

if TYPE_CHECKING:
    from os import PathLike

REQUIRED_COLUMNS = ("timestamp", "open", "high", "low", "close", "volume")


def validate_candle(
    candle: Candle,
    previous: Candle | None = None,
    index: int | None = None,
) -> Candle:
    """
    Check one candle against the stream invariants.

    - all prices and volume are finite and non-negative
    - low <= min(open, close) <= max(open, close) <= high
    - timestamp strictly after the previous candle's

    Never clamps. Returns the candle unchanged so it can be used inline.

    Raises:
        InvalidCandleError: On the first violated invariant
    """
    o, h, l, c, v = candle.open, candle.high, candle.low, candle.close, candle.volume
    at = f"candle #{index} ({candle.timestamp})" if index is not None else f"candle {candle.timestamp}"

    for name, value in (("open", o), ("high", h), ("low", l), ("close", c), ("volume", v)):
        if not is_real_number(value) or not math.isfinite(value):
            raise InvalidCandleError(f"Invalid OHLCV: {name}={value!r} is not finite at {at}", index)
        if value < 0:
            raise InvalidCandleError(f"Invalid OHLCV: {name}={value} is negative at {at}", index)

    if l > min(o, c):
        raise InvalidCandleError(f"Invalid OHLC: low ({l}) > open ({o}) or close ({c}) at {at}", index)
    if h < max(o, c):
        raise InvalidCandleError(f"Invalid OHLC: high ({h}) < open ({o}) or close ({c}) at {at}", index)

    if previous is not None and not candle.timestamp > previous.timestamp:
        raise InvalidCandleError(
            f"Timestamps not strictly increasing: {candle.timestamp} after {previous.timestamp} at {at}",
            index,
        )
    return candle


def iter_validated(candles: Iterable[Candle]) -> Iterator[Candle]:
    """Yield candles, raising InvalidCandleError at the first bad one."""
    previous = None
    for i, candle in enumerate(candles):
        yield validate_candle(candle, previous, i)
        previous = candle


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        # pandas Timestamp is a datetime subclass
        if hasattr(value, "to_pydatetime"):
            return value.to_pydatetime()
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if is_real_number(value):
        # Epoch milliseconds
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    raise InvalidCandleError(f"Unsupported timestamp value: {value!r}")


def adapt_ohlcv_row(row: dict[str, Any] | "pd.Series") -> Candle:
    """
    Convert a single OHLCV row to a Candle (envelope-validated).

    Args:
        row: OHLCV data with keys: timestamp, open, high, low, close, volume

    Returns:
        Candle instance

    Raises:
        KeyError: If required columns are missing
        InvalidCandleError: If data is invalid
    """
    if hasattr(row, "to_dict"):
        row = dict(row)

    candle = Candle(
        timestamp=_parse_timestamp(row["timestamp"]),
        open=float(row["open"]),
        high=float(row["high"]),
        low=float(row["low"]),
        close=float(row["close"]),
        volume=float(row.get("volume", 0.0)),
    )
    return validate_candle(candle)


def adapt_ohlcv_dataframe(df: "pd.DataFrame") -> list[Candle]:
    """
    Convert a pandas DataFrame to a validated list of Candles.

    Raises:
        KeyError: If required columns are missing
        InvalidCandleError: If any row or the ordering is invalid
    """
    missing = set(REQUIRED_COLUMNS) - set(df.columns)
    if missing:
        raise KeyError(f"Missing required columns: {sorted(missing)}")

    candles: list[Candle] = []
    for i, row in enumerate(df.to_dict("records")):
        candle = adapt_ohlcv_row(row)
        validate_candle(candle, candles[-1] if candles else None, i)
        candles.append(candle)
    return candles


def load_candles_csv(path: str | Path | "PathLike[str]") -> list[Candle]:
    """
    Load candles from a CSV file with the REQUIRED_COLUMNS header.

    Numeric timestamps are read as epoch milliseconds (UTC).
    """
    df = pd.read_csv(path)
    if "timestamp" in df.columns:
        if pd.api.types.is_numeric_dtype(df["timestamp"]):
            df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
        else:
            df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return adapt_ohlcv_dataframe(df)


def candles_to_dataframe(candles: Iterable[Candle]) -> "pd.DataFrame":
    """Inverse of adapt_ohlcv_dataframe (no validation)."""
    return pd.DataFrame([asdict(c) for c in candles], columns=list(REQUIRED_COLUMNS))
