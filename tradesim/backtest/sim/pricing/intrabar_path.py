"""
Intrabar price path generation.

Generates deterministic price paths within a candle so that fill
resolution can decide which level was reached first.

Path policies:
- directional (default): bullish candles (close >= open) go
  O -> L -> H -> C, bearish candles go O -> H -> L -> C
- low_first: always O -> L -> H -> C
- high_first: always O -> H -> L -> C

This is a deterministic tie-break, not a claim about the true path.
Between path points price moves monotonically, so a level between two
consecutive points is crossed on that segment.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..types import Candle


class IntrabarPolicy(str, Enum):
    """Which extreme the path visits first."""
    DIRECTIONAL = "directional"
    LOW_FIRST = "low_first"
    HIGH_FIRST = "high_first"


class Touch(str, Enum):
    """How a level is reached."""
    DOWN = "down"  # satisfied when price <= level
    UP = "up"      # satisfied when price >= level

    def reached(self, price: float, level: float) -> bool:
        if self is Touch.DOWN:
            return price <= level
        return price >= level


@dataclass(frozen=True)
class PricePoint:
    """Single point in intrabar price path (sequence 0 = open)."""
    price: float
    sequence: int
    label: str


@dataclass(frozen=True)
class IntrabarPathConfig:
    """Configuration for intrabar path generation."""
    policy: IntrabarPolicy = IntrabarPolicy.DIRECTIONAL


class IntrabarPath:
    """Generates OHLC-consistent intrabar paths."""

    def __init__(self, config: Optional[IntrabarPathConfig] = None):
        self._config = config or IntrabarPathConfig()

    @property
    def policy(self) -> IntrabarPolicy:
        return self._config.policy

    def low_first(self, candle: Candle) -> bool:
        if self._config.policy == IntrabarPolicy.LOW_FIRST:
            return True
        if self._config.policy == IntrabarPolicy.HIGH_FIRST:
            return False
        return candle.is_bullish

    def generate_path(self, candle: Candle) -> List[PricePoint]:
        """
        Generate the 4-point path for a candle.

        Returns:
            [open, first extreme, second extreme, close]
        """
        if self.low_first(candle):
            middle = [(candle.low, "low"), (candle.high, "high")]
        else:
            middle = [(candle.high, "high"), (candle.low, "low")]
        points = [(candle.open, "open"), *middle, (candle.close, "close")]
        return [PricePoint(price=p, sequence=i, label=label) for i, (p, label) in enumerate(points)]


def first_touch(
    path: List[PricePoint],
    level: float,
    touch: Touch,
    start: int = 0,
) -> Optional[int]:
    """
    Index of the first path point (from `start`) at which `level` is reached.

    Returns:
        Path index, or None if the level is never reached
    """
    for point in path[start:]:
        if touch.reached(point.price, level):
            return point.sequence
    return None
