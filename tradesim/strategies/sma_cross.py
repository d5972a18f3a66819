"""
SMA crossover strategy.

A trend-following strategy that:
- Buys when the fast SMA crosses above the slow SMA
- Sells when it crosses below, flipping an open long to short

Reads precomputed "sma_fast" / "sma_slow" indicator values; candles
where either is missing (warm-up) are skipped.
"""

from typing import Iterable, List, Optional

import pandas as pd

from .base import Strategy, market
from ..backtest.sim.types import Candle, OrderIntent, OrderSide, PositionSide
from ..backtest.types import MarketSnapshot

STRATEGY_ID = "sma_cross"


def compute_sma_indicators(candles: Iterable[Candle], fast: int, slow: int) -> pd.DataFrame:
    """
    Simple moving averages of the close, aligned by candle index.

    Returns:
        DataFrame with columns sma_fast, sma_slow (NaN during warm-up)
    """
    if fast < 1 or slow < 1:
        raise ValueError(f"SMA periods must be >= 1, got fast={fast} slow={slow}")
    closes = pd.Series([c.close for c in candles], dtype="float64")
    return pd.DataFrame({
        "sma_fast": closes.rolling(window=fast, min_periods=fast).mean(),
        "sma_slow": closes.rolling(window=slow, min_periods=slow).mean(),
    })


class SmaCrossStrategy(Strategy):
    """
    Always-in-market SMA crossover after the first signal.

    Args:
        fast: Fast SMA period (informational; series are precomputed)
        slow: Slow SMA period
        quantity: Position size per signal
    """

    def __init__(self, fast: int = 10, slow: int = 30, quantity: float = 1.0):
        if fast >= slow:
            raise ValueError(f"fast period ({fast}) must be shorter than slow period ({slow})")
        if quantity <= 0:
            raise ValueError(f"quantity must be positive, got {quantity}")
        self.fast = fast
        self.slow = slow
        self.quantity = quantity
        self._prev_diff: Optional[float] = None

    @property
    def strategy_id(self) -> str:
        return STRATEGY_ID

    def on_candle(self, snapshot: MarketSnapshot) -> List[OrderIntent]:
        fast = snapshot.indicator("sma_fast")
        slow = snapshot.indicator("sma_slow")
        if fast is None or slow is None:
            return []

        diff = fast - slow
        prev, self._prev_diff = self._prev_diff, diff
        if prev is None:
            return []

        position = snapshot.position
        if prev <= 0 < diff and position.side != PositionSide.LONG:
            return [market(OrderSide.BUY, position.quantity + self.quantity, tag="sma_cross_up")]
        if prev >= 0 > diff and position.side != PositionSide.SHORT:
            return [market(OrderSide.SELL, position.quantity + self.quantity, tag="sma_cross_down")]
        return []
