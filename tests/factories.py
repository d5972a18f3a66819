"""
Shared builders for tests: candles, configs and scripted strategies.
"""

import math
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from tradesim.backtest.sim.execution.fee_model import FeeConfig
from tradesim.backtest.sim.execution.slippage_model import SlippageConfig
from tradesim.backtest.sim.types import (
    Candle,
    OrderIntent,
    OrderKind,
    OrderRequest,
    OrderSide,
    SubmitOrder,
)
from tradesim.backtest.types import MarketSnapshot
from tradesim.config.backtest_config import BacktestConfig

T0 = datetime(2024, 1, 1, 0, 0, 0)


def ts(i: int, step: timedelta = timedelta(hours=1)) -> datetime:
    return T0 + i * step


def candle(i: int, o: float, h: float, l: float, c: float, v: float = 100.0) -> Candle:
    """Candle number `i` on an hourly grid starting at T0."""
    return Candle(timestamp=ts(i), open=o, high=h, low=l, close=c, volume=v)


def flat_candles(n: int, price: float = 100.0, start: int = 0) -> List[Candle]:
    return [candle(start + i, price, price + 1, price - 1, price) for i in range(n)]


def wave_candles(n: int, base: float = 100.0, amplitude: float = 10.0) -> List[Candle]:
    """Deterministic oscillating series; open is the previous close."""
    candles = []
    prev_close = base
    for i in range(n):
        close = base + amplitude * math.sin(i / 5.0)
        o = prev_close
        candles.append(candle(i, o, max(o, close) + 0.5, min(o, close) - 0.5, close))
        prev_close = close
    return candles


def zero_cost_config(**overrides) -> BacktestConfig:
    """No fees, no slippage: fills land exactly on the modeled price."""
    params = dict(
        initial_cash=10_000.0,
        fees=FeeConfig(maker_rate=0.0, taker_rate=0.0),
        slippage=SlippageConfig(mode="none"),
    )
    params.update(overrides)
    return BacktestConfig(**params)


def market(side: OrderSide, qty: float, **kwargs) -> SubmitOrder:
    return SubmitOrder(OrderRequest(side=side, kind=OrderKind.MARKET, quantity=qty, **kwargs))


def limit(side: OrderSide, qty: float, price: float, **kwargs) -> SubmitOrder:
    return SubmitOrder(OrderRequest(side=side, kind=OrderKind.LIMIT, quantity=qty, limit_price=price, **kwargs))


class ScriptedStrategy:
    """
    Emits fixed intents at given candle indexes and records every snapshot.

    A script value may also be a callable(snapshot) -> intents.
    """

    def __init__(self, script: Optional[Dict[int, object]] = None):
        self.script = script or {}
        self.snapshots: List[MarketSnapshot] = []

    def __call__(self, snapshot: MarketSnapshot) -> Sequence[OrderIntent]:
        self.snapshots.append(snapshot)
        action = self.script.get(snapshot.index, [])
        if callable(action):
            return action(snapshot)
        return action
