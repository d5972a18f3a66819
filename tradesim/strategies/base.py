"""
Base strategy interface.

A strategy is a function of the MarketSnapshot that returns zero or more
order intents. The engine reads no state on the strategy's behalf; any
memory between candles belongs to the strategy object itself.

Both forms are accepted by BacktestEngine:
- a Strategy subclass (on_candle)
- a plain callable, optionally tagged with @strategy_function
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from ..backtest.sim.types import (
    CancelOrder,
    ModifyOrder,
    OrderIntent,
    OrderKind,
    OrderRequest,
    OrderSide,
    SubmitOrder,
)
from ..backtest.types import MarketSnapshot


class Strategy(ABC):
    """
    Abstract base class for trading strategies.

    Subclasses implement on_candle() to produce order intents.
    """

    @property
    @abstractmethod
    def strategy_id(self) -> str:
        """Unique strategy identifier."""
        pass

    @abstractmethod
    def on_candle(self, snapshot: MarketSnapshot) -> Optional[Sequence[OrderIntent]]:
        """
        React to the state after one candle.

        Args:
            snapshot: Market/account state after the candle's fills

        Returns:
            Intents to apply from the next candle on, or None
        """
        pass

    def __call__(self, snapshot: MarketSnapshot) -> Optional[Sequence[OrderIntent]]:
        """Allow strategy to be called as a function."""
        return self.on_candle(snapshot)


def strategy_function(strategy_id: str) -> Callable[[Callable], Callable]:
    """
    Decorator to tag a plain function as a strategy.

    Usage:
        @strategy_function("buy_once")
        def buy_once(snapshot):
            if snapshot.index == 0:
                return [market(OrderSide.BUY, 1.0)]
            return []
    """
    def decorator(func: Callable) -> Callable:
        func._strategy_id = strategy_id
        return func
    return decorator


# Intent shorthands

def market(side: OrderSide, quantity: float, **kwargs) -> SubmitOrder:
    return SubmitOrder(OrderRequest(side=side, kind=OrderKind.MARKET, quantity=quantity, **kwargs))


def limit(side: OrderSide, quantity: float, price: float, **kwargs) -> SubmitOrder:
    return SubmitOrder(OrderRequest(side=side, kind=OrderKind.LIMIT, quantity=quantity, limit_price=price, **kwargs))


def cancel(order_id: str) -> CancelOrder:
    return CancelOrder(order_id)


def modify(order_id: str, price: float) -> ModifyOrder:
    return ModifyOrder(order_id, price)


def cancel_all(snapshot: MarketSnapshot) -> List[CancelOrder]:
    """Cancel intents for every open order in the snapshot."""
    return [CancelOrder(o.order_id) for o in snapshot.open_orders]
