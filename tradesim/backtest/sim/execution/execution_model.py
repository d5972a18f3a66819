"""
Order execution model.

Decides whether and where each order kind executes on a candle:
- Market: at the first path point (the open) plus slippage
- Limit: when the path reaches the limit; a buy live at the open gets
  min(limit, open), a sell max(limit, open); no slippage
- StopLoss / TakeProfit: when the path reaches stop_price, then executed
  as a market order (taker, slippage); a level already passed when the
  order becomes eligible (a gap at the open, or a bracket exit whose level
  is beyond its parent's fill) executes at that price
- TrailingStop: like StopLoss, with the stop ratcheted along the path

Each kind has exactly one resolver; adding a kind without a resolver
fails at import time.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..types import Candle, Order, OrderKind, OrderSide
from ..pricing.intrabar_path import IntrabarPath, IntrabarPathConfig, PricePoint, Touch, first_touch
from .fee_model import FeeModel, FeeConfig
from .slippage_model import SlippageModel, SlippageConfig
from .liquidity_model import LiquidityModel, LiquidityConfig


@dataclass(frozen=True)
class ExecutionModelConfig:
    """Configuration for execution model."""
    slippage: SlippageConfig = field(default_factory=SlippageConfig)
    liquidity: LiquidityConfig = field(default_factory=LiquidityConfig)
    intrabar: IntrabarPathConfig = field(default_factory=IntrabarPathConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)


@dataclass(frozen=True)
class Trigger:
    """Where and at what base price an order executes on this candle."""
    index: int
    base_price: float
    gapped: bool = False


def touch_for(order: Order) -> Touch:
    """Direction in which the order's working level is reached."""
    if order.kind == OrderKind.TAKE_PROFIT:
        # Sell TP exits a long on strength; buy TP covers a short on weakness
        return Touch.UP if order.side == OrderSide.SELL else Touch.DOWN
    if order.kind == OrderKind.LIMIT:
        return Touch.DOWN if order.side == OrderSide.BUY else Touch.UP
    # STOP_LOSS / TRAILING_STOP: sell stops exit longs on weakness
    return Touch.DOWN if order.side == OrderSide.SELL else Touch.UP


def _resolve_market(order: Order, path: List[PricePoint], start: int, activation: float) -> Optional[Trigger]:
    point = path[start]
    return Trigger(index=point.sequence, base_price=point.price)


def _resolve_limit(order: Order, path: List[PricePoint], start: int, activation: float) -> Optional[Trigger]:
    limit = order.limit_price
    if limit is None:
        return None
    touch = touch_for(order)
    if touch.reached(activation, limit):
        # Already through the limit when the order became eligible: better price
        price = min(limit, activation) if order.side == OrderSide.BUY else max(limit, activation)
        return Trigger(index=path[start].sequence, base_price=price, gapped=price != limit)
    index = first_touch(path, limit, touch, start)
    if index is None:
        return None
    return Trigger(index=index, base_price=limit)


def _resolve_stop(order: Order, path: List[PricePoint], start: int, activation: float) -> Optional[Trigger]:
    level = order.stop_price
    if level is None:
        return None
    touch = touch_for(order)
    if touch.reached(activation, level):
        # Past the level when the order became eligible: execute there
        return Trigger(index=path[start].sequence, base_price=activation, gapped=activation != level)
    index = first_touch(path, level, touch, start)
    if index is None:
        return None
    return Trigger(index=index, base_price=level)


def _resolve_trailing(order: Order, path: List[PricePoint], start: int, activation: float) -> Optional[Trigger]:
    # Check at each point with the current stop, then ratchet with that point.
    # The order's stop is tightened as a side effect, also when not triggered.
    touch = touch_for(order)
    level = order.stop_price
    if level is not None and touch.reached(activation, level):
        return Trigger(index=path[start].sequence, base_price=activation, gapped=activation != level)
    for point in path[start:]:
        level = order.stop_price
        if level is not None and touch.reached(point.price, level):
            return Trigger(index=point.sequence, base_price=level)
        order.ratchet(point.price)
    return None


Resolver = Callable[[Order, List[PricePoint], int, float], Optional[Trigger]]

_RESOLVERS: Dict[OrderKind, Resolver] = {
    OrderKind.MARKET: _resolve_market,
    OrderKind.LIMIT: _resolve_limit,
    OrderKind.STOP_LOSS: _resolve_stop,
    OrderKind.TAKE_PROFIT: _resolve_stop,
    OrderKind.TRAILING_STOP: _resolve_trailing,
}

if set(_RESOLVERS) != set(OrderKind):
    raise RuntimeError(f"Missing fill resolver for: {set(OrderKind) - set(_RESOLVERS)}")


class ExecutionModel:
    """
    Handles order execution with slippage, fees and liquidity caps.

    Stateless apart from the deterministic fill counter.
    """

    def __init__(self, config: ExecutionModelConfig | None = None):
        """
        Initialize execution model.

        Args:
            config: Optional configuration
        """
        self._config = config or ExecutionModelConfig()
        self._slippage = SlippageModel(self._config.slippage)
        self._liquidity = LiquidityModel(self._config.liquidity)
        self._intrabar = IntrabarPath(self._config.intrabar)
        self._fees = FeeModel(self._config.fees)
        self._fill_counter: int = 0  # Deterministic fill IDs

    @property
    def fee_model(self) -> FeeModel:
        return self._fees

    @property
    def intrabar(self) -> IntrabarPath:
        return self._intrabar

    def next_fill_id(self) -> str:
        """Generate deterministic sequential fill ID."""
        self._fill_counter += 1
        return f"fill_{self._fill_counter:06d}"

    def generate_path(self, candle: Candle) -> List[PricePoint]:
        return self._intrabar.generate_path(candle)

    def resolve(
        self,
        order: Order,
        path: List[PricePoint],
        start: int = 0,
        activation_price: Optional[float] = None,
    ) -> Optional[Trigger]:
        """
        Find where `order` executes on the candle described by `path`.

        Args:
            order: Live order
            path: Intrabar path of the candle
            start: First path index the order may use (spawned exits start
                at their parent's fill point)
            activation_price: Price at which the order became eligible on this
                candle (the open for orders live at the open, the parent's
                fill price for spawned exits). A level already passed at
                that price executes there. Defaults to path[start].

        Returns:
            Trigger, or None if the order does not execute on this candle
        """
        if activation_price is None:
            activation_price = path[start].price
        return _RESOLVERS[order.kind](order, path, start, activation_price)

    def execution_price(self, order: Order, trigger: Trigger) -> Tuple[float, float]:
        """
        Final fill price and the slippage applied.

        Limit fills never slip; everything else is a taker fill and slips
        against the trader.
        """
        if order.kind == OrderKind.LIMIT:
            return trigger.base_price, 0.0
        price = self._slippage.apply_slippage(trigger.base_price, order.side)
        return price, abs(price - trigger.base_price)

    def is_maker(self, order: Order, fill_price: float) -> bool:
        return self._fees.is_maker_fill(order.kind, fill_price, order.limit_price)

    def fee(self, order: Order, fill_price: float, quantity: float, is_maker: bool) -> float:
        return self._fees.fee(order.kind, fill_price, quantity, is_maker)

    def max_fillable(self, quantity: float, candle: Candle) -> float:
        return self._liquidity.get_max_fillable(quantity, candle)
