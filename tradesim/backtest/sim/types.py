"""
Core types for the simulated exchange.

Provides all shared types, enums, intents, and snapshots:
- Candle: immutable OHLCV bar shared read-only across runs
- Order, OrderRequest: order lifecycle (requests come from strategies)
- SubmitOrder, CancelOrder, ModifyOrder: strategy intents
- Fill (Trade Log Entry), Rejection: append-only run records
- Position, WalletState, StepResult: state snapshots

Type design principles:
- Immutable where possible (frozen dataclasses)
- Order is the only mutable record; it is owned by the OrderBook
- Serializable (to_dict methods)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from .errors import OrderStateError, RejectionCode

# Type alias for order IDs
OrderId = str

# Quantities below this are treated as zero
QTY_EPSILON = 1e-12


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────

class OrderSide(str, Enum):
    """Order side."""
    BUY = "buy"
    SELL = "sell"

    @property
    def sign(self) -> int:
        """+1 for buys, -1 for sells."""
        return 1 if self is OrderSide.BUY else -1

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderKind(str, Enum):
    """Order kind (closed set; each kind has exactly one fill resolver)."""
    MARKET = "market"
    LIMIT = "limit"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"

    @property
    def is_triggered(self) -> bool:
        """Stop-triggered kinds become market orders once crossed."""
        return self in (OrderKind.STOP_LOSS, OrderKind.TAKE_PROFIT, OrderKind.TRAILING_STOP)


class OrderStatus(str, Enum):
    """Order status."""
    PENDING = "pending"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.EXPIRED)


class PositionSide(str, Enum):
    """Position side."""
    FLAT = "flat"
    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        if self is PositionSide.LONG:
            return 1
        if self is PositionSide.SHORT:
            return -1
        return 0


class FillReason(str, Enum):
    """Reason for order fill."""
    MARKET = "market"
    LIMIT = "limit"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"
    LIQUIDATION = "liquidation"

    @classmethod
    def for_kind(cls, kind: OrderKind) -> "FillReason":
        return cls(kind.value)


_ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PARTIALLY_FILLED,
        OrderStatus.FILLED,
        OrderStatus.CANCELLED,
        OrderStatus.EXPIRED,
    },
    OrderStatus.PARTIALLY_FILLED: {
        OrderStatus.PARTIALLY_FILLED,
        OrderStatus.FILLED,
        OrderStatus.CANCELLED,
        OrderStatus.EXPIRED,
    },
    OrderStatus.FILLED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.EXPIRED: set(),
}


# ─────────────────────────────────────────────────────────────────────────────
# Candle
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Candle:
    """
    One OHLCV interval.

    Construction does not validate; the engine validates every candle
    it consumes so that a malformed bar aborts the run instead of
    failing somewhere inside the producer.
    """
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def is_bullish(self) -> bool:
        return self.close >= self.open

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Orders and intents
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OrderRequest:
    """
    What a strategy asks for. The order book turns it into an Order.

    Bracket fields (stop_loss, take_profit, trailing_stop_percent) are
    only valid on entry kinds and spawn reduce-only exits on first fill.
    """
    side: OrderSide
    kind: OrderKind
    quantity: float
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None
    trail_percent: Optional[float] = None
    reduce_only: bool = False
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    trailing_stop_percent: Optional[float] = None
    expires_at: Optional[datetime] = None
    order_id: Optional[OrderId] = None
    tag: Optional[str] = None


@dataclass
class Order:
    """
    Live or archived order.

    Owned by the OrderBook; snapshots handed to strategies are copies.
    """
    order_id: OrderId
    side: OrderSide
    kind: OrderKind
    quantity: float
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None
    trail_percent: Optional[float] = None
    reduce_only: bool = False
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    trailing_stop_percent: Optional[float] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    status: OrderStatus = OrderStatus.PENDING
    filled_quantity: float = 0.0
    sequence: int = 0
    parent_id: Optional[OrderId] = None
    oco_group: Optional[str] = None
    tag: Optional[str] = None

    @property
    def remaining_quantity(self) -> float:
        return max(0.0, self.quantity - self.filled_quantity)

    @property
    def is_live(self) -> bool:
        return not self.status.is_terminal

    @property
    def has_bracket(self) -> bool:
        return (
            self.stop_loss is not None
            or self.take_profit is not None
            or self.trailing_stop_percent is not None
        )

    def transition(self, status: OrderStatus) -> None:
        """Move to a new status; terminal orders never change again."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise OrderStateError(
                f"Order {self.order_id}: illegal transition "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status

    def record_fill(self, quantity: float) -> None:
        """Add a fill of `quantity` and update status."""
        if quantity <= 0:
            raise OrderStateError(f"Order {self.order_id}: fill quantity must be positive")
        if quantity > self.remaining_quantity + QTY_EPSILON:
            raise OrderStateError(
                f"Order {self.order_id}: fill {quantity} exceeds remaining {self.remaining_quantity}"
            )
        self.filled_quantity += quantity
        if self.remaining_quantity <= QTY_EPSILON:
            self.filled_quantity = self.quantity
            self.transition(OrderStatus.FILLED)
        else:
            self.transition(OrderStatus.PARTIALLY_FILLED)

    def ratchet(self, price: float) -> bool:
        """
        Tighten a trailing stop toward `price`. Never relaxes.

        Sell trailing stops (protecting longs) only move up; buy trailing
        stops (protecting shorts) only move down.

        Returns:
            True if the stop price changed
        """
        if self.kind != OrderKind.TRAILING_STOP or self.trail_percent is None:
            return False
        offset = self.trail_percent / 100.0
        if self.side == OrderSide.SELL:
            candidate = price * (1.0 - offset)
            if self.stop_price is None or candidate > self.stop_price:
                self.stop_price = candidate
                return True
        else:
            candidate = price * (1.0 + offset)
            if self.stop_price is None or candidate < self.stop_price:
                self.stop_price = candidate
                return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "side": self.side.value,
            "kind": self.kind.value,
            "quantity": self.quantity,
            "limit_price": self.limit_price,
            "stop_price": self.stop_price,
            "trail_percent": self.trail_percent,
            "reduce_only": self.reduce_only,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "status": self.status.value,
            "filled_quantity": self.filled_quantity,
            "parent_id": self.parent_id,
            "oco_group": self.oco_group,
            "tag": self.tag,
        }


@dataclass(frozen=True)
class SubmitOrder:
    """Intent: place a new order."""
    request: OrderRequest


@dataclass(frozen=True)
class CancelOrder:
    """Intent: cancel a live order."""
    order_id: OrderId


@dataclass(frozen=True)
class ModifyOrder:
    """Intent: move a live order's limit or stop price."""
    order_id: OrderId
    price: float


OrderIntent = Union[SubmitOrder, CancelOrder, ModifyOrder]


# ─────────────────────────────────────────────────────────────────────────────
# Fill (Trade Log Entry)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Fill:
    """
    Record of a completed fill. The trade log is the ordered list of these.

    realized_pnl_delta is gross of fees.
    """
    fill_id: str
    order_id: OrderId
    side: OrderSide
    quantity: float
    fill_price: float
    fee: float
    timestamp: datetime
    realized_pnl_delta: float
    kind: Optional[OrderKind] = None
    reason: FillReason = FillReason.MARKET
    is_maker: bool = False
    slippage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fill_id": self.fill_id,
            "order_id": self.order_id,
            "side": self.side.value,
            "quantity": self.quantity,
            "fill_price": self.fill_price,
            "fee": self.fee,
            "timestamp": self.timestamp.isoformat(),
            "realized_pnl_delta": self.realized_pnl_delta,
            "kind": self.kind.value if self.kind else None,
            "reason": self.reason.value,
            "is_maker": self.is_maker,
            "slippage": self.slippage,
        }


TradeLogEntry = Fill


@dataclass(frozen=True)
class Rejection:
    """Record of an intent or fill the engine refused."""
    order_id: Optional[OrderId]
    code: RejectionCode
    reason: str
    timestamp: datetime
    action: str = "submit"  # submit | cancel | modify | fill

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "code": self.code.value,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Position:
    """Point-in-time view of the single open position."""
    side: PositionSide = PositionSide.FLAT
    quantity: float = 0.0
    average_entry_price: float = 0.0
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    leverage: float = 1.0

    @property
    def is_flat(self) -> bool:
        return self.side == PositionSide.FLAT

    @property
    def signed_quantity(self) -> float:
        return self.side.sign * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.side.value,
            "quantity": self.quantity,
            "average_entry_price": self.average_entry_price,
            "realized_pnl": self.realized_pnl,
            "unrealized_pnl": self.unrealized_pnl,
            "leverage": self.leverage,
        }


@dataclass(frozen=True)
class WalletState:
    """
    Complete wallet state at a point in time.

    Cash account with posted margin:
    - cash_balance: initial cash + realized P&L - fees - margin still posted
    - equity = cash_balance + unrealized_pnl
    - used_margin: margin posted for the open position
    - account_value = equity + used_margin
    - position_value = signed quantity x mark (informational)
    - available_margin = cash_balance
    """
    cash_balance: float
    position_value: float
    unrealized_pnl: float
    equity: float
    used_margin: float
    available_margin: float
    total_fees: float
    account_value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cash_balance": self.cash_balance,
            "position_value": self.position_value,
            "unrealized_pnl": self.unrealized_pnl,
            "equity": self.equity,
            "used_margin": self.used_margin,
            "available_margin": self.available_margin,
            "account_value": self.account_value,
            "total_fees": self.total_fees,
        }


@dataclass
class StepResult:
    """
    Result of processing a single candle (steps 1-4).

    Aggregates fills, rejections and expiries from process_candle().
    """
    timestamp: datetime
    fills: List[Fill] = field(default_factory=list)
    rejections: List[Rejection] = field(default_factory=list)
    expired_order_ids: List[OrderId] = field(default_factory=list)
    liquidated: bool = False
    wallet: Optional[WalletState] = None
    position: Optional[Position] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "fills": [f.to_dict() for f in self.fills],
            "rejections": [r.to_dict() for r in self.rejections],
            "expired_order_ids": list(self.expired_order_ids),
            "liquidated": self.liquidated,
            "wallet": self.wallet.to_dict() if self.wallet else None,
            "position": self.position.to_dict() if self.position else None,
        }
