"""
Order book for one run.

Holds live orders in insertion order and archives terminal ones.

Responsibilities:
- Validate order requests (InvalidOrderError)
- Assign deterministic order ids (ord_000001, ...) and sequence numbers
- Cancel / modify live orders (UnknownOrderIdError for anything else)
- Time expiry, reduce-only sweeps and OCO sibling cancellation
- Spawn bracket exits when an entry first fills

Terminal orders are moved to the archive and never mutated again.
"""

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .errors import InvalidOrderError, UnknownOrderIdError
from .types import (
    Order,
    OrderId,
    OrderKind,
    OrderRequest,
    OrderSide,
    OrderStatus,
)
from ...utils.helpers import is_real_number

logger = logging.getLogger(__name__)


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def validate_order_request(request: OrderRequest) -> None:
    """
    Check a request before it becomes an order.

    Raises:
        InvalidOrderError: On the first problem found
    """
    oid = request.order_id
    kind = request.kind

    if not is_real_number(request.quantity) or not math.isfinite(request.quantity):
        raise InvalidOrderError(f"quantity must be a finite number, got {request.quantity!r}", oid)
    if request.quantity <= 0:
        raise InvalidOrderError(f"quantity must be positive, got {request.quantity}", oid)

    if kind == OrderKind.MARKET:
        if request.limit_price is not None or request.stop_price is not None:
            raise InvalidOrderError("market orders take no limit or stop price", oid)
    elif kind == OrderKind.LIMIT:
        if not _positive(request.limit_price):
            raise InvalidOrderError(f"limit order needs a positive limit_price, got {request.limit_price}", oid)
        if request.stop_price is not None:
            raise InvalidOrderError("limit orders take no stop price", oid)
    elif kind in (OrderKind.STOP_LOSS, OrderKind.TAKE_PROFIT):
        if not _positive(request.stop_price):
            raise InvalidOrderError(f"{kind.value} order needs a positive stop_price, got {request.stop_price}", oid)
    elif kind == OrderKind.TRAILING_STOP:
        pct = request.trail_percent
        if pct is None or not math.isfinite(pct) or not 0 < pct < 100:
            raise InvalidOrderError(f"trailing stop needs trail_percent in (0, 100), got {pct}", oid)
        if request.stop_price is not None and not _positive(request.stop_price):
            raise InvalidOrderError(f"stop_price must be positive, got {request.stop_price}", oid)

    if kind != OrderKind.TRAILING_STOP and request.trail_percent is not None:
        raise InvalidOrderError("trail_percent is only valid on trailing stops", oid)

    has_bracket = (
        request.stop_loss is not None
        or request.take_profit is not None
        or request.trailing_stop_percent is not None
    )
    if not has_bracket:
        return

    if kind.is_triggered:
        raise InvalidOrderError("bracket exits are only valid on market and limit entries", oid)
    for name in ("stop_loss", "take_profit"):
        value = getattr(request, name)
        if value is not None and not _positive(value):
            raise InvalidOrderError(f"{name} must be positive, got {value}", oid)
    pct = request.trailing_stop_percent
    if pct is not None and (not math.isfinite(pct) or not 0 < pct < 100):
        raise InvalidOrderError(f"trailing_stop_percent must be in (0, 100), got {pct}", oid)

    if request.stop_loss is not None and request.take_profit is not None:
        if request.side == OrderSide.BUY and not request.stop_loss < request.take_profit:
            raise InvalidOrderError("long bracket needs stop_loss < take_profit", oid)
        if request.side == OrderSide.SELL and not request.stop_loss > request.take_profit:
            raise InvalidOrderError("short bracket needs stop_loss > take_profit", oid)

    if kind == OrderKind.LIMIT:
        limit = request.limit_price
        below, above = (request.stop_loss, request.take_profit)
        if request.side == OrderSide.SELL:
            below, above = above, below
        if below is not None and not below < limit:
            raise InvalidOrderError(f"bracket level {below} must be below limit {limit}", oid)
        if above is not None and not above > limit:
            raise InvalidOrderError(f"bracket level {above} must be above limit {limit}", oid)


class OrderBook:
    """
    Live orders of one run, in insertion order.
    """

    def __init__(self):
        self._live: Dict[OrderId, Order] = {}
        self._archive: List[Order] = []
        self._known_ids: set[OrderId] = set()
        self._order_counter = 0
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._live

    @property
    def archive(self) -> Tuple[Order, ...]:
        """Terminal orders in the order they left the book."""
        return tuple(self._archive)

    def live_orders(self) -> List[Order]:
        """Live orders in insertion order (list is a copy, orders are not)."""
        return list(self._live.values())

    def get(self, order_id: OrderId) -> Optional[Order]:
        return self._live.get(order_id)

    def _next_order_id(self) -> OrderId:
        """Generate deterministic sequential order ID."""
        while True:
            self._order_counter += 1
            order_id = f"ord_{self._order_counter:06d}"
            if order_id not in self._known_ids:
                return order_id

    def _child_order_id(self, parent_id: OrderId, suffix: str) -> OrderId:
        """`<parent>-<suffix>`, numbered on when that id is already taken."""
        order_id = f"{parent_id}-{suffix}"
        n = 1
        while order_id in self._known_ids:
            n += 1
            order_id = f"{parent_id}-{suffix}-{n}"
        return order_id

    def _insert(self, order: Order) -> Order:
        if order.order_id in self._known_ids:
            raise InvalidOrderError(f"duplicate order id {order.order_id}", order.order_id)
        self._sequence += 1
        order.sequence = self._sequence
        self._live[order.order_id] = order
        self._known_ids.add(order.order_id)
        return order

    # ─────────────────────────────────────────────────────────────────────
    # Intents
    # ─────────────────────────────────────────────────────────────────────

    def submit(self, request: OrderRequest, timestamp: Optional[datetime] = None) -> Order:
        """
        Validate a request and add it to the book.

        Raises:
            InvalidOrderError: If the request is invalid or the id is taken
        """
        validate_order_request(request)
        if request.order_id is not None and request.order_id in self._known_ids:
            raise InvalidOrderError(f"duplicate order id {request.order_id}", request.order_id)

        order = Order(
            order_id=request.order_id or self._next_order_id(),
            side=request.side,
            kind=request.kind,
            quantity=float(request.quantity),
            limit_price=request.limit_price,
            stop_price=request.stop_price,
            trail_percent=request.trail_percent,
            reduce_only=request.reduce_only,
            stop_loss=request.stop_loss,
            take_profit=request.take_profit,
            trailing_stop_percent=request.trailing_stop_percent,
            expires_at=request.expires_at,
            created_at=timestamp,
            tag=request.tag,
        )
        return self._insert(order)

    def cancel(self, order_id: OrderId) -> Order:
        """
        Cancel a live order.

        Raises:
            UnknownOrderIdError: If the order is missing or terminal
        """
        order = self._live.get(order_id)
        if order is None:
            raise UnknownOrderIdError(order_id)
        order.transition(OrderStatus.CANCELLED)
        self.finalize(order)
        return order

    def modify(self, order_id: OrderId, price: float) -> Order:
        """
        Move a live order's working price.

        - LIMIT: limit_price
        - STOP_LOSS / TAKE_PROFIT: stop_price
        - TRAILING_STOP: stop_price, only in the tightening direction

        Raises:
            UnknownOrderIdError: If the order is missing or terminal
            InvalidOrderError: If the price is invalid for this order
        """
        order = self._live.get(order_id)
        if order is None:
            raise UnknownOrderIdError(order_id)
        if not _positive(price):
            raise InvalidOrderError(f"modify price must be positive, got {price}", order_id)

        if order.kind == OrderKind.MARKET:
            raise InvalidOrderError("market orders cannot be modified", order_id)
        if order.kind == OrderKind.LIMIT:
            order.limit_price = price
        elif order.kind == OrderKind.TRAILING_STOP:
            current = order.stop_price
            relaxes = current is not None and (
                (order.side == OrderSide.SELL and price < current)
                or (order.side == OrderSide.BUY and price > current)
            )
            if relaxes:
                raise InvalidOrderError(
                    f"trailing stop cannot be relaxed from {current} to {price}", order_id
                )
            order.stop_price = price
        else:
            order.stop_price = price
        return order

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle helpers used by the exchange
    # ─────────────────────────────────────────────────────────────────────

    def finalize(self, order: Order) -> None:
        """Move a terminal order from the live set to the archive."""
        if order.status.is_terminal and order.order_id in self._live:
            del self._live[order.order_id]
            self._archive.append(order)

    def close(self, order: Order, status: OrderStatus) -> None:
        """Transition a live order to a terminal status and archive it."""
        order.transition(status)
        self.finalize(order)

    def expire_due(self, timestamp: datetime) -> List[OrderId]:
        """Expire live orders whose expires_at is at or before `timestamp`."""
        expired = []
        for order in self.live_orders():
            if order.expires_at is not None and order.expires_at <= timestamp:
                self.close(order, OrderStatus.EXPIRED)
                expired.append(order.order_id)
        return expired

    def expire_reduce_only(self) -> List[OrderId]:
        """Expire every live reduce-only order (called when flat)."""
        expired = []
        for order in self.live_orders():
            if order.reduce_only:
                self.close(order, OrderStatus.EXPIRED)
                expired.append(order.order_id)
        return expired

    def cancel_oco_siblings(self, order: Order) -> List[OrderId]:
        """Cancel the live members of `order`'s OCO group other than itself."""
        if order.oco_group is None:
            return []
        cancelled = []
        for other in self.live_orders():
            if other.oco_group == order.oco_group and other.order_id != order.order_id:
                self.close(other, OrderStatus.CANCELLED)
                cancelled.append(other.order_id)
        return cancelled

    def cancel_all(self) -> List[OrderId]:
        cancelled = []
        for order in self.live_orders():
            self.close(order, OrderStatus.CANCELLED)
            cancelled.append(order.order_id)
        return cancelled

    def spawn_bracket(self, parent: Order, timestamp: Optional[datetime] = None) -> List[Order]:
        """
        Create the reduce-only exits attached to an entry.

        Children are opposite in side, sized at the parent quantity and
        share one OCO group named after the parent. A child id already used
        by another order gets a numeric suffix (`<parent>-sl-2`).
        """
        exit_side = parent.side.opposite
        specs = []
        if parent.stop_loss is not None:
            specs.append(("sl", OrderKind.STOP_LOSS, parent.stop_loss, None))
        if parent.take_profit is not None:
            specs.append(("tp", OrderKind.TAKE_PROFIT, parent.take_profit, None))
        if parent.trailing_stop_percent is not None:
            specs.append(("ts", OrderKind.TRAILING_STOP, None, parent.trailing_stop_percent))

        children = []
        for suffix, kind, stop_price, trail in specs:
            child = Order(
                order_id=self._child_order_id(parent.order_id, suffix),
                side=exit_side,
                kind=kind,
                quantity=parent.quantity,
                stop_price=stop_price,
                trail_percent=trail,
                reduce_only=True,
                created_at=timestamp,
                parent_id=parent.order_id,
                oco_group=parent.order_id,
                tag=parent.tag,
            )
            children.append(self._insert(child))
        if children:
            logger.debug(
                "Spawned bracket for %s: %s", parent.order_id, [c.order_id for c in children]
            )
        return children
