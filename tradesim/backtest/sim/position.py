"""
Position tracker: exposure and P&L under increase, decrease and flip.

- Increase (same side or from flat): average entry is the quantity-weighted
  average of the old and new legs.
- Decrease: realized += (fill - avg) x closed x sign; average unchanged.
- Flip: close the whole existing quantity, then open the residual at the
  fill price on the other side.
- Unrealized P&L is (mark - avg) x quantity x sign, re-marked every close.

The tracker only talks to the order book through fills passed by value.
"""

from dataclasses import dataclass
from typing import Tuple

from .types import OrderSide, Position, PositionSide, QTY_EPSILON


@dataclass(frozen=True)
class PositionUpdate:
    """Effect of one fill on the position."""
    realized_pnl: float
    closed_quantity: float
    opened_quantity: float
    flipped: bool
    position: Position


class PositionTracker:
    """
    Maintains the single position of a run.

    Invariants:
    - quantity >= 0
    - side is FLAT iff quantity == 0 (and then average entry is 0)
    """

    def __init__(self, leverage: float = 1.0):
        self._leverage = leverage
        self._side = PositionSide.FLAT
        self._quantity = 0.0
        self._avg_entry = 0.0
        self._realized_pnl = 0.0
        self._unrealized_pnl = 0.0
        self._mark_price = 0.0

    # ─────────────────────────────────────────────────────────────────────
    # Read access
    # ─────────────────────────────────────────────────────────────────────

    @property
    def position(self) -> Position:
        return Position(
            side=self._side,
            quantity=self._quantity,
            average_entry_price=self._avg_entry,
            realized_pnl=self._realized_pnl,
            unrealized_pnl=self._unrealized_pnl,
            leverage=self._leverage,
        )

    @property
    def side(self) -> PositionSide:
        return self._side

    @property
    def quantity(self) -> float:
        return self._quantity

    @property
    def is_flat(self) -> bool:
        return self._side == PositionSide.FLAT

    @property
    def signed_quantity(self) -> float:
        return self._side.sign * self._quantity

    def split_fill(self, side: OrderSide, quantity: float) -> Tuple[float, float]:
        """
        Split a prospective fill into (closing, opening) quantities.

        Opening quantity is what increases exposure and needs margin.
        """
        if self.is_flat or self._side.sign == side.sign:
            return 0.0, quantity
        closing = min(quantity, self._quantity)
        return closing, max(0.0, quantity - closing)

    def reducible_quantity(self, side: OrderSide) -> float:
        """How much a `side` fill can reduce without flipping."""
        if self.is_flat or self._side.sign == side.sign:
            return 0.0
        return self._quantity

    # ─────────────────────────────────────────────────────────────────────
    # Mutation
    # ─────────────────────────────────────────────────────────────────────

    def apply_fill(self, side: OrderSide, quantity: float, price: float) -> PositionUpdate:
        """
        Apply a fill and return its realized P&L effect.

        Args:
            side: Fill side
            quantity: Filled quantity (> 0)
            price: Fill price (slippage included)
        """
        if quantity <= 0:
            raise ValueError(f"Fill quantity must be positive, got {quantity}")

        realized = 0.0
        closed = 0.0
        opened = 0.0
        flipped = False

        if self.is_flat or self._side.sign == side.sign:
            new_qty = self._quantity + quantity
            self._avg_entry = (self._avg_entry * self._quantity + price * quantity) / new_qty
            self._quantity = new_qty
            self._side = PositionSide.LONG if side == OrderSide.BUY else PositionSide.SHORT
            opened = quantity
        else:
            closed = min(quantity, self._quantity)
            realized = (price - self._avg_entry) * closed * self._side.sign
            self._realized_pnl += realized
            self._quantity -= closed
            residual = quantity - closed

            if self._quantity <= QTY_EPSILON:
                self._quantity = 0.0
                self._avg_entry = 0.0
                self._side = PositionSide.FLAT
                if residual > QTY_EPSILON:
                    self._side = PositionSide.LONG if side == OrderSide.BUY else PositionSide.SHORT
                    self._quantity = residual
                    self._avg_entry = price
                    opened = residual
                    flipped = True

        self.mark(price)
        return PositionUpdate(
            realized_pnl=realized,
            closed_quantity=closed,
            opened_quantity=opened,
            flipped=flipped,
            position=self.position,
        )

    def mark(self, price: float) -> float:
        """Re-mark unrealized P&L at `price` and return it."""
        self._mark_price = price
        if self.is_flat:
            self._unrealized_pnl = 0.0
        else:
            self._unrealized_pnl = (price - self._avg_entry) * self._quantity * self._side.sign
        return self._unrealized_pnl

    def check_invariants(self) -> list[str]:
        errors = []
        if self._quantity < 0:
            errors.append(f"Position quantity negative: {self._quantity}")
        if (self._side == PositionSide.FLAT) != (self._quantity == 0):
            errors.append(f"Side {self._side.value} inconsistent with quantity {self._quantity}")
        return errors
