"""
Simulated exchange: the per-run state bundle.

Owns one OrderBook, PositionTracker, Ledger and ExecutionModel plus the
trade log and rejection log. Nothing here is shared between runs.

process_candle() performs, in order:
1. Expire time-limited orders; ratchet trailing stops with the open
2. Resolve fills against the intrabar path in three phases:
   a. triggered exits (stop loss, take profit, trailing stop)
   b. entries (market, limit)
   c. bracket exits spawned by entries filled in (b), from the
      parent's fill point onward
   Within a phase: (first path point reached, insertion sequence)
3. Apply each fill to position and wallet atomically, log it
4. Mark to the close; margin call if account value <= maintenance margin

apply_intents() is step 5's second half: intents from the strategy
enter the book and are first eligible on the next candle.
"""

from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .errors import (
    BacktestError,
    InsufficientMarginError,
    InvalidOrderError,
    UnknownOrderIdError,
)
from .execution.execution_model import ExecutionModel, ExecutionModelConfig, Trigger
from .ledger import Ledger, LedgerConfig
from .order_book import OrderBook
from .position import PositionTracker
from .types import (
    Candle,
    CancelOrder,
    Fill,
    FillReason,
    ModifyOrder,
    Order,
    OrderIntent,
    OrderKind,
    OrderSide,
    OrderStatus,
    Position,
    PositionSide,
    QTY_EPSILON,
    Rejection,
    StepResult,
    SubmitOrder,
    WalletState,
)
from ...utils.logger import get_logger


class SimulatedExchange:
    """
    Deterministic single-instrument exchange for one run.
    """

    def __init__(
        self,
        initial_cash: float,
        ledger_config: Optional[LedgerConfig] = None,
        execution_config: Optional[ExecutionModelConfig] = None,
    ):
        self._ledger = Ledger(initial_cash, ledger_config)
        self._positions = PositionTracker(leverage=self._ledger.config.leverage)
        self._book = OrderBook()
        self._execution = ExecutionModel(execution_config)
        self._trade_log: List[Fill] = []
        self._rejections: List[Rejection] = []
        self._unreported: List[Rejection] = []
        self._liquidation_counter = 0
        self.logger = get_logger()

    # ─────────────────────────────────────────────────────────────────────
    # Read access
    # ─────────────────────────────────────────────────────────────────────

    @property
    def wallet(self) -> WalletState:
        return self._ledger.state

    @property
    def position(self) -> Position:
        return self._positions.position

    @property
    def trade_log(self) -> Tuple[Fill, ...]:
        return tuple(self._trade_log)

    @property
    def rejections(self) -> Tuple[Rejection, ...]:
        return tuple(self._rejections)

    @property
    def archived_orders(self) -> Tuple[Order, ...]:
        return self._book.archive

    def live_orders(self) -> Tuple[Order, ...]:
        """Copies of the live orders; mutating them does not affect the book."""
        return tuple(replace(o) for o in self._book.live_orders())

    def drain_unreported_rejections(self) -> Tuple[Rejection, ...]:
        """Rejections not yet shown to the strategy, clearing the queue."""
        pending = tuple(self._unreported)
        self._unreported.clear()
        return pending

    def check_invariants(self) -> list[str]:
        errors = self._ledger.check_invariants() + self._positions.check_invariants()
        for order in self._book.live_orders():
            if order.filled_quantity > order.quantity + QTY_EPSILON:
                errors.append(f"Order {order.order_id} overfilled: {order.filled_quantity} > {order.quantity}")
        return errors

    # ─────────────────────────────────────────────────────────────────────
    # Steps 1-4
    # ─────────────────────────────────────────────────────────────────────

    def process_candle(self, candle: Candle) -> StepResult:
        """
        Resolve all live orders against one (validated) candle.

        Args:
            candle: Current candle

        Returns:
            StepResult with fills, rejections, expiries and final state
        """
        step = StepResult(timestamp=candle.timestamp)

        # 1. Expiry and trailing-stop updates (favorable movement only)
        step.expired_order_ids.extend(self._book.expire_due(candle.timestamp))
        for order in self._book.live_orders():
            if order.kind == OrderKind.TRAILING_STOP:
                order.ratchet(candle.open)

        # 2-3. Fill phases
        path = self._execution.generate_path(candle)
        live = self._book.live_orders()
        exits = [(o, 0, candle.open) for o in live if o.kind.is_triggered]
        entries = [(o, 0, candle.open) for o in live if not o.kind.is_triggered]

        self._run_phase(exits, path, candle, step)
        spawned = self._run_phase(entries, path, candle, step)
        self._run_phase(spawned, path, candle, step)

        if self._positions.is_flat:
            step.expired_order_ids.extend(self._book.expire_reduce_only())

        # 4. Mark to market at the close
        self._positions.mark(candle.close)
        self._ledger.update_for_mark_price(self._positions.position, candle.close)

        if self._ledger.is_liquidatable:
            self._liquidate(candle, step)

        step.wallet = self._ledger.state
        step.position = self._positions.position
        return step

    def _run_phase(
        self,
        candidates: List[Tuple[Order, int, float]],
        path,
        candle: Candle,
        step: StepResult,
    ) -> List[Tuple[Order, int, float]]:
        """
        Resolve, order and execute one phase.

        Candidates are (order, first path index, activation price). Returns
        spawned exits in the same form: they start at the parent's fill
        point and are activated at the parent's execution price.
        """
        hits: List[Tuple[Trigger, Order]] = []
        for order, start, activation in candidates:
            trigger = self._execution.resolve(order, path, start, activation)
            if trigger is not None:
                hits.append((trigger, order))
        hits.sort(key=lambda hit: (hit[0].index, hit[1].sequence))

        spawned: List[Tuple[Order, int, float]] = []
        for trigger, order in hits:
            if not order.is_live:
                # Cancelled by an OCO sibling earlier in this phase
                continue
            children = self._execute(order, trigger, candle, step)
            spawned.extend((child, trigger.index, trigger.base_price) for child in children)
        return spawned

    def _execute(
        self,
        order: Order,
        trigger: Trigger,
        candle: Candle,
        step: StepResult,
    ) -> List[Order]:
        """Gate and apply one fill. Returns any bracket exits it spawned."""
        price, slippage = self._execution.execution_price(order, trigger)
        quantity = self._execution.max_fillable(order.remaining_quantity, candle)

        if order.reduce_only:
            reducible = self._positions.reducible_quantity(order.side)
            if reducible <= QTY_EPSILON:
                self._book.close(order, OrderStatus.EXPIRED)
                step.expired_order_ids.append(order.order_id)
                return []
            quantity = min(quantity, reducible)

        if quantity <= QTY_EPSILON:
            return []

        is_maker = self._execution.is_maker(order, price)
        fee = self._execution.fee(order, price, quantity, is_maker)
        closing, opening = self._positions.split_fill(order.side, quantity)

        try:
            self._ledger.ensure_margin(
                order.order_id,
                opening,
                price,
                fee,
                self._positions.position,
                closing_quantity=closing,
            )
        except InsufficientMarginError as e:
            self._book.close(order, OrderStatus.CANCELLED)
            step.rejections.append(self._record_rejection(e, order.order_id, "fill", candle.timestamp))
            return []

        # Position and cash move together; nothing observes the state in between
        update = self._positions.apply_fill(order.side, quantity, price)
        self._ledger.apply_fill(update.realized_pnl, fee, update.position, price)

        first_fill = order.filled_quantity == 0
        order.record_fill(quantity)

        fill = Fill(
            fill_id=self._execution.next_fill_id(),
            order_id=order.order_id,
            side=order.side,
            quantity=quantity,
            fill_price=price,
            fee=fee,
            timestamp=candle.timestamp,
            realized_pnl_delta=update.realized_pnl,
            kind=order.kind,
            reason=FillReason.for_kind(order.kind),
            is_maker=is_maker,
            slippage=slippage,
        )
        self._trade_log.append(fill)
        step.fills.append(fill)
        self.logger.trade(
            "ORDER_FILLED",
            order.order_id,
            order.side.value,
            quantity,
            price=price,
            pnl=update.realized_pnl if update.closed_quantity else None,
            fee=f"{fee:.6f}",
            kind=order.kind.value,
        )

        children: List[Order] = []
        if first_fill and order.has_bracket:
            children = self._book.spawn_bracket(order, candle.timestamp)
            for child in children:
                child.ratchet(price)

        if order.reduce_only and order.is_live and self._positions.is_flat:
            order.transition(OrderStatus.EXPIRED)
            step.expired_order_ids.append(order.order_id)

        self._book.finalize(order)
        if order.status.is_terminal:
            self._book.cancel_oco_siblings(order)
        return children

    def _liquidate(self, candle: Candle, step: StepResult) -> None:
        """Margin call: close the whole position at the close, cancel all orders."""
        position = self._positions.position
        side = OrderSide.SELL if position.side == PositionSide.LONG else OrderSide.BUY
        quantity = position.quantity
        price = candle.close
        account_before = self._ledger.account_value
        maintenance = self._ledger.maintenance_margin
        fee = self._execution.fee_model.fee(OrderKind.MARKET, price, quantity, False)

        update = self._positions.apply_fill(side, quantity, price)
        self._ledger.apply_fill(update.realized_pnl, fee, update.position, price)

        self._liquidation_counter += 1
        fill = Fill(
            fill_id=self._execution.next_fill_id(),
            order_id=f"liquidation_{self._liquidation_counter:06d}",
            side=side,
            quantity=quantity,
            fill_price=price,
            fee=fee,
            timestamp=candle.timestamp,
            realized_pnl_delta=update.realized_pnl,
            reason=FillReason.LIQUIDATION,
        )
        self._trade_log.append(fill)
        step.fills.append(fill)
        step.liquidated = True

        cancelled = self._book.cancel_all()
        self.logger.warning(
            f"Margin call at {candle.timestamp}: account value {account_before:.2f} <= "
            f"maintenance {maintenance:.2f}; closed {quantity:.6g} @ {price:.4f}, "
            f"cancelled {len(cancelled)} orders"
        )
        self.logger.trade(
            "LIQUIDATION", fill.order_id, side.value, quantity, price=price, pnl=update.realized_pnl
        )

    # ─────────────────────────────────────────────────────────────────────
    # Step 5: strategy intents
    # ─────────────────────────────────────────────────────────────────────

    def apply_intents(self, intents: Iterable[OrderIntent], timestamp: datetime) -> List[Rejection]:
        """
        Apply strategy intents to the book. Bad intents are rejected
        individually and recorded; the rest still apply.

        Returns:
            Rejections produced by this batch
        """
        rejected: List[Rejection] = []
        for intent in intents:
            try:
                if isinstance(intent, SubmitOrder):
                    action, order_id = "submit", intent.request.order_id
                    order = self._book.submit(intent.request, timestamp)
                    self.logger.debug(
                        f"Order accepted: {order.order_id} {order.side.value} "
                        f"{order.kind.value} qty={order.quantity}"
                    )
                elif isinstance(intent, CancelOrder):
                    action, order_id = "cancel", intent.order_id
                    self._book.cancel(intent.order_id)
                elif isinstance(intent, ModifyOrder):
                    action, order_id = "modify", intent.order_id
                    self._book.modify(intent.order_id, intent.price)
                else:
                    action, order_id = "submit", None
                    raise InvalidOrderError(f"Unsupported intent: {intent!r}")
            except (InvalidOrderError, UnknownOrderIdError) as e:
                rejected.append(self._record_rejection(e, order_id, action, timestamp))
        return rejected

    def _record_rejection(
        self,
        error: BacktestError,
        order_id: Optional[str],
        action: str,
        timestamp: datetime,
    ) -> Rejection:
        rejection = Rejection(
            order_id=getattr(error, "order_id", None) or order_id,
            code=error.code,
            reason=str(error),
            timestamp=timestamp,
            action=action,
        )
        self._rejections.append(rejection)
        self._unreported.append(rejection)
        self.logger.rejection(
            rejection.code.value, rejection.reason, order_id=rejection.order_id, action=action
        )
        return rejection
