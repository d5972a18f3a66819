"""
Order book tests: validation, ids, cancel/modify, expiry, brackets.
"""

import numpy as np
import pytest

from tradesim.backtest.sim.errors import InvalidOrderError, OrderStateError, UnknownOrderIdError
from tradesim.backtest.sim.order_book import OrderBook, validate_order_request
from tradesim.backtest.sim.types import (
    Order,
    OrderKind,
    OrderRequest,
    OrderSide,
    OrderStatus,
)

from tests.factories import ts


def _req(side=OrderSide.BUY, kind=OrderKind.MARKET, qty=1.0, **kwargs) -> OrderRequest:
    return OrderRequest(side=side, kind=kind, quantity=qty, **kwargs)


@pytest.fixture
def book() -> OrderBook:
    return OrderBook()


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────

class TestValidation:
    @pytest.mark.parametrize("qty", [0.0, -1.0, float("nan"), float("inf")])
    def test_bad_quantity(self, qty):
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(qty=qty))

    def test_quantity_type(self, book):
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(qty=True))
        order = book.submit(_req(qty=np.float64(2.0)))
        assert order.quantity == 2.0
        assert type(order.quantity) is float

    def test_limit_needs_positive_price(self):
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(kind=OrderKind.LIMIT))
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(kind=OrderKind.LIMIT, limit_price=-5.0))

    def test_market_rejects_prices(self):
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(limit_price=100.0))

    def test_stop_needs_stop_price(self):
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(side=OrderSide.SELL, kind=OrderKind.STOP_LOSS))
        validate_order_request(_req(side=OrderSide.SELL, kind=OrderKind.STOP_LOSS, stop_price=90.0))

    @pytest.mark.parametrize("pct", [None, 0.0, 100.0, -3.0])
    def test_trailing_percent_range(self, pct):
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(side=OrderSide.SELL, kind=OrderKind.TRAILING_STOP, trail_percent=pct))

    def test_trail_percent_only_on_trailing(self):
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(trail_percent=5.0))

    def test_bracket_ordering_long_and_short(self):
        validate_order_request(_req(stop_loss=95.0, take_profit=110.0))
        validate_order_request(_req(side=OrderSide.SELL, stop_loss=110.0, take_profit=95.0))
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(stop_loss=110.0, take_profit=95.0))
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(side=OrderSide.SELL, stop_loss=95.0, take_profit=110.0))

    def test_bracket_levels_relative_to_limit(self):
        validate_order_request(_req(kind=OrderKind.LIMIT, limit_price=100.0, stop_loss=95.0, take_profit=105.0))
        with pytest.raises(InvalidOrderError):
            validate_order_request(_req(kind=OrderKind.LIMIT, limit_price=100.0, stop_loss=101.0))
        with pytest.raises(InvalidOrderError):
            validate_order_request(
                _req(side=OrderSide.SELL, kind=OrderKind.LIMIT, limit_price=100.0, take_profit=101.0)
            )

    def test_bracket_not_allowed_on_exit_kinds(self):
        with pytest.raises(InvalidOrderError):
            validate_order_request(
                _req(side=OrderSide.SELL, kind=OrderKind.STOP_LOSS, stop_price=90.0, take_profit=80.0)
            )

    def test_error_carries_client_id(self):
        with pytest.raises(InvalidOrderError) as exc_info:
            validate_order_request(_req(qty=0.0, order_id="abc"))
        assert exc_info.value.order_id == "abc"


# ─────────────────────────────────────────────────────────────────────────────
# Ids and lifecycle
# ─────────────────────────────────────────────────────────────────────────────

class TestSubmit:
    def test_sequential_ids(self, book):
        first = book.submit(_req(), ts(0))
        second = book.submit(_req(), ts(0))
        assert first.order_id == "ord_000001"
        assert second.order_id == "ord_000002"
        assert first.sequence < second.sequence
        assert first.created_at == ts(0)
        assert len(book) == 2

    def test_client_id_and_duplicates(self, book):
        book.submit(_req(order_id="ord_000001"))
        # Generated ids skip ones the strategy already took
        generated = book.submit(_req())
        assert generated.order_id == "ord_000002"
        with pytest.raises(InvalidOrderError):
            book.submit(_req(order_id="ord_000001"))

    def test_terminal_id_stays_taken(self, book):
        order = book.submit(_req(order_id="x"))
        book.cancel(order.order_id)
        with pytest.raises(InvalidOrderError):
            book.submit(_req(order_id="x"))

    def test_live_orders_in_insertion_order(self, book):
        ids = [book.submit(_req()).order_id for _ in range(3)]
        assert [o.order_id for o in book.live_orders()] == ids


class TestCancelModify:
    def test_cancel_archives(self, book):
        order = book.submit(_req(kind=OrderKind.LIMIT, limit_price=90.0))
        book.cancel(order.order_id)
        assert order.status == OrderStatus.CANCELLED
        assert order.order_id not in book
        assert book.archive == (order,)

    def test_cancel_unknown_and_twice(self, book):
        with pytest.raises(UnknownOrderIdError):
            book.cancel("missing")
        order = book.submit(_req())
        book.cancel(order.order_id)
        with pytest.raises(UnknownOrderIdError):
            book.cancel(order.order_id)

    def test_modify_limit_and_stop(self, book):
        lim = book.submit(_req(kind=OrderKind.LIMIT, limit_price=90.0))
        stop = book.submit(_req(side=OrderSide.SELL, kind=OrderKind.STOP_LOSS, stop_price=80.0))
        book.modify(lim.order_id, 95.0)
        book.modify(stop.order_id, 85.0)
        assert lim.limit_price == 95.0
        assert stop.stop_price == 85.0

    def test_modify_rejections(self, book):
        mkt = book.submit(_req())
        lim = book.submit(_req(kind=OrderKind.LIMIT, limit_price=90.0))
        with pytest.raises(InvalidOrderError):
            book.modify(mkt.order_id, 100.0)
        with pytest.raises(InvalidOrderError):
            book.modify(lim.order_id, 0.0)
        with pytest.raises(UnknownOrderIdError):
            book.modify("missing", 100.0)

    def test_trailing_modify_only_tightens(self, book):
        sell = book.submit(_req(side=OrderSide.SELL, kind=OrderKind.TRAILING_STOP, trail_percent=10.0, stop_price=90.0))
        book.modify(sell.order_id, 95.0)
        assert sell.stop_price == 95.0
        with pytest.raises(InvalidOrderError):
            book.modify(sell.order_id, 94.0)

        buy = book.submit(_req(kind=OrderKind.TRAILING_STOP, trail_percent=10.0, stop_price=110.0))
        book.modify(buy.order_id, 105.0)
        with pytest.raises(InvalidOrderError):
            book.modify(buy.order_id, 106.0)


class TestHousekeeping:
    def test_expire_due_is_inclusive(self, book):
        early = book.submit(_req(kind=OrderKind.LIMIT, limit_price=90.0, expires_at=ts(2)))
        late = book.submit(_req(kind=OrderKind.LIMIT, limit_price=90.0, expires_at=ts(3)))
        assert book.expire_due(ts(1)) == []
        assert book.expire_due(ts(2)) == [early.order_id]
        assert early.status == OrderStatus.EXPIRED
        assert late.is_live

    def test_expire_reduce_only(self, book):
        ro = book.submit(_req(side=OrderSide.SELL, reduce_only=True))
        plain = book.submit(_req())
        assert book.expire_reduce_only() == [ro.order_id]
        assert plain.is_live

    def test_spawn_bracket_and_oco(self, book):
        parent = book.submit(_req(stop_loss=95.0, take_profit=110.0, trailing_stop_percent=5.0, tag="t"))
        children = book.spawn_bracket(parent, ts(1))

        assert [c.order_id for c in children] == [
            "ord_000001-sl", "ord_000001-tp", "ord_000001-ts",
        ]
        for child in children:
            assert child.side == OrderSide.SELL
            assert child.reduce_only
            assert child.quantity == parent.quantity
            assert child.oco_group == parent.order_id
            assert child.parent_id == parent.order_id
            assert child.tag == "t"
        assert children[2].trail_percent == 5.0

        sl = children[0]
        sl.record_fill(sl.quantity)
        book.finalize(sl)
        cancelled = book.cancel_oco_siblings(sl)
        assert cancelled == ["ord_000001-tp", "ord_000001-ts"]
        assert all(c.status == OrderStatus.CANCELLED for c in children[1:])

    def test_bracket_child_id_never_replaces_existing_order(self, book):
        user_order = book.submit(_req(
            side=OrderSide.SELL, kind=OrderKind.LIMIT, limit_price=200.0, order_id="X-sl",
        ))
        parent = book.submit(_req(stop_loss=90.0, order_id="X"))
        children = book.spawn_bracket(parent, ts(1))

        assert [c.order_id for c in children] == ["X-sl-2"]
        assert book.get("X-sl") is user_order
        assert len(book) == 3

        user_order.record_fill(user_order.quantity)
        book.finalize(user_order)
        assert book.cancel_oco_siblings(user_order) == []
        assert children[0].is_live

    def test_insert_refuses_taken_id(self, book):
        book.submit(_req(order_id="dup"))
        with pytest.raises(InvalidOrderError):
            book._insert(Order(order_id="dup", side=OrderSide.BUY, kind=OrderKind.MARKET, quantity=1.0))
        assert len(book) == 1

    def test_cancel_all(self, book):
        book.submit(_req())
        book.submit(_req())
        assert book.cancel_all() == ["ord_000001", "ord_000002"]
        assert len(book) == 0


# ─────────────────────────────────────────────────────────────────────────────
# Order record
# ─────────────────────────────────────────────────────────────────────────────

class TestOrderRecord:
    def test_partial_then_full(self):
        order = Order(order_id="o", side=OrderSide.BUY, kind=OrderKind.MARKET, quantity=3.0)
        order.record_fill(1.0)
        assert order.status == OrderStatus.PARTIALLY_FILLED
        assert order.remaining_quantity == 2.0
        order.record_fill(2.0)
        assert order.status == OrderStatus.FILLED

    def test_overfill_and_terminal_transitions_raise(self):
        order = Order(order_id="o", side=OrderSide.BUY, kind=OrderKind.MARKET, quantity=1.0)
        with pytest.raises(OrderStateError):
            order.record_fill(2.0)
        order.record_fill(1.0)
        with pytest.raises(OrderStateError):
            order.transition(OrderStatus.CANCELLED)

    def test_sell_trailing_ratchet_is_monotonic(self):
        order = Order(
            order_id="t", side=OrderSide.SELL, kind=OrderKind.TRAILING_STOP,
            quantity=1.0, trail_percent=10.0,
        )
        assert order.ratchet(100.0)
        assert order.stop_price == pytest.approx(90.0)
        assert not order.ratchet(95.0)
        assert order.stop_price == pytest.approx(90.0)
        assert order.ratchet(120.0)
        assert order.stop_price == pytest.approx(108.0)

    def test_buy_trailing_ratchet_mirrors(self):
        order = Order(
            order_id="t", side=OrderSide.BUY, kind=OrderKind.TRAILING_STOP,
            quantity=1.0, trail_percent=10.0,
        )
        order.ratchet(100.0)
        assert order.stop_price == pytest.approx(110.0)
        assert not order.ratchet(105.0)
        order.ratchet(80.0)
        assert order.stop_price == pytest.approx(88.0)

    def test_ratchet_ignores_other_kinds(self):
        order = Order(order_id="s", side=OrderSide.SELL, kind=OrderKind.STOP_LOSS, quantity=1.0, stop_price=90.0)
        assert not order.ratchet(200.0)
        assert order.stop_price == 90.0
