"""
Position tracker tests: increase, decrease, flip and marking.
"""

import pytest

from tradesim.backtest.sim.position import PositionTracker
from tradesim.backtest.sim.types import OrderSide, PositionSide


@pytest.fixture
def tracker() -> PositionTracker:
    return PositionTracker()


class TestIncrease:
    def test_open_from_flat(self, tracker):
        update = tracker.apply_fill(OrderSide.BUY, 2.0, 100.0)
        assert update.opened_quantity == 2.0
        assert update.realized_pnl == 0.0
        pos = tracker.position
        assert pos.side == PositionSide.LONG
        assert pos.quantity == 2.0
        assert pos.average_entry_price == 100.0

    def test_weighted_average(self, tracker):
        tracker.apply_fill(OrderSide.BUY, 1.0, 100.0)
        tracker.apply_fill(OrderSide.BUY, 3.0, 120.0)
        assert tracker.position.average_entry_price == pytest.approx(115.0)
        assert tracker.quantity == 4.0

    def test_short_side(self, tracker):
        tracker.apply_fill(OrderSide.SELL, 2.0, 50.0)
        assert tracker.side == PositionSide.SHORT
        assert tracker.signed_quantity == -2.0
        assert tracker.mark(40.0) == pytest.approx(20.0)


class TestDecrease:
    def test_partial_close_realizes(self, tracker):
        tracker.apply_fill(OrderSide.BUY, 4.0, 100.0)
        update = tracker.apply_fill(OrderSide.SELL, 1.0, 110.0)
        assert update.realized_pnl == pytest.approx(10.0)
        assert update.closed_quantity == 1.0
        assert tracker.quantity == 3.0
        assert tracker.position.average_entry_price == 100.0

    def test_full_close_resets(self, tracker):
        tracker.apply_fill(OrderSide.SELL, 2.0, 100.0)
        update = tracker.apply_fill(OrderSide.BUY, 2.0, 90.0)
        assert update.realized_pnl == pytest.approx(20.0)
        pos = tracker.position
        assert pos.is_flat
        assert pos.quantity == 0.0
        assert pos.average_entry_price == 0.0
        assert pos.unrealized_pnl == 0.0
        assert pos.realized_pnl == pytest.approx(20.0)


class TestFlip:
    def test_long_to_short(self, tracker):
        tracker.apply_fill(OrderSide.BUY, 10.0, 100.0)
        update = tracker.apply_fill(OrderSide.SELL, 15.0, 110.0)
        assert update.flipped
        assert update.realized_pnl == pytest.approx(100.0)
        assert update.closed_quantity == 10.0
        assert update.opened_quantity == 5.0
        pos = tracker.position
        assert pos.side == PositionSide.SHORT
        assert pos.quantity == pytest.approx(5.0)
        assert pos.average_entry_price == 110.0

    def test_split_fill(self, tracker):
        assert tracker.split_fill(OrderSide.BUY, 3.0) == (0.0, 3.0)
        tracker.apply_fill(OrderSide.BUY, 2.0, 100.0)
        assert tracker.split_fill(OrderSide.BUY, 1.0) == (0.0, 1.0)
        assert tracker.split_fill(OrderSide.SELL, 1.0) == (1.0, 0.0)
        assert tracker.split_fill(OrderSide.SELL, 5.0) == (2.0, 3.0)

    def test_reducible_quantity(self, tracker):
        assert tracker.reducible_quantity(OrderSide.SELL) == 0.0
        tracker.apply_fill(OrderSide.BUY, 2.0, 100.0)
        assert tracker.reducible_quantity(OrderSide.SELL) == 2.0
        assert tracker.reducible_quantity(OrderSide.BUY) == 0.0


class TestMark:
    def test_unrealized_long_and_short(self, tracker):
        tracker.apply_fill(OrderSide.BUY, 2.0, 100.0)
        assert tracker.mark(105.0) == pytest.approx(10.0)
        tracker.apply_fill(OrderSide.SELL, 4.0, 105.0)
        assert tracker.mark(100.0) == pytest.approx(10.0)

    def test_rejects_non_positive_quantity(self, tracker):
        with pytest.raises(ValueError):
            tracker.apply_fill(OrderSide.BUY, 0.0, 100.0)

    def test_invariants_hold(self, tracker):
        tracker.apply_fill(OrderSide.BUY, 1.0, 100.0)
        tracker.apply_fill(OrderSide.SELL, 1.0, 100.0)
        assert tracker.check_invariants() == []
