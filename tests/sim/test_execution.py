"""
Execution model tests: intrabar path, resolvers, slippage, fees, liquidity.
"""

import pytest

from tradesim.backtest.sim.execution.execution_model import ExecutionModel, ExecutionModelConfig
from tradesim.backtest.sim.execution.fee_model import FeeConfig, FeeModel
from tradesim.backtest.sim.execution.liquidity_model import LiquidityConfig, LiquidityModel
from tradesim.backtest.sim.execution.slippage_model import SlippageConfig, SlippageModel
from tradesim.backtest.sim.pricing.intrabar_path import (
    IntrabarPath,
    IntrabarPathConfig,
    IntrabarPolicy,
    Touch,
    first_touch,
)
from tradesim.backtest.sim.types import Order, OrderKind, OrderSide

from tests.factories import candle


def _order(kind, side=OrderSide.BUY, **kwargs) -> Order:
    return Order(order_id="o", side=side, kind=kind, quantity=1.0, **kwargs)


@pytest.fixture
def model() -> ExecutionModel:
    return ExecutionModel(ExecutionModelConfig(
        slippage=SlippageConfig(mode="fixed", fixed_bps=10.0),
        fees=FeeConfig(maker_rate=0.0002, taker_rate=0.001),
    ))


# ─────────────────────────────────────────────────────────────────────────────
# Intrabar path
# ─────────────────────────────────────────────────────────────────────────────

class TestIntrabarPath:
    def test_directional_bullish_and_bearish(self):
        path = IntrabarPath()
        bull = [p.label for p in path.generate_path(candle(0, 100, 110, 95, 105))]
        bear = [p.label for p in path.generate_path(candle(0, 105, 110, 95, 100))]
        assert bull == ["open", "low", "high", "close"]
        assert bear == ["open", "high", "low", "close"]

    def test_doji_counts_as_bullish(self):
        path = IntrabarPath().generate_path(candle(0, 100, 101, 99, 100))
        assert path[1].label == "low"

    @pytest.mark.parametrize("policy, second", [
        (IntrabarPolicy.LOW_FIRST, "low"),
        (IntrabarPolicy.HIGH_FIRST, "high"),
    ])
    def test_fixed_policies(self, policy, second):
        path = IntrabarPath(IntrabarPathConfig(policy=policy))
        for c in (candle(0, 100, 110, 95, 105), candle(0, 105, 110, 95, 100)):
            assert path.generate_path(c)[1].label == second

    def test_sequence_numbers(self):
        path = IntrabarPath().generate_path(candle(0, 100, 110, 95, 105))
        assert [p.sequence for p in path] == [0, 1, 2, 3]
        assert [p.price for p in path] == [100, 95, 110, 105]

    def test_first_touch(self):
        path = IntrabarPath().generate_path(candle(0, 100, 110, 95, 105))
        assert first_touch(path, 96.0, Touch.DOWN) == 1
        assert first_touch(path, 108.0, Touch.UP) == 2
        assert first_touch(path, 120.0, Touch.UP) is None
        assert first_touch(path, 101.0, Touch.DOWN, start=2) is None


# ─────────────────────────────────────────────────────────────────────────────
# Resolvers
# ─────────────────────────────────────────────────────────────────────────────

class TestResolvers:
    def test_market_at_start_point(self, model):
        path = model.generate_path(candle(0, 100, 110, 95, 105))
        trigger = model.resolve(_order(OrderKind.MARKET), path)
        assert trigger.index == 0
        assert trigger.base_price == 100
        spawned = model.resolve(_order(OrderKind.MARKET), path, start=2, activation_price=110.0)
        assert spawned.base_price == 110

    def test_limit_touch_is_maker(self, model):
        path = model.generate_path(candle(0, 100, 110, 95, 105))
        trigger = model.resolve(_order(OrderKind.LIMIT, limit_price=97.0), path)
        assert trigger.index == 1
        assert trigger.base_price == 97.0
        assert model.is_maker(_order(OrderKind.LIMIT, limit_price=97.0), trigger.base_price)

    def test_limit_gap_gets_better_price(self, model):
        path = model.generate_path(candle(0, 90, 95, 88, 92))
        buy = model.resolve(_order(OrderKind.LIMIT, limit_price=97.0), path)
        assert buy.base_price == 90
        assert not model.is_maker(_order(OrderKind.LIMIT, limit_price=97.0), buy.base_price)
        assert buy.gapped

        path = model.generate_path(candle(0, 110, 112, 108, 111))
        sell = model.resolve(_order(OrderKind.LIMIT, side=OrderSide.SELL, limit_price=105.0), path)
        assert sell.base_price == 110

    def test_limit_not_reached(self, model):
        path = model.generate_path(candle(0, 100, 110, 95, 105))
        assert model.resolve(_order(OrderKind.LIMIT, limit_price=90.0), path) is None

    def test_spawned_stop_beyond_activation_executes_there(self, model):
        # A sell stop above the parent's fill price is already breached
        path = model.generate_path(candle(0, 100, 101, 99, 100))
        order = _order(OrderKind.STOP_LOSS, side=OrderSide.SELL, stop_price=105.0)
        trigger = model.resolve(order, path, start=0, activation_price=100.0)
        assert trigger.index == 0
        assert trigger.base_price == 100.0
        assert trigger.gapped

    def test_spawned_stop_waits_for_level(self, model):
        path = model.generate_path(candle(0, 100, 110, 95, 105))
        order = _order(OrderKind.STOP_LOSS, side=OrderSide.SELL, stop_price=97.0)
        trigger = model.resolve(order, path, start=0, activation_price=100.0)
        assert trigger.index == 1
        assert trigger.base_price == 97.0
        assert not trigger.gapped
        # Starting after the low, the level is never reached again
        assert model.resolve(order, path, start=2, activation_price=110.0) is None

    def test_spawned_limit_uses_activation_price(self, model):
        path = model.generate_path(candle(0, 90, 95, 88, 92))
        order = _order(OrderKind.LIMIT, side=OrderSide.SELL, limit_price=85.0)
        trigger = model.resolve(order, path, start=0, activation_price=90.0)
        assert trigger.base_price == 90.0
        assert trigger.gapped

    def test_stop_loss_sell(self, model):
        path = model.generate_path(candle(0, 100, 110, 95, 105))
        trigger = model.resolve(_order(OrderKind.STOP_LOSS, side=OrderSide.SELL, stop_price=96.0), path)
        assert trigger.index == 1
        assert trigger.base_price == 96.0
        assert not model.is_maker(_order(OrderKind.STOP_LOSS, side=OrderSide.SELL, stop_price=96.0), 96.0)

    def test_stop_gap_fills_at_open(self, model):
        path = model.generate_path(candle(0, 90, 92, 89, 91))
        trigger = model.resolve(_order(OrderKind.STOP_LOSS, side=OrderSide.SELL, stop_price=95.0), path)
        assert trigger.index == 0
        assert trigger.base_price == 90
        assert trigger.gapped

    def test_take_profit_directions(self, model):
        path = model.generate_path(candle(0, 100, 110, 95, 105))
        long_tp = model.resolve(_order(OrderKind.TAKE_PROFIT, side=OrderSide.SELL, stop_price=108.0), path)
        short_tp = model.resolve(_order(OrderKind.TAKE_PROFIT, side=OrderSide.BUY, stop_price=97.0), path)
        assert long_tp.index == 2
        assert short_tp.index == 1

    def test_trailing_ratchets_along_path(self, model):
        order = _order(OrderKind.TRAILING_STOP, side=OrderSide.SELL, trail_percent=10.0, stop_price=90.0)
        path = model.generate_path(candle(0, 100, 120, 100, 118))
        assert model.resolve(order, path) is None
        assert order.stop_price == pytest.approx(108.0)

        path = model.generate_path(candle(1, 112, 113, 105, 106))
        trigger = model.resolve(order, path)
        assert trigger.index == 2
        assert trigger.base_price == pytest.approx(108.0)


# ─────────────────────────────────────────────────────────────────────────────
# Costs and caps
# ─────────────────────────────────────────────────────────────────────────────

class TestSlippage:
    def test_fixed_against_trader(self):
        slip = SlippageModel(SlippageConfig(mode="fixed", fixed_bps=10.0))
        assert slip.apply_slippage(100.0, OrderSide.BUY) == pytest.approx(100.1)
        assert slip.apply_slippage(100.0, OrderSide.SELL) == pytest.approx(99.9)

    def test_absolute_floors_at_zero(self):
        slip = SlippageModel(SlippageConfig(mode="absolute", absolute=2.0))
        assert slip.apply_slippage(100.0, OrderSide.BUY) == 102.0
        assert slip.apply_slippage(1.0, OrderSide.SELL) == 0.0

    def test_none(self):
        assert SlippageModel(SlippageConfig(mode="none")).apply_slippage(100.0, OrderSide.BUY) == 100.0

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            SlippageConfig(mode="random")
        with pytest.raises(ValueError):
            SlippageConfig(fixed_bps=-1.0)

    def test_limit_never_slips(self, model):
        order = _order(OrderKind.LIMIT, limit_price=97.0)
        path = model.generate_path(candle(0, 100, 110, 95, 105))
        price, slippage = model.execution_price(order, model.resolve(order, path))
        assert price == 97.0
        assert slippage == 0.0


class TestFees:
    def test_maker_only_for_limit(self):
        fees = FeeModel(FeeConfig(maker_rate=0.0002, taker_rate=0.001))
        assert fees.fee(OrderKind.LIMIT, 100.0, 2.0, True) == pytest.approx(0.04)
        assert fees.fee(OrderKind.LIMIT, 100.0, 2.0, False) == pytest.approx(0.2)
        assert fees.fee(OrderKind.STOP_LOSS, 100.0, 2.0, True) == pytest.approx(0.2)

    def test_is_maker_fill(self):
        fees = FeeModel()
        assert fees.is_maker_fill(OrderKind.LIMIT, 100.0, 100.0)
        assert not fees.is_maker_fill(OrderKind.LIMIT, 99.0, 100.0)
        assert not fees.is_maker_fill(OrderKind.MARKET, 100.0, None)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            FeeConfig(maker_rate=-0.001)


class TestLiquidity:
    def test_unbounded_by_default(self):
        liq = LiquidityModel()
        assert liq.get_max_fillable(50.0, candle(0, 1, 1, 1, 1, v=1.0)) == 50.0

    def test_caps(self):
        liq = LiquidityModel(LiquidityConfig(max_fill_per_candle=10.0, max_volume_fraction=0.1))
        assert liq.get_max_fillable(50.0, candle(0, 1, 1, 1, 1, v=40.0)) == pytest.approx(4.0)
        assert liq.get_max_fillable(50.0, candle(0, 1, 1, 1, 1, v=1_000.0)) == 10.0

    def test_zero_volume_does_not_bind(self):
        liq = LiquidityModel(LiquidityConfig(max_volume_fraction=0.1))
        assert liq.get_max_fillable(5.0, candle(0, 1, 1, 1, 1, v=0.0)) == 5.0

    @pytest.mark.parametrize("kwargs", [{"max_fill_per_candle": 0.0}, {"max_volume_fraction": 1.5}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            LiquidityConfig(**kwargs)


def test_fill_ids_are_sequential(model):
    assert model.next_fill_id() == "fill_000001"
    assert model.next_fill_id() == "fill_000002"
    assert ExecutionModel().next_fill_id() == "fill_000001"
