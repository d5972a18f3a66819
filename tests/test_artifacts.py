"""
Run artifact export tests.
"""

import pandas as pd
import pytest

from tradesim.backtest.artifacts import EquityWriter
from tradesim.backtest.artifacts.equity_writer import (
    EQUITY_COLUMNS,
    TRADE_COLUMNS,
    equity_curve_frame,
    trade_log_frame,
)
from tradesim.backtest.engine import run_backtest
from tradesim.backtest.sim.types import OrderSide

from tests.factories import ScriptedStrategy, candle, market


@pytest.fixture
def result(zero_cost):
    candles = [
        candle(0, 100, 101, 99, 100),
        candle(1, 100, 111, 99, 110),
        candle(2, 110, 111, 98, 99),
        candle(3, 99, 106, 98, 105),
    ]
    strategy = ScriptedStrategy({
        0: [market(OrderSide.BUY, 1.0)],
        2: [market(OrderSide.SELL, 1.0)],
    })
    return run_backtest(zero_cost, strategy, candles)


class TestFrames:
    def test_equity_frame_drawdown(self, result):
        df = equity_curve_frame(result)
        assert list(df.columns) == EQUITY_COLUMNS
        assert len(df) == 4
        # equity = cash + unrealized: the entry moves 100 of cash into the position
        assert df["equity"].tolist() == pytest.approx([10_000.0, 9_910.0, 9_899.0, 9_999.0])
        assert df["account_value"].tolist() == pytest.approx([10_000.0, 10_010.0, 9_999.0, 9_999.0])
        assert df["drawdown_abs"].tolist() == pytest.approx([0.0, 90.0, 101.0, 1.0])
        assert df["drawdown_pct"].iloc[2] == pytest.approx(101.0 / 10_000 * 100)

    def test_trade_frame(self, result):
        df = trade_log_frame(result)
        assert list(df.columns) == TRADE_COLUMNS
        assert df["side"].tolist() == ["buy", "sell"]
        assert df["realized_pnl_delta"].tolist() == pytest.approx([0.0, -1.0])

    def test_empty_frames_have_headers(self, zero_cost):
        empty = run_backtest(zero_cost, ScriptedStrategy(), [])
        assert list(equity_curve_frame(empty).columns) == EQUITY_COLUMNS
        assert trade_log_frame(empty).empty


class TestEquityWriter:
    def test_writes_both_files(self, result, tmp_path):
        run_dir = tmp_path / "runs" / "r1"
        paths = EquityWriter(run_dir).write(result)

        assert paths["equity_curve"] == run_dir / "equity_curve.csv"
        assert paths["trades"] == run_dir / "trades.csv"
        equity = pd.read_csv(paths["equity_curve"])
        trades = pd.read_csv(paths["trades"])
        assert len(equity) == 4
        assert equity["equity"].iloc[-1] == pytest.approx(result.final_equity)
        assert trades["fill_id"].tolist() == ["fill_000001", "fill_000002"]

    def test_custom_names_and_empty_run(self, zero_cost, tmp_path):
        empty = run_backtest(zero_cost, ScriptedStrategy(), [])
        paths = EquityWriter(tmp_path, equity_filename="eq.csv", trades_filename="tr.csv").write(empty)
        assert paths["equity_curve"].name == "eq.csv"
        assert paths["trades"].read_text().strip() == ",".join(TRADE_COLUMNS)
