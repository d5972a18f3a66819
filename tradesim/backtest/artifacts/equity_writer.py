"""
Run artifact export.

Writes, for one BacktestResult:
- equity_curve.csv: timestamp, equity, cash_balance, position_value,
  unrealized_pnl, account_value, drawdown_abs, drawdown_pct
- trades.csv: one row per fill, in trade-log order

Frames are built with pandas so callers can also use them directly
(equity_curve_frame / trade_log_frame).
"""

from pathlib import Path
from typing import Dict

import pandas as pd

from ..types import BacktestResult

EQUITY_COLUMNS = [
    "timestamp", "equity", "cash_balance", "position_value", "unrealized_pnl",
    "account_value", "drawdown_abs", "drawdown_pct",
]
TRADE_COLUMNS = [
    "fill_id", "order_id", "timestamp", "side", "quantity", "fill_price", "fee",
    "realized_pnl_delta", "kind", "reason", "is_maker", "slippage",
]


def equity_curve_frame(result: BacktestResult) -> pd.DataFrame:
    """Equity curve with running drawdown columns."""
    if not result.equity_curve:
        return pd.DataFrame(columns=EQUITY_COLUMNS)

    df = pd.DataFrame([
        {
            "timestamp": p.timestamp,
            "equity": p.equity,
            "cash_balance": p.cash_balance,
            "position_value": p.position_value,
            "unrealized_pnl": p.unrealized_pnl,
            "account_value": p.account_value,
        }
        for p in result.equity_curve
    ])
    peak = df["equity"].cummax()
    df["drawdown_abs"] = peak - df["equity"]
    df["drawdown_pct"] = (df["drawdown_abs"] / peak * 100).where(peak > 0, 0.0)
    return df[EQUITY_COLUMNS]


def trade_log_frame(result: BacktestResult) -> pd.DataFrame:
    """Trade log as a DataFrame (enums as their string values)."""
    if not result.trade_log:
        return pd.DataFrame(columns=TRADE_COLUMNS)

    df = pd.DataFrame([f.to_dict() for f in result.trade_log])
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    return df[TRADE_COLUMNS]


class EquityWriter:
    """
    Writes equity_curve.csv and trades.csv for a backtest run.
    """

    def __init__(
        self,
        run_dir: Path,
        equity_filename: str = "equity_curve.csv",
        trades_filename: str = "trades.csv",
    ):
        """
        Initialize equity writer.

        Args:
            run_dir: Directory for run artifacts (created on write)
            equity_filename: Name of the equity curve file
            trades_filename: Name of the trade log file
        """
        self.run_dir = Path(run_dir)
        self.equity_filename = equity_filename
        self.trades_filename = trades_filename

    def write(self, result: BacktestResult) -> Dict[str, Path]:
        """
        Write both artifacts. A file is written even when empty (header only)
        so a run directory always has the same shape.

        Returns:
            {"equity_curve": path, "trades": path}
        """
        self.run_dir.mkdir(parents=True, exist_ok=True)

        equity_path = self.run_dir / self.equity_filename
        equity_curve_frame(result).to_csv(equity_path, index=False)

        trades_path = self.run_dir / self.trades_filename
        trade_log_frame(result).to_csv(trades_path, index=False)

        return {"equity_curve": equity_path, "trades": trades_path}
