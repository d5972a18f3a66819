"""
Backtest type definitions.

Provides dataclasses for backtesting runs:
- RunState: engine lifecycle (not_started -> running -> completed | aborted)
- EquityPoint: one equity-curve sample per processed candle
- MarketSnapshot: what the strategy sees after each candle
- BacktestResult: complete run output (kept on abort, with the error)
- BacktestMetrics: reduced performance numbers

Fill/trade-log and order types live in sim.types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .sim.errors import BacktestError
from .sim.types import Candle, Fill, Order, Position, Rejection, WalletState


class RunState(str, Enum):
    """Engine lifecycle state."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.ABORTED)


@dataclass(frozen=True)
class EquityPoint:
    """
    Single point on the equity curve.

    equity == cash_balance + unrealized_pnl. account_value adds back the
    margin still posted; position_value is the signed position quantity
    marked at the candle close.
    """
    timestamp: datetime
    equity: float
    cash_balance: float = 0.0
    position_value: float = 0.0
    unrealized_pnl: float = 0.0
    account_value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "equity": self.equity,
            "cash_balance": self.cash_balance,
            "position_value": self.position_value,
            "unrealized_pnl": self.unrealized_pnl,
            "account_value": self.account_value,
        }


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Market/account state handed to the strategy after a candle.

    Orders are copies; rejections are those not yet reported.
    """
    index: int
    candle: Candle
    position: Position
    wallet: WalletState
    open_orders: Tuple[Order, ...] = ()
    fills: Tuple[Fill, ...] = ()
    rejections: Tuple[Rejection, ...] = ()
    indicator_values: Mapping[str, float] = field(default_factory=dict)

    def indicator(self, name: str, default: Optional[float] = None) -> Optional[float]:
        return self.indicator_values.get(name, default)


@dataclass
class BacktestResult:
    """
    Complete output of one run.

    On abort, equity_curve and trade_log hold everything up to the
    failing candle and `error` carries the fatal error.
    """
    state: RunState
    initial_cash: float
    strategy_id: Optional[str] = None
    equity_curve: Tuple[EquityPoint, ...] = ()
    trade_log: Tuple[Fill, ...] = ()
    rejections: Tuple[Rejection, ...] = ()
    orders: Tuple[Order, ...] = ()
    final_position: Position = field(default_factory=Position)
    final_wallet: Optional[WalletState] = None
    candles_processed: int = 0
    error: Optional[BacktestError] = None

    @property
    def completed(self) -> bool:
        return self.state == RunState.COMPLETED

    @property
    def final_equity(self) -> float:
        if self.equity_curve:
            return self.equity_curve[-1].equity
        return self.initial_cash

    @property
    def final_account_value(self) -> float:
        if self.equity_curve:
            return self.equity_curve[-1].account_value
        return self.initial_cash

    @property
    def total_fees(self) -> float:
        return sum(f.fee for f in self.trade_log)

    @property
    def realized_pnl(self) -> float:
        return sum(f.realized_pnl_delta for f in self.trade_log)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "strategy_id": self.strategy_id,
            "initial_cash": self.initial_cash,
            "final_equity": self.final_equity,
            "final_account_value": self.final_account_value,
            "candles_processed": self.candles_processed,
            "equity_curve": [p.to_dict() for p in self.equity_curve],
            "trade_log": [f.to_dict() for f in self.trade_log],
            "rejections": [r.to_dict() for r in self.rejections],
            "orders": [o.to_dict() for o in self.orders],
            "final_position": self.final_position.to_dict(),
            "final_wallet": self.final_wallet.to_dict() if self.final_wallet else None,
            "error": f"{type(self.error).__name__}: {self.error}" if self.error else None,
        }


@dataclass
class BacktestMetrics:
    """
    Performance metrics for a run.

    Fractions are plain ratios (0.05 = 5%); *_pct fields are percentages.
    Trade statistics count closing fills, net of their fees.
    """
    # Equity
    initial_equity: float = 0.0
    final_equity: float = 0.0
    net_profit: float = 0.0
    total_return: float = 0.0
    total_return_pct: float = 0.0

    # Drawdown
    max_drawdown_abs: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    max_drawdown_duration_bars: int = 0

    # Risk-adjusted
    sharpe: float = 0.0
    sortino: float = 0.0
    calmar: float = 0.0

    # Trade summary
    total_trades: int = 0
    win_count: int = 0
    loss_count: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    total_fees: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    expectancy: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0

    # Time
    total_bars: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return dict(self.__dict__)

    def summary(self) -> str:
        """Human-readable one-block summary."""
        return "\n".join([
            f"Final equity:      {self.final_equity:,.2f} (start {self.initial_equity:,.2f})",
            f"Net profit:        {self.net_profit:,.2f} ({self.total_return_pct:.2f}%)",
            f"Max drawdown:      {self.max_drawdown_pct:.2f}% ({self.max_drawdown_abs:,.2f})",
            f"Sharpe / Sortino:  {self.sharpe:.2f} / {self.sortino:.2f}",
            f"Trades:            {self.total_trades} (win rate {self.win_rate:.2f}%)",
            f"Profit factor:     {self.profit_factor:.2f}",
            f"Fees paid:         {self.total_fees:,.2f}",
        ])
