"""
Backtest metrics calculation.

Pure math functions for computing backtest performance metrics.
No I/O operations - takes the equity curve and trade log and returns
computed values; engine state is never touched.

Main function: compute_backtest_metrics() -> BacktestMetrics
"""

import math
from typing import List, Sequence, Tuple

import numpy as np

from .sim.types import Fill
from .types import BacktestMetrics, EquityPoint

# Ratios with no downside are capped rather than reported as infinite
RATIO_CAP = 100.0


def compute_backtest_metrics(
    equity_curve: Sequence[EquityPoint],
    trade_log: Sequence[Fill],
    initial_equity: float,
    periods_per_year: float,
    risk_free_rate: float = 0.0,
) -> BacktestMetrics:
    """
    Compute backtest metrics.

    This is a pure function - no I/O operations.

    Args:
        equity_curve: One EquityPoint per processed candle
        trade_log: All fills, in order
        initial_equity: Starting cash
        periods_per_year: Candles per year, for annualization
        risk_free_rate: Per-period risk-free return subtracted in Sharpe/Sortino

    Returns:
        BacktestMetrics with all computed fields (unrounded)
    """
    total_fees = sum(f.fee for f in trade_log)
    if not equity_curve:
        return BacktestMetrics(
            initial_equity=initial_equity,
            final_equity=initial_equity,
            total_fees=total_fees,
        )

    equity = np.array([p.equity for p in equity_curve], dtype=np.float64)
    total_bars = len(equity)

    final_equity = float(equity[-1])
    net_profit = final_equity - initial_equity
    total_return = net_profit / initial_equity if initial_equity > 0 else 0.0

    max_dd_abs, max_dd, max_dd_duration = _compute_drawdown_metrics(equity)

    returns = _compute_returns(equity)
    sharpe = _compute_sharpe(returns, periods_per_year, risk_free_rate)
    sortino = _compute_sortino(returns, periods_per_year, risk_free_rate)
    calmar = _compute_calmar(total_return, max_dd, total_bars, periods_per_year)

    # Trade statistics: one "trade" per closing fill, net of its fee
    trade_pnls = [f.realized_pnl_delta - f.fee for f in trade_log if f.realized_pnl_delta != 0]
    total_trades = len(trade_pnls)
    wins = [p for p in trade_pnls if p > 0]
    losses = [p for p in trade_pnls if p < 0]

    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))
    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    elif gross_profit > 0:
        profit_factor = RATIO_CAP
    else:
        profit_factor = 0.0

    max_consecutive_wins, max_consecutive_losses = _compute_consecutive_streaks(trade_pnls)

    return BacktestMetrics(
        initial_equity=initial_equity,
        final_equity=final_equity,
        net_profit=net_profit,
        total_return=total_return,
        total_return_pct=total_return * 100,
        max_drawdown_abs=max_dd_abs,
        max_drawdown=max_dd,
        max_drawdown_pct=max_dd * 100,
        max_drawdown_duration_bars=max_dd_duration,
        sharpe=sharpe,
        sortino=sortino,
        calmar=calmar,
        total_trades=total_trades,
        win_count=len(wins),
        loss_count=len(losses),
        win_rate=(len(wins) / total_trades * 100) if total_trades else 0.0,
        profit_factor=profit_factor,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        total_fees=total_fees,
        largest_win=max(wins, default=0.0),
        largest_loss=abs(min(losses, default=0.0)),
        expectancy=(sum(trade_pnls) / total_trades) if total_trades else 0.0,
        max_consecutive_wins=max_consecutive_wins,
        max_consecutive_losses=max_consecutive_losses,
        total_bars=total_bars,
    )


def _compute_drawdown_metrics(equity: np.ndarray) -> Tuple[float, float, int]:
    """
    Drawdown against the running peak of the samples.

    max_drawdown = max_t (peak_t - equity_t) / peak_t

    Returns:
        Tuple of (max_drawdown_abs, max_drawdown_fraction, max_drawdown_duration_bars)
    """
    if equity.size == 0:
        return 0.0, 0.0, 0

    peaks = np.maximum.accumulate(equity)
    drawdown_abs = peaks - equity
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdown_frac = np.where(peaks > 0, drawdown_abs / peaks, 0.0)

    # Longest run of samples strictly below the running peak
    max_duration = 0
    current = 0
    for below in drawdown_abs > 0:
        current = current + 1 if below else 0
        max_duration = max(max_duration, current)

    return float(drawdown_abs.max()), float(drawdown_frac.max()), max_duration


def _compute_returns(equity: np.ndarray) -> np.ndarray:
    """Simple per-period returns (equity_t / equity_{t-1}) - 1, skipping non-positive bases."""
    if equity.size < 2:
        return np.empty(0)
    prev = equity[:-1]
    curr = equity[1:]
    valid = prev > 0
    return curr[valid] / prev[valid] - 1.0


def _compute_sharpe(returns: np.ndarray, periods_per_year: float, risk_free_rate: float = 0.0) -> float:
    """
    Annualized Sharpe ratio: (mean - rf) / std * sqrt(periods_per_year).

    Population standard deviation. 0 with fewer than two returns or zero
    volatility.
    """
    if returns.size < 2:
        return 0.0
    std_return = float(np.std(returns))
    if std_return == 0:
        return 0.0
    mean_return = float(np.mean(returns))
    return (mean_return - risk_free_rate) / std_return * math.sqrt(periods_per_year)


def _compute_sortino(returns: np.ndarray, periods_per_year: float, risk_free_rate: float = 0.0) -> float:
    """Annualized Sortino ratio (downside deviation only), capped when there is no downside."""
    if returns.size < 2:
        return 0.0
    mean_return = float(np.mean(returns))
    negative = returns[returns < 0]
    if negative.size == 0:
        return RATIO_CAP if mean_return > risk_free_rate else 0.0

    downside_std = math.sqrt(float(np.sum(negative ** 2)) / returns.size)
    if downside_std == 0:
        return 0.0
    return (mean_return - risk_free_rate) / downside_std * math.sqrt(periods_per_year)


def _compute_calmar(total_return: float, max_drawdown: float, total_bars: int, periods_per_year: float) -> float:
    """Calmar ratio: annualized return / max drawdown (0 if no drawdown)."""
    if max_drawdown == 0 or total_bars == 0:
        return 0.0
    years = total_bars / periods_per_year
    if years == 0:
        return 0.0
    return (total_return / years) / max_drawdown


def _compute_consecutive_streaks(trade_pnls: List[float]) -> Tuple[int, int]:
    """
    Compute max consecutive wins and losses.

    Returns:
        Tuple of (max_consecutive_wins, max_consecutive_losses)
    """
    max_wins = max_losses = 0
    wins = losses = 0
    for pnl in trade_pnls:
        if pnl > 0:
            wins += 1
            losses = 0
        elif pnl < 0:
            losses += 1
            wins = 0
        else:
            wins = losses = 0
        max_wins = max(max_wins, wins)
        max_losses = max(max_losses, losses)
    return max_wins, max_losses
