"""
Backtest engine module.

Provides deterministic backtesting for trading strategies with:
- Simulated exchange with deterministic execution (sim/)
- Engine driver folding a strategy over a candle sequence
- Metrics calculation and artifact writing
- Parallel runs and grid-search optimization

Usage:
    from tradesim.backtest import BacktestEngine
    from tradesim.config.backtest_config import load_backtest_config

    config = load_backtest_config("configs/backtest.example.yml")
    engine = BacktestEngine(config, strategy)
    result = engine.run(candles)
"""

from .types import (
    RunState,
    EquityPoint,
    MarketSnapshot,
    BacktestResult,
    BacktestMetrics,
)
from .engine import (
    BacktestEngine,
    run_backtest,
    run_with_aggregation,
    normalize_indicators,
)
from .metrics import compute_backtest_metrics
from .runtime import aggregate_candles, aggregate_by_count, tf_duration, tf_minutes, bars_per_year
from .runners import BacktestJob, ParallelBacktestResult, run_backtests_parallel
from .optimizer import OptimizationResult, OptimizationRow, optimize, expand_grid
from .artifacts import EquityWriter, equity_curve_frame, trade_log_frame

__all__ = [
    # Types
    "RunState",
    "EquityPoint",
    "MarketSnapshot",
    "BacktestResult",
    "BacktestMetrics",
    # Engine
    "BacktestEngine",
    "run_backtest",
    "run_with_aggregation",
    "normalize_indicators",
    # Metrics
    "compute_backtest_metrics",
    # Runtime
    "aggregate_candles",
    "aggregate_by_count",
    "tf_duration",
    "tf_minutes",
    "bars_per_year",
    # Runners
    "BacktestJob",
    "ParallelBacktestResult",
    "run_backtests_parallel",
    "OptimizationResult",
    "OptimizationRow",
    "optimize",
    "expand_grid",
    # Artifacts
    "EquityWriter",
    "equity_curve_frame",
    "trade_log_frame",
]
