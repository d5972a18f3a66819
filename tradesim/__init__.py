"""
tradesim - deterministic candle-by-candle backtesting.

Simulates order execution against OHLCV candles (intrabar price path,
partial fills, slippage, maker/taker fees, leverage and margin) and
produces the equity curve and trade log that metrics are computed from.

Usage:
    from tradesim import BacktestEngine, BacktestConfig
    from tradesim.strategies import SmaCrossStrategy, compute_sma_indicators

    config = BacktestConfig(initial_cash=10_000)
    engine = BacktestEngine(config, SmaCrossStrategy(fast=10, slow=30))
    result = engine.run(candles, compute_sma_indicators(candles, 10, 30))
"""

__version__ = "0.1.0"

from .backtest import (
    BacktestEngine,
    BacktestMetrics,
    BacktestResult,
    EquityPoint,
    MarketSnapshot,
    RunState,
    compute_backtest_metrics,
    run_backtest,
    run_with_aggregation,
)
from .config.backtest_config import BacktestConfig, load_backtest_config

__all__ = [
    "__version__",
    "BacktestEngine",
    "BacktestConfig",
    "BacktestMetrics",
    "BacktestResult",
    "EquityPoint",
    "MarketSnapshot",
    "RunState",
    "compute_backtest_metrics",
    "load_backtest_config",
    "run_backtest",
    "run_with_aggregation",
]
