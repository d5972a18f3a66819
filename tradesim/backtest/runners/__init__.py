"""Runners for executing many independent backtests."""

from .parallel import BacktestJob, ParallelBacktestResult, run_backtests_parallel

__all__ = ["BacktestJob", "ParallelBacktestResult", "run_backtests_parallel"]
