"""
Parallel backtest execution utilities.

Runs independent backtests concurrently on a thread pool.

Architecture:
    - Each job builds its own BacktestEngine (own exchange, order book,
      ledger); engines share nothing mutable
    - Candles and config are immutable and may be shared between jobs
    - The strategy comes from a factory so every job gets a fresh one

Usage:
    from tradesim.backtest.runners.parallel import BacktestJob, run_backtests_parallel

    results = run_backtests_parallel(
        [BacktestJob("fast", config, candles, lambda: SmaCrossStrategy(5, 20))],
        max_workers=4,
    )
"""

from __future__ import annotations

import os
import time
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..engine import IndicatorInput, run_backtest
from ..sim.types import Candle
from ..types import BacktestResult
from ...config.backtest_config import BacktestConfig


@dataclass(frozen=True)
class BacktestJob:
    """One independent run: config, candles, and a strategy factory."""
    name: str
    config: BacktestConfig
    candles: Sequence[Candle]
    strategy_factory: Callable[[], Any]
    indicators: IndicatorInput = None


@dataclass
class ParallelBacktestResult:
    """
    Result from a parallel backtest execution.

    success is True only for runs that COMPLETED; an aborted run keeps
    its partial result and the error text.
    """
    name: str
    success: bool
    result: BacktestResult | None = None
    error: str | None = None
    duration_seconds: float = 0.0


def _run_single_job(job: BacktestJob) -> ParallelBacktestResult:
    """Run one job; never raises."""
    start_time = time.perf_counter()
    try:
        result = run_backtest(job.config, job.strategy_factory(), job.candles, job.indicators)
    except Exception as e:
        return ParallelBacktestResult(
            name=job.name,
            success=False,
            error=f"{type(e).__name__}: {e}\n{traceback.format_exc()}",
            duration_seconds=time.perf_counter() - start_time,
        )

    error = None
    if result.error is not None:
        error = f"{type(result.error).__name__}: {result.error}"
    return ParallelBacktestResult(
        name=job.name,
        success=result.completed,
        result=result,
        error=error,
        duration_seconds=time.perf_counter() - start_time,
    )


def run_backtests_parallel(
    jobs: Sequence[BacktestJob],
    max_workers: int | None = None,
    progress_callback: Callable[[str, str, ParallelBacktestResult], None] | None = None,
) -> list[ParallelBacktestResult]:
    """
    Run backtests concurrently.

    Args:
        jobs: Jobs to run; names should be unique for readable reports
        max_workers: Thread count (default: CPU count - 1, min 1)
        progress_callback: Optional callback(name, status, result)

    Returns:
        List of ParallelBacktestResult objects (same order as jobs)
    """
    if not jobs:
        return []

    if max_workers is None:
        max_workers = max(1, (os.cpu_count() or 2) - 1)

    # Keyed by position so duplicate names cannot collide
    results: list[ParallelBacktestResult | None] = [None] * len(jobs)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_index = {
            executor.submit(_run_single_job, job): i
            for i, job in enumerate(jobs)
        }

        for future in as_completed(future_to_index):
            i = future_to_index[future]
            result = future.result()
            results[i] = result
            if progress_callback:
                status = "completed" if result.success else "failed"
                progress_callback(result.name, status, result)

    return results  # type: ignore[return-value]
