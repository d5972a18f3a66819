"""
Grid-search parameter optimizer.

Expands a parameter grid into its Cartesian product, runs one backtest
per combination through run_backtests_parallel(), and ranks the
combinations by final equity. The engine itself is unchanged; this only
drives many independent runs.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Sequence

from .engine import IndicatorInput
from .metrics import compute_backtest_metrics
from .runners.parallel import BacktestJob, run_backtests_parallel
from .sim.types import Candle
from .types import BacktestMetrics
from ..config.backtest_config import BacktestConfig
from ..utils.logger import get_logger


@dataclass
class OptimizationRow:
    """One evaluated parameter combination."""
    params: Dict[str, Any]
    final_equity: float
    metrics: BacktestMetrics


@dataclass
class OptimizationResult:
    """Ranked rows (best first) plus the combinations that failed."""
    rows: List[OptimizationRow] = field(default_factory=list)
    failures: List[tuple[Dict[str, Any], str]] = field(default_factory=list)

    @property
    def best(self) -> OptimizationRow | None:
        return self.rows[0] if self.rows else None

    def __len__(self) -> int:
        return len(self.rows)


def expand_grid(param_grid: Mapping[str, Sequence[Any]]) -> List[Dict[str, Any]]:
    """Cartesian product of the grid as a list of dicts, in key order."""
    keys = list(param_grid.keys())
    values = [list(param_grid[k]) for k in keys]
    return [dict(zip(keys, combo)) for combo in itertools.product(*values)]


def _job_name(params: Mapping[str, Any]) -> str:
    return ",".join(f"{k}={v}" for k, v in params.items())


def optimize(
    param_grid: Mapping[str, Sequence[Any]],
    strategy_factory: Callable[..., Any],
    candles: Sequence[Candle],
    config: BacktestConfig,
    indicator_factory: Callable[..., IndicatorInput] | None = None,
    max_workers: int | None = None,
) -> OptimizationResult:
    """
    Evaluate every combination of `param_grid`.

    Args:
        param_grid: name -> candidate values
        strategy_factory: Called as strategy_factory(**params) per run
        candles: Shared candle sequence
        config: Shared run configuration
        indicator_factory: Optional; called as indicator_factory(**params)
            to build the indicator series for a combination
        max_workers: Thread count for run_backtests_parallel

    Returns:
        OptimizationResult sorted by final equity, best first. Ties keep
        grid order. Runs that did not complete are listed in failures.
    """
    logger = get_logger()
    combos = expand_grid(param_grid)
    if not combos:
        return OptimizationResult()

    jobs = []
    for params in combos:
        indicators = indicator_factory(**params) if indicator_factory else None
        jobs.append(BacktestJob(
            name=_job_name(params),
            config=config,
            candles=candles,
            strategy_factory=lambda p=params: strategy_factory(**p),
            indicators=indicators,
        ))

    logger.info(f"Optimizing over {len(jobs)} parameter combinations")
    outcomes = run_backtests_parallel(jobs, max_workers=max_workers)

    result = OptimizationResult()
    for params, outcome in zip(combos, outcomes):
        if not outcome.success or outcome.result is None:
            error = outcome.error or "unknown error"
            result.failures.append((params, error))
            logger.warning(f"Combination {outcome.name} failed: {error.splitlines()[0]}")
            continue
        run = outcome.result
        metrics = compute_backtest_metrics(
            run.equity_curve,
            run.trade_log,
            config.initial_cash,
            config.annualization_periods,
        )
        result.rows.append(OptimizationRow(params=params, final_equity=run.final_equity, metrics=metrics))

    result.rows.sort(key=lambda row: row.final_equity, reverse=True)
    return result
