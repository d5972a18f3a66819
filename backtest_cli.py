"""
tradesim command line.

Runs the SMA crossover example strategy over a CSV of candles, or
grid-searches its fast/slow periods, and prints results with rich.

CSV columns: timestamp, open, high, low, close, volume (numeric
timestamps are epoch milliseconds, UTC).
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from tradesim.backtest.artifacts import EquityWriter
from tradesim.backtest.engine import run_backtest
from tradesim.backtest.metrics import compute_backtest_metrics
from tradesim.backtest.optimizer import optimize
from tradesim.backtest.runtime.aggregation import aggregate_candles
from tradesim.backtest.sim.adapters.ohlcv_adapter import load_candles_csv
from tradesim.backtest.sim.errors import BacktestError
from tradesim.config.backtest_config import BacktestConfig, load_backtest_config
from tradesim.strategies.sma_cross import SmaCrossStrategy, compute_sma_indicators
from tradesim.utils.cli_display import console, print_optimization_table, print_run_report
from tradesim.utils.logger import setup_logger


def _parse_int_list(text: str) -> List[int]:
    try:
        return [int(part) for part in text.split(",") if part.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected comma-separated integers, got '{text}'") from e


def parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Supports:
      run        Run the SMA crossover strategy once
      optimize   Grid-search fast/slow SMA periods
    """
    parser = argparse.ArgumentParser(
        description="tradesim - deterministic candle backtester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python backtest_cli.py run --config configs/backtest.example.yml --candles data/btc_1h.csv
  python backtest_cli.py run --config cfg.yml --candles btc_1m.csv --aggregate 1h --fast 10 --slow 30
  python backtest_cli.py optimize --config cfg.yml --candles btc_1h.csv --fast-grid 5,10,20 --slow-grid 30,50
        """,
    )
    parser.add_argument("--log-dir", default=None, help="Write dated log files here (default: console only)")
    parser.add_argument("--log-level", default="WARNING", help="Console log level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--config", required=True, help="Backtest config YAML")
        sub.add_argument("--candles", required=True, help="OHLCV CSV file")
        sub.add_argument("--aggregate", default=None, help="Aggregate candles to this timeframe first (e.g. 4h)")
        sub.add_argument("--quantity", type=float, default=1.0, help="Order size per signal (default: 1)")

    run_parser = subparsers.add_parser("run", help="Run one backtest")
    add_common(run_parser)
    run_parser.add_argument("--fast", type=int, default=10, help="Fast SMA period (default: 10)")
    run_parser.add_argument("--slow", type=int, default=30, help="Slow SMA period (default: 30)")
    run_parser.add_argument("--out", default=None, help="Write equity_curve.csv and trades.csv here")
    run_parser.add_argument("--json", action="store_true", dest="json_output", help="Output metrics as JSON")

    opt_parser = subparsers.add_parser("optimize", help="Grid-search SMA periods")
    add_common(opt_parser)
    opt_parser.add_argument("--fast-grid", type=_parse_int_list, default=[5, 10, 20], help="Fast periods, comma-separated")
    opt_parser.add_argument("--slow-grid", type=_parse_int_list, default=[30, 50, 100], help="Slow periods, comma-separated")
    opt_parser.add_argument("--workers", type=int, default=None, help="Parallel workers (default: CPU count - 1)")
    opt_parser.add_argument("--top", type=int, default=10, help="Rows to show (default: 10)")

    return parser.parse_args(argv)


def _load_inputs(args: argparse.Namespace):
    config = load_backtest_config(args.config)
    candles = load_candles_csv(args.candles)
    if args.aggregate:
        candles = aggregate_candles(candles, args.aggregate)
    return config, candles


def handle_run(args: argparse.Namespace) -> int:
    config, candles = _load_inputs(args)
    indicators = compute_sma_indicators(candles, args.fast, args.slow)
    strategy = SmaCrossStrategy(fast=args.fast, slow=args.slow, quantity=args.quantity)

    result = run_backtest(config, strategy, candles, indicators)
    metrics = compute_backtest_metrics(
        result.equity_curve,
        result.trade_log,
        config.initial_cash,
        config.annualization_periods,
    )

    if args.out:
        paths = EquityWriter(Path(args.out)).write(result)
        if not args.json_output:
            console.print(f"[dim]Artifacts written to {paths['equity_curve'].parent}[/]")

    if args.json_output:
        print(json.dumps({"state": result.state.value, "metrics": metrics.to_dict()}, indent=2, default=str))
    else:
        print_run_report(result, metrics, title=f"SMA cross {args.fast}/{args.slow}")
    return 0 if result.completed else 1


def handle_optimize(args: argparse.Namespace) -> int:
    config, candles = _load_inputs(args)
    grid = {"fast": args.fast_grid, "slow": args.slow_grid}

    # Combinations with fast >= slow are not valid crossovers
    def strategy_factory(fast: int, slow: int) -> SmaCrossStrategy:
        return SmaCrossStrategy(fast=fast, slow=slow, quantity=args.quantity)

    def indicator_factory(fast: int, slow: int):
        return compute_sma_indicators(candles, fast, slow)

    result = optimize(
        grid,
        strategy_factory,
        candles,
        config,
        indicator_factory=indicator_factory,
        max_workers=args.workers,
    )
    print_optimization_table(result, top=args.top)
    return 0 if result.rows else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_cli_args(argv)
    setup_logger(log_dir=args.log_dir, log_level=args.log_level)

    try:
        if args.command == "run":
            return handle_run(args)
        if args.command == "optimize":
            return handle_optimize(args)
    except (FileNotFoundError, ValueError, BacktestError) as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 2
    return 2


if __name__ == "__main__":
    sys.exit(main())
