"""
Rich console output for backtest runs.

Renders run state, metrics and optimizer rankings as tables. Pure
presentation: takes finished results and prints them.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..backtest.optimizer import OptimizationResult
from ..backtest.types import BacktestMetrics, BacktestResult

console = Console()


def _signed(value: float, fmt: str = ",.2f") -> str:
    """Color a number green/red by sign."""
    text = format(value, fmt)
    if value > 0:
        return f"[green]{text}[/]"
    if value < 0:
        return f"[red]{text}[/]"
    return text


def print_run_report(result: BacktestResult, metrics: BacktestMetrics, title: str = "Backtest") -> None:
    """
    Print run status panel plus metrics and activity tables.

    Args:
        result: Finished (completed or aborted) run
        metrics: Metrics computed from the run
        title: Panel title
    """
    status = "[bold green]COMPLETED" if result.completed else "[bold red]ABORTED"
    details = f"[dim]Candles processed: {result.candles_processed}[/]"
    if result.error is not None:
        details += f"\n[red]{type(result.error).__name__}: {result.error}[/]"
    console.print(Panel(
        f"{status}[/] {title}\n{details}",
        border_style="green" if result.completed else "red",
    ))

    perf = Table(title="Performance", show_header=True, header_style="bold")
    perf.add_column("Metric", style="dim")
    perf.add_column("Value", justify="right")
    perf.add_row("Initial Equity", f"{metrics.initial_equity:,.2f}")
    perf.add_row("Final Equity", f"{metrics.final_equity:,.2f}")
    perf.add_row("Net Profit", _signed(metrics.net_profit))
    perf.add_row("Total Return", _signed(metrics.total_return_pct, ".2f") + "%")
    perf.add_row("Max Drawdown", f"{metrics.max_drawdown_pct:.2f}% ({metrics.max_drawdown_abs:,.2f})")
    perf.add_row("Drawdown Duration", f"{metrics.max_drawdown_duration_bars} bars")
    perf.add_row("Sharpe", f"{metrics.sharpe:.2f}")
    perf.add_row("Sortino", f"{metrics.sortino:.2f}")
    perf.add_row("Calmar", f"{metrics.calmar:.2f}")
    console.print(perf)

    trades = Table(title="Trading Activity", show_header=True, header_style="bold")
    trades.add_column("Metric", style="dim")
    trades.add_column("Value", justify="right")
    trades.add_row("Fills", str(len(result.trade_log)))
    trades.add_row("Closing Trades", str(metrics.total_trades))
    trades.add_row("Win Rate", f"{metrics.win_rate:.2f}%")
    trades.add_row("Profit Factor", f"{metrics.profit_factor:.2f}")
    trades.add_row("Largest Win", f"[green]{metrics.largest_win:,.2f}[/]")
    trades.add_row("Largest Loss", f"[red]{metrics.largest_loss:,.2f}[/]")
    trades.add_row("Fees Paid", f"{metrics.total_fees:,.2f}")
    rejected = len(result.rejections)
    trades.add_row("Rejections", f"[yellow]{rejected}[/]" if rejected else "0")
    console.print(trades)


def print_optimization_table(opt: OptimizationResult, top: Optional[int] = 10) -> None:
    """Print the ranked parameter combinations, best first."""
    table = Table(title="Optimization Results", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Params", style="cyan")
    table.add_column("Final Equity", justify="right")
    table.add_column("Return %", justify="right")
    table.add_column("Max DD %", justify="right")
    table.add_column("Sharpe", justify="right")
    table.add_column("Trades", justify="right")

    rows = opt.rows if top is None else opt.rows[:top]
    for rank, row in enumerate(rows, start=1):
        params = ", ".join(f"{k}={v}" for k, v in row.params.items())
        table.add_row(
            str(rank),
            params,
            f"{row.final_equity:,.2f}",
            _signed(row.metrics.total_return_pct, ".2f"),
            f"{row.metrics.max_drawdown_pct:.2f}",
            f"{row.metrics.sharpe:.2f}",
            str(row.metrics.total_trades),
        )
    console.print(table)

    if opt.failures:
        console.print(f"[yellow]{len(opt.failures)} combination(s) failed[/]")
