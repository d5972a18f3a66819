"""
Backtest engine: the per-run driver.

Folds a strategy over an ordered candle sequence. For every candle:

1-4. SimulatedExchange.process_candle() resolves live orders against
     the candle, applies fills, marks to the close and margin-calls
5.   Sample the equity curve, build the MarketSnapshot, call the
     strategy and hand its intents to the exchange for the NEXT candle

An engine is single-use: NOT_STARTED -> RUNNING -> COMPLETED | ABORTED.
Fatal errors (malformed candle, numeric overflow, strategy exception)
abort the run; everything recorded up to that point is kept on the
result.

Usage:
    from tradesim.backtest import BacktestEngine
    from tradesim.config.backtest_config import BacktestConfig

    engine = BacktestEngine(BacktestConfig(initial_cash=10_000), strategy)
    result = engine.run(candles, indicators={"sma_fast": fast, "sma_slow": slow})
"""

import math
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .runtime.aggregation import aggregate_candles
from .sim.adapters.ohlcv_adapter import validate_candle
from .sim.errors import (
    EngineStateError,
    InvalidCandleError,
    NumericOverflowError,
    StrategyError,
)
from .sim.exchange import SimulatedExchange
from .sim.types import Candle, OrderIntent
from .types import BacktestResult, EquityPoint, MarketSnapshot, RunState
from ..config.backtest_config import BacktestConfig
from ..utils.logger import get_logger

# A strategy is a callable snapshot -> intents, or an object with on_candle()
StrategyLike = Union[Callable[[MarketSnapshot], Optional[Iterable[OrderIntent]]], Any]
IndicatorInput = Union[Mapping[str, Sequence[float]], "pd.DataFrame", None]


def strategy_id_of(strategy: StrategyLike) -> str:
    """
    Identifier of a strategy for logs and results.

    Strategy.strategy_id, then a @strategy_function tag, then the
    function or class name.
    """
    for attr in ("strategy_id", "_strategy_id"):
        value = getattr(strategy, attr, None)
        if isinstance(value, str) and value:
            return value
    return getattr(strategy, "__name__", None) or type(strategy).__name__


def normalize_indicators(indicators: IndicatorInput) -> Dict[str, np.ndarray]:
    """
    Turn indicator input into name -> float64 array, aligned by candle index.

    Accepts a mapping of name -> sequence, or a DataFrame (one column per
    indicator, positional rows).
    """
    if indicators is None:
        return {}
    if isinstance(indicators, pd.DataFrame):
        return {
            str(col): indicators[col].to_numpy(dtype=np.float64, na_value=np.nan)
            for col in indicators.columns
        }
    series: Dict[str, np.ndarray] = {}
    for name, values in indicators.items():
        arr = np.asarray(values, dtype=np.float64)
        if arr.ndim != 1:
            raise ValueError(f"Indicator '{name}' must be one-dimensional, got shape {arr.shape}")
        series[str(name)] = arr
    return series


def indicator_values_at(series: Mapping[str, np.ndarray], index: int) -> Dict[str, float]:
    """Values at candle `index`; missing (short series) and NaN entries are omitted."""
    values: Dict[str, float] = {}
    for name, arr in series.items():
        if index < len(arr):
            value = float(arr[index])
            if not math.isnan(value):
                values[name] = value
    return values


class BacktestEngine:
    """
    Single-use driver for one backtest run.

    Every engine owns its own SimulatedExchange; engines never share
    mutable state, so independent runs can execute concurrently.
    """

    def __init__(self, config: BacktestConfig, strategy: StrategyLike):
        if not callable(strategy) and not hasattr(strategy, "on_candle"):
            raise TypeError("strategy must be callable or define on_candle(snapshot)")
        self.config = config
        self.strategy = strategy
        self.strategy_id = strategy_id_of(strategy)
        self.exchange = SimulatedExchange(
            config.initial_cash,
            ledger_config=config.ledger_config(),
            execution_config=config.execution_config(),
        )
        self.logger = get_logger()
        self._state = RunState.NOT_STARTED

    @property
    def state(self) -> RunState:
        return self._state

    def _invoke_strategy(self, snapshot: MarketSnapshot) -> List[OrderIntent]:
        handler = getattr(self.strategy, "on_candle", None) or self.strategy
        try:
            intents = handler(snapshot)
        except Exception as e:
            raise StrategyError(
                f"Strategy raised at candle {snapshot.index} "
                f"({snapshot.candle.timestamp}): {type(e).__name__}: {e}"
            ) from e
        if intents is None:
            return []
        return list(intents)

    def run(self, candles: Iterable[Candle], indicators: IndicatorInput = None) -> BacktestResult:
        """
        Run the strategy over `candles`.

        Args:
            candles: Ordered candles (any iterable; a generator may raise
                InvalidCandleError mid-stream)
            indicators: Precomputed series aligned with the candles

        Returns:
            BacktestResult; state is COMPLETED or ABORTED (with error set)

        Raises:
            EngineStateError: If the engine has already run
        """
        if self._state != RunState.NOT_STARTED:
            raise EngineStateError(f"Engine already used (state={self._state.value})")
        self._state = RunState.RUNNING

        series = normalize_indicators(indicators)
        equity_curve: List[EquityPoint] = []
        previous: Optional[Candle] = None
        processed = 0
        error = None

        self.logger.info(
            f"Backtest started: strategy={self.strategy_id} initial_cash={self.config.initial_cash:,.2f} "
            f"leverage={self.config.leverage} policy={self.config.intrabar_policy.value}"
        )

        try:
            for index, candle in enumerate(candles):
                validate_candle(candle, previous, index)

                # Steps 1-4
                step = self.exchange.process_candle(candle)
                wallet = step.wallet
                if not math.isfinite(wallet.equity):
                    raise NumericOverflowError(f"Equity is not finite at candle {index}")
                if self.config.debug_check_invariants:
                    violations = self.exchange.check_invariants()
                    if violations:
                        raise AssertionError(f"Invariant violations at candle {index}: {violations}")

                equity_curve.append(EquityPoint(
                    timestamp=candle.timestamp,
                    equity=wallet.equity,
                    cash_balance=wallet.cash_balance,
                    position_value=wallet.position_value,
                    unrealized_pnl=wallet.unrealized_pnl,
                    account_value=wallet.account_value,
                ))
                processed += 1

                # Step 5
                snapshot = MarketSnapshot(
                    index=index,
                    candle=candle,
                    position=step.position,
                    wallet=wallet,
                    open_orders=self.exchange.live_orders(),
                    fills=tuple(step.fills),
                    rejections=self.exchange.drain_unreported_rejections(),
                    indicator_values=indicator_values_at(series, index),
                )
                intents = self._invoke_strategy(snapshot)
                if intents:
                    self.exchange.apply_intents(intents, candle.timestamp)
                previous = candle
        except (InvalidCandleError, NumericOverflowError, StrategyError) as e:
            error = e
            self._state = RunState.ABORTED
            self.logger.error(f"Backtest aborted after {processed} candles: {type(e).__name__}: {e}")
        else:
            self._state = RunState.COMPLETED

        wallet = self.exchange.wallet
        result = BacktestResult(
            state=self._state,
            initial_cash=self.config.initial_cash,
            strategy_id=self.strategy_id,
            equity_curve=tuple(equity_curve),
            trade_log=self.exchange.trade_log,
            rejections=self.exchange.rejections,
            orders=self.exchange.archived_orders + self.exchange.live_orders(),
            final_position=self.exchange.position,
            final_wallet=wallet,
            candles_processed=processed,
            error=error,
        )

        if result.completed:
            self.logger.info(
                f"Backtest completed: {self.strategy_id}, {processed} candles, {len(result.trade_log)} fills, "
                f"{len(result.rejections)} rejections, final_equity={result.final_equity:,.2f}"
            )
        return result


def run_backtest(
    config: BacktestConfig,
    strategy: StrategyLike,
    candles: Iterable[Candle],
    indicators: IndicatorInput = None,
) -> BacktestResult:
    """Build a fresh engine and run it once."""
    return BacktestEngine(config, strategy).run(candles, indicators)


def run_with_aggregation(
    config: BacktestConfig,
    strategy: StrategyLike,
    candles: Iterable[Candle],
    timeframe: Optional[str] = None,
    indicators: IndicatorInput = None,
) -> BacktestResult:
    """
    Aggregate `candles` to `timeframe` (default: config.timeframe), then run.

    Indicators, when given, must already be aligned with the aggregated
    candles. Out-of-order source candles raise InvalidCandleError before
    the engine starts.
    """
    aggregated = aggregate_candles(candles, timeframe or config.timeframe)
    return run_backtest(config, strategy, aggregated, indicators)
