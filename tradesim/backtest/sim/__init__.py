"""
Simulated Exchange for Backtesting.

Deterministic single-instrument simulation with a cash wallet,
optional leverage and an explicit margin call.

Public API:
- SimulatedExchange: per-run orchestrator
- Candle, Order, OrderRequest, Fill, Position, WalletState: core types
- SubmitOrder, CancelOrder, ModifyOrder: strategy intents
- validate_candle, adapt_ohlcv_dataframe, load_candles_csv: data adapters

Execution model:
- Intents from candle t are eligible from candle t+1
- Orders resolve against an intrabar path (configurable policy)
- Fees and slippage applied from config

Architecture:
- exchange.py: orchestrator (steps 1-4 + intents)
- types.py: all shared types
- order_book.py: live orders, validation, archive
- position.py: quantity / average entry / realized PnL
- ledger.py: cash, equity and the margin gate
- execution/: fill resolution, slippage, liquidity caps, fees
- pricing/: intrabar path
- adapters/: candle validation and DataFrame/CSV conversion
"""

from .types import (
    # Enums
    OrderSide,
    OrderKind,
    OrderStatus,
    PositionSide,
    FillReason,
    # Core types
    Candle,
    OrderRequest,
    Order,
    Fill,
    TradeLogEntry,
    Rejection,
    Position,
    WalletState,
    StepResult,
    # Intents
    SubmitOrder,
    CancelOrder,
    ModifyOrder,
    OrderIntent,
)
from .errors import (
    RejectionCode,
    BacktestError,
    InvalidCandleError,
    InvalidOrderError,
    InsufficientMarginError,
    UnknownOrderIdError,
    NumericOverflowError,
    StrategyError,
    OrderStateError,
    EngineStateError,
)
from .exchange import SimulatedExchange
from .ledger import Ledger, LedgerConfig
from .order_book import OrderBook, validate_order_request
from .position import PositionTracker
from .adapters.ohlcv_adapter import (
    validate_candle,
    iter_validated,
    adapt_ohlcv_row,
    adapt_ohlcv_dataframe,
    load_candles_csv,
    candles_to_dataframe,
)

__all__ = [
    "OrderSide", "OrderKind", "OrderStatus", "PositionSide", "FillReason",
    "Candle", "OrderRequest", "Order", "Fill", "TradeLogEntry", "Rejection",
    "Position", "WalletState", "StepResult",
    "SubmitOrder", "CancelOrder", "ModifyOrder", "OrderIntent",
    "RejectionCode", "BacktestError", "InvalidCandleError", "InvalidOrderError",
    "InsufficientMarginError", "UnknownOrderIdError", "NumericOverflowError",
    "StrategyError", "OrderStateError", "EngineStateError",
    "SimulatedExchange", "Ledger", "LedgerConfig", "OrderBook",
    "validate_order_request", "PositionTracker",
    "validate_candle", "iter_validated", "adapt_ohlcv_row", "adapt_ohlcv_dataframe",
    "load_candles_csv", "candles_to_dataframe",
]
