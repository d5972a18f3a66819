"""
Error hierarchy for the simulated exchange.

Fatal (abort the run, partial logs preserved):
- InvalidCandleError: candle breaks the OHLC envelope or time ordering
- NumericOverflowError: equity/cash became non-finite
- StrategyError: the strategy callback raised

Local (reject one intent or fill, run continues):
- InvalidOrderError: bad quantity/price at submission
- InsufficientMarginError: fill-time margin gate refused the fill
- UnknownOrderIdError: cancel/modify of a missing or terminal order
"""

from enum import Enum


class RejectionCode(str, Enum):
    """Code recorded on every Rejection."""
    INVALID_ORDER = "INVALID_ORDER"
    INSUFFICIENT_MARGIN = "INSUFFICIENT_MARGIN"
    UNKNOWN_ORDER_ID = "UNKNOWN_ORDER_ID"


class BacktestError(Exception):
    """Base class for all simulator errors."""

    fatal: bool = False
    code: RejectionCode | None = None


class InvalidCandleError(BacktestError, ValueError):
    """Candle violates low <= open,close <= high or the time ordering."""

    fatal = True

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.index = index


class NumericOverflowError(BacktestError, ArithmeticError):
    """Account values left the finite range."""

    fatal = True


class StrategyError(BacktestError):
    """Strategy callback raised; wraps the original exception."""

    fatal = True


class InvalidOrderError(BacktestError, ValueError):
    """Order request rejected at submission."""

    code = RejectionCode.INVALID_ORDER

    def __init__(self, message: str, order_id: str | None = None):
        super().__init__(message)
        self.order_id = order_id


class InsufficientMarginError(BacktestError):
    """Fill refused by the wallet margin gate."""

    code = RejectionCode.INSUFFICIENT_MARGIN

    def __init__(self, order_id: str, available: float, required: float):
        super().__init__(
            f"Insufficient margin for {order_id}: "
            f"available={available:.4f} required={required:.4f}"
        )
        self.order_id = order_id
        self.available = available
        self.required = required


class UnknownOrderIdError(BacktestError, KeyError):
    """Cancel/modify referenced an order that is not live."""

    code = RejectionCode.UNKNOWN_ORDER_ID

    def __init__(self, order_id: str):
        super().__init__(order_id)
        self.order_id = order_id

    def __str__(self) -> str:
        return f"Unknown or terminal order id: {self.order_id}"


class OrderStateError(BacktestError):
    """Illegal order status transition."""


class EngineStateError(BacktestError):
    """Engine used outside its NotStarted -> Running -> terminal lifecycle."""
