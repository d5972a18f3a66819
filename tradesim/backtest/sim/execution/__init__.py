"""Execution: fill resolution, slippage, liquidity caps and fees."""

from .fee_model import FeeConfig, FeeModel
from .slippage_model import SlippageConfig, SlippageModel
from .liquidity_model import LiquidityConfig, LiquidityModel
from .execution_model import ExecutionModel, ExecutionModelConfig, Trigger

__all__ = [
    "FeeConfig", "FeeModel",
    "SlippageConfig", "SlippageModel",
    "LiquidityConfig", "LiquidityModel",
    "ExecutionModel", "ExecutionModelConfig", "Trigger",
]
