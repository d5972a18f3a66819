"""
Strategies: the Strategy interface and an example crossover strategy.
"""

from .base import Strategy, strategy_function, market, limit, cancel, modify, cancel_all
from .sma_cross import SmaCrossStrategy, compute_sma_indicators

__all__ = [
    "Strategy",
    "strategy_function",
    "market",
    "limit",
    "cancel",
    "modify",
    "cancel_all",
    "SmaCrossStrategy",
    "compute_sma_indicators",
]
