"""Utility modules: logging, numeric and percentage helpers."""

from .logger import get_logger, setup_logger, TradingLogger
from .helpers import add_percent, sub_percent, how_many, percent_change, is_real_number

__all__ = [
    "get_logger",
    "setup_logger",
    "TradingLogger",
    "add_percent",
    "sub_percent",
    "how_many",
    "percent_change",
    "is_real_number",
]
