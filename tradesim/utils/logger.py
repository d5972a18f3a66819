"""
Logging system for the simulator.
Provides structured, human-readable logs with console and optional file output.
"""

import copy
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        # Color a copy so file handlers sharing the record stay plain
        record = copy.copy(record)
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        record.levelname = f"{color}{record.levelname}{Colors.RESET}"
        record.msg = f"{color}{record.msg}{Colors.RESET}"
        return super().format(record)


class TradingLogger:
    """
    Central logging system for simulation runs.

    Features:
    - Console output with colors
    - Optional dated file output (log_dir=None disables files)
    - Separate order log for fills and liquidations
    - Structured logging for easy parsing

    Holds no run state; concurrent runs share it safely.
    """

    _instance: Optional['TradingLogger'] = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_dir: Optional[str] = "logs", log_level: str = "INFO"):
        if TradingLogger._initialized:
            return

        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._create_logger("tradesim", log_level)
        self.trade_logger = self._create_logger("tradesim.orders", log_level, "orders")
        self.trade_logger.propagate = False

        TradingLogger._initialized = True

    def _create_logger(self, name: str, level: str, file_prefix: Optional[str] = None) -> logging.Logger:
        """Create a configured logger instance."""
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper()))
        logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S"
        ))
        logger.addHandler(console_handler)

        if self.log_dir is not None:
            prefix = file_prefix or "sim"
            log_file = self.log_dir / f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            logger.addHandler(file_handler)

        return logger

    def info(self, msg: str, *args, **kwargs):
        """Log info message."""
        self.main_logger.info(msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        """Log debug message."""
        self.main_logger.debug(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """Log warning message."""
        self.main_logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        """Log error message."""
        self.main_logger.error(msg, *args, **kwargs)

    def trade(self, action: str, order_id: str, side: str, quantity: float,
              price: Optional[float] = None, pnl: Optional[float] = None, **kwargs):
        """
        Log a fill-level action with structured format.

        Args:
            action: ORDER_FILLED, LIQUIDATION
            order_id: Order (or liquidation) identifier
            side: buy or sell
            quantity: Filled quantity
            price: Execution price (optional)
            pnl: Realized PnL delta (optional, for reducing fills)
            **kwargs: Additional fields
        """
        parts = [
            f"[{action}]",
            f"order={order_id}",
            f"side={side}",
            f"qty={quantity:.6g}",
        ]

        if price is not None:
            parts.append(f"price={price:.4f}")
        if pnl is not None:
            parts.append(f"pnl={pnl:.2f}")

        for key, value in kwargs.items():
            parts.append(f"{key}={value}")

        msg = " | ".join(parts)
        self.trade_logger.info(msg)
        self.main_logger.debug(msg)

    def rejection(self, code: str, reason: str, **kwargs):
        """
        Log an intent or fill the engine refused.

        Args:
            code: RejectionCode value
            reason: Human-readable reason
            **kwargs: Additional context
        """
        parts = [f"[REJECTED:{code}]", reason]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")
        self.main_logger.warning(" | ".join(parts))


# Global logger instance
_logger: Optional[TradingLogger] = None


def get_logger(log_dir: Optional[str] = None, log_level: str = "INFO") -> TradingLogger:
    """Get or create the global logger instance (console only by default)."""
    global _logger
    if _logger is None:
        _logger = TradingLogger(log_dir, log_level)
    return _logger


def setup_logger(log_dir: Optional[str] = "logs", log_level: str = "INFO") -> TradingLogger:
    """Initialize the logger with custom settings."""
    global _logger
    TradingLogger._initialized = False
    TradingLogger._instance = None
    _logger = TradingLogger(log_dir, log_level)
    return _logger
