"""Run artifact export (CSV)."""

from .equity_writer import EquityWriter, equity_curve_frame, trade_log_frame

__all__ = ["EquityWriter", "equity_curve_frame", "trade_log_frame"]
