"""
Timeframe utilities for the backtest runtime.

Provides timeframe duration, validation and annualization helpers.
Uses TF_MINUTES from config.constants as the source of truth.
"""

from datetime import timedelta

from ...config.constants import TF_MINUTES, MINUTES_PER_YEAR


def tf_minutes(tf: str) -> int:
    """
    Get the duration of a timeframe in minutes.

    Args:
        tf: Timeframe string (e.g., "5m", "1h", "1d")

    Returns:
        Duration in minutes

    Raises:
        ValueError: If timeframe is not recognized
    """
    tf_key = tf.strip().lower()

    if tf_key not in TF_MINUTES:
        raise ValueError(
            f"Unknown timeframe '{tf}'. "
            f"Supported: {list(TF_MINUTES.keys())}"
        )

    return TF_MINUTES[tf_key]


def tf_duration(tf: str) -> timedelta:
    """Duration of a timeframe as a timedelta."""
    return timedelta(minutes=tf_minutes(tf))


def bars_per_year(tf: str) -> float:
    """Approximate candles per year for Sharpe/Sortino annualization."""
    return MINUTES_PER_YEAR / tf_minutes(tf)
