"""
Liquidity model for partial fill constraints.

Caps the quantity an order may fill on one candle:
- max_fill_per_candle: fixed quantity cap
- max_volume_fraction: fraction of the candle's volume

Both bounds are optional; with neither set, fills are all-or-nothing.
Volume is used ONLY for liquidity estimation, never for direction.
"""

from dataclasses import dataclass
from typing import Optional

from ..types import Candle


@dataclass(frozen=True)
class LiquidityConfig:
    """Configuration for liquidity model."""
    max_fill_per_candle: Optional[float] = None
    max_volume_fraction: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_fill_per_candle is not None and self.max_fill_per_candle <= 0:
            raise ValueError(f"max_fill_per_candle must be positive, got {self.max_fill_per_candle}")
        if self.max_volume_fraction is not None and not 0 < self.max_volume_fraction <= 1:
            raise ValueError(f"max_volume_fraction must be in (0, 1], got {self.max_volume_fraction}")


class LiquidityModel:
    """Estimates maximum fillable quantity per order per candle."""

    def __init__(self, config: Optional[LiquidityConfig] = None):
        self._config = config or LiquidityConfig()

    def get_max_fillable(self, quantity: float, candle: Candle) -> float:
        """
        Calculate maximum fillable quantity for an order on this candle.

        Returns min(quantity, caps). A zero-volume candle does not bind
        the volume cap.
        """
        fillable = quantity
        if self._config.max_fill_per_candle is not None:
            fillable = min(fillable, self._config.max_fill_per_candle)
        if self._config.max_volume_fraction is not None and candle.volume > 0:
            fillable = min(fillable, candle.volume * self._config.max_volume_fraction)
        return fillable
