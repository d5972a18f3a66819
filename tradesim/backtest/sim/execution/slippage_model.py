"""
Slippage model for market and stop-triggered execution.

Applies price slippage based on:
- Fixed slippage (bps of the base price)
- Absolute slippage (price units)

Slippage direction (always against the trader):
- Buys: pay more (price increases)
- Sells: receive less (price decreases)

Limit fills never slip.
"""

from dataclasses import dataclass
from typing import Optional

from ..types import OrderSide
from ....config.constants import DEFAULTS

SLIPPAGE_MODES = ("fixed", "absolute", "none")


@dataclass(frozen=True)
class SlippageConfig:
    """Configuration for slippage model."""
    mode: str = "fixed"  # "fixed" (bps), "absolute" (price units) or "none"
    fixed_bps: float = DEFAULTS.slippage.fixed_bps
    absolute: float = 0.0

    def __post_init__(self) -> None:
        if self.mode not in SLIPPAGE_MODES:
            raise ValueError(f"Unknown slippage mode '{self.mode}', expected one of {SLIPPAGE_MODES}")
        if self.fixed_bps < 0 or self.absolute < 0:
            raise ValueError("Slippage must be non-negative")


class SlippageModel:
    """Estimates execution slippage for taker fills."""

    def __init__(self, config: Optional[SlippageConfig] = None):
        """
        Initialize slippage model.

        Args:
            config: Optional configuration
        """
        self._config = config or SlippageConfig()

    @property
    def slippage_rate(self) -> float:
        """Get slippage rate as decimal (e.g., 0.001 for 10 bps)."""
        return self._config.fixed_bps / 10000.0

    def slippage_amount(self, price: float) -> float:
        """Unsigned slippage for a fill based at `price`."""
        if self._config.mode == "fixed":
            return price * self.slippage_rate
        if self._config.mode == "absolute":
            return self._config.absolute
        return 0.0

    def apply_slippage(self, price: float, side: OrderSide) -> float:
        """
        Apply slippage to execution price.

        Args:
            price: Base execution price
            side: Order side

        Returns:
            Adjusted execution price (never below zero)
        """
        amount = self.slippage_amount(price)
        if side == OrderSide.BUY:
            return price + amount
        return max(0.0, price - amount)
