"""
Fee model for fills.

Pure function of (order kind, fill price, quantity, maker flag):
- Market and stop-triggered fills: always taker
- Limit fills executing exactly at the posted price: maker
- Everything else: taker

Rates are decimals (0.0006 = 0.06%).
"""

from dataclasses import dataclass
from typing import Optional

from ..types import OrderKind
from ....config.constants import DEFAULTS


@dataclass(frozen=True)
class FeeConfig:
    """Maker/taker fee rates."""
    maker_rate: float = DEFAULTS.fees.maker_rate
    taker_rate: float = DEFAULTS.fees.taker_rate

    def __post_init__(self) -> None:
        if self.maker_rate < 0 or self.taker_rate < 0:
            raise ValueError(
                f"Fee rates must be non-negative: maker={self.maker_rate} taker={self.taker_rate}"
            )


class FeeModel:
    """Computes the fee charged on a single fill."""

    def __init__(self, config: Optional[FeeConfig] = None):
        self._config = config or FeeConfig()

    @property
    def config(self) -> FeeConfig:
        return self._config

    def is_maker_fill(self, kind: OrderKind, fill_price: float, posted_price: Optional[float]) -> bool:
        """Only a limit fill at exactly its posted price provides liquidity."""
        return kind == OrderKind.LIMIT and posted_price is not None and fill_price == posted_price

    def fee(
        self,
        kind: OrderKind,
        fill_price: float,
        quantity: float,
        is_maker: bool,
    ) -> float:
        """
        Fee for one fill.

        Args:
            kind: Kind of the filled order
            fill_price: Execution price
            quantity: Filled quantity
            is_maker: Whether the fill rested at its posted price

        Returns:
            Fee amount (>= 0)
        """
        maker = is_maker and kind == OrderKind.LIMIT
        rate = self._config.maker_rate if maker else self._config.taker_rate
        return abs(fill_price * quantity) * rate
