"""
Cash accounting ledger (the Wallet) with invariants.

Cash account with posted margin:
- opening exposure moves its margin (quantity x price / leverage) out of
  cash_balance; closing exposure returns that margin plus realized P&L
- used_margin = quantity x average entry / leverage (margin still posted)
- position_value = signed quantity x mark
- unrealized_pnl = (mark - average entry) x quantity x sign
- equity = cash_balance + unrealized_pnl
- account_value = cash_balance + used_margin + unrealized_pnl
  (what closing everything at the mark would leave)
- available_margin = cash_balance (free for new exposure)
- maintenance_margin = |position_value| x maintenance_margin_rate

Invariants:
1. equity = cash_balance + unrealized_pnl
2. account_value = equity + used_margin
3. all values finite (otherwise NumericOverflowError, fatal)
4. cash_balance changes only on fills (margin, realized P&L and fee,
   atomically) and explicit deposit / withdraw calls

Margin gate: only the exposure-increasing part of a fill is checked,
against the cash left after its closing part. With leverage 1 an
accepted opening fill keeps cash >= margin_minimum.
"""

import math
from dataclasses import dataclass

from .errors import InsufficientMarginError, NumericOverflowError
from .types import Position, WalletState
from ...config.constants import DEFAULTS


@dataclass(frozen=True)
class LedgerConfig:
    """Configuration for ledger accounting."""
    leverage: float = DEFAULTS.account.leverage
    margin_minimum: float = DEFAULTS.account.margin_minimum
    maintenance_margin_rate: float = DEFAULTS.margin.maintenance_margin_rate
    debug_check_invariants: bool = False  # Check invariants after every mutation

    def __post_init__(self) -> None:
        if not self.leverage >= 1.0:
            raise ValueError(f"leverage must be >= 1, got {self.leverage}")
        if self.margin_minimum < 0:
            raise ValueError(f"margin_minimum must be >= 0, got {self.margin_minimum}")
        if not 0.0 <= self.maintenance_margin_rate < 1.0:
            raise ValueError(
                f"maintenance_margin_rate must be in [0, 1), got {self.maintenance_margin_rate}"
            )


class Ledger:
    """
    Wallet for one run. Gatekeeper for every fill.
    """

    def __init__(
        self,
        initial_cash: float,
        config: LedgerConfig | None = None,
    ):
        """
        Initialize ledger with starting cash.

        Args:
            initial_cash: Starting cash (must be positive)
            config: Optional ledger configuration

        Raises:
            ValueError: If initial_cash is not positive
        """
        if not (math.isfinite(initial_cash) and initial_cash > 0):
            raise ValueError(f"initial_cash must be positive, got {initial_cash}")

        self._config = config or LedgerConfig()
        self._initial_cash = initial_cash

        # Core state
        self._cash_balance = initial_cash
        self._used_margin = 0.0
        self._position_value = 0.0
        self._unrealized_pnl = 0.0
        self._maintenance_margin = 0.0
        self._total_fees = 0.0

        # Derived (computed via invariants)
        self._equity = initial_cash
        self._account_value = initial_cash

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def initial_cash(self) -> float:
        return self._initial_cash

    @property
    def cash_balance(self) -> float:
        return self._cash_balance

    @property
    def equity(self) -> float:
        return self._equity

    @property
    def account_value(self) -> float:
        return self._account_value

    @property
    def used_margin(self) -> float:
        return self._used_margin

    @property
    def total_fees(self) -> float:
        return self._total_fees

    @property
    def state(self) -> WalletState:
        """Get current wallet state."""
        return WalletState(
            cash_balance=self._cash_balance,
            position_value=self._position_value,
            unrealized_pnl=self._unrealized_pnl,
            equity=self._equity,
            used_margin=self._used_margin,
            available_margin=self._cash_balance,
            account_value=self._account_value,
            total_fees=self._total_fees,
        )

    def check_invariants(self) -> list[str]:
        """
        Check all ledger invariants.

        Returns:
            List of error messages (empty if all invariants hold)
        """
        errors = []

        expected_equity = self._cash_balance + self._unrealized_pnl
        if abs(self._equity - expected_equity) > 1e-8:
            errors.append(
                f"Invariant violated: equity ({self._equity:.8f}) != "
                f"cash ({self._cash_balance:.8f}) + unrealized ({self._unrealized_pnl:.8f})"
            )

        expected_account = self._equity + self._used_margin
        if abs(self._account_value - expected_account) > 1e-8:
            errors.append(
                f"Invariant violated: account value ({self._account_value:.8f}) != "
                f"equity ({self._equity:.8f}) + used margin ({self._used_margin:.8f})"
            )

        if self._used_margin < -1e-8:
            errors.append(f"Invariant violated: used margin negative ({self._used_margin:.8f})")

        return errors

    def _recompute_derived(self) -> None:
        """Recompute derived values from core state."""
        self._equity = self._cash_balance + self._unrealized_pnl
        self._account_value = self._equity + self._used_margin

        for name, value in (
            ("cash_balance", self._cash_balance),
            ("equity", self._equity),
            ("position_value", self._position_value),
        ):
            if not math.isfinite(value):
                raise NumericOverflowError(f"Ledger {name} is not finite: {value}")

        # Debug mode: check invariants after every mutation
        if self._config.debug_check_invariants:
            errors = self.check_invariants()
            if errors:
                raise AssertionError(f"Ledger invariant violation: {errors}")

    def posted_margin(self, position: Position) -> float:
        """Margin held by `position`: its cost basis over leverage."""
        return position.quantity * position.average_entry_price / self._config.leverage

    def _set_exposure(self, position: Position, mark_price: float) -> None:
        self._position_value = position.signed_quantity * mark_price
        self._unrealized_pnl = position.unrealized_pnl
        self._maintenance_margin = abs(self._position_value) * self._config.maintenance_margin_rate

    # ─────────────────────────────────────────────────────────────────────
    # Margin gate
    # ─────────────────────────────────────────────────────────────────────

    def required_margin(self, quantity: float, price: float) -> float:
        """Margin needed to carry `quantity` at `price`."""
        return quantity * price / self._config.leverage

    def ensure_margin(
        self,
        order_id: str,
        opening_quantity: float,
        fill_price: float,
        fee: float,
        position: Position,
        closing_quantity: float = 0.0,
    ) -> float:
        """
        Gate the exposure-increasing part of a fill.

        The cash available is the current cash plus what the closing part
        of the fill gives back: its posted margin and its realized P&L at
        the fill price.

        Args:
            order_id: Order being filled (for the error)
            opening_quantity: Quantity that opens or adds exposure
            fill_price: Execution price
            fee: Fee of the whole fill
            position: Position before the fill
            closing_quantity: Quantity of the fill that reduces the position

        Returns:
            Required margin (0 for a pure reduction)

        Raises:
            InsufficientMarginError: If the fill would breach margin_minimum
        """
        if opening_quantity <= 0:
            return 0.0
        released = 0.0
        if closing_quantity > 0:
            entry = position.average_entry_price
            released = (
                self.required_margin(closing_quantity, entry)
                + (fill_price - entry) * closing_quantity * position.side.sign
            )
        available = self._cash_balance + released
        required = self.required_margin(opening_quantity, fill_price) + fee
        if available - required < self._config.margin_minimum:
            raise InsufficientMarginError(order_id, available, required)
        return required

    # ─────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────

    def apply_fill(
        self,
        realized_pnl: float,
        fee: float,
        position: Position,
        mark_price: float,
    ) -> None:
        """
        Apply the cash effect and fee of one fill in a single step.

        Margin posted for opened quantity leaves cash; margin released by
        closed quantity comes back together with the realized P&L.

        Args:
            realized_pnl: Realized P&L of the fill
            fee: Fee to deduct
            position: Position after the fill
            mark_price: Price to value the remaining position at
        """
        used_after = self.posted_margin(position)
        self._cash_balance += realized_pnl - fee - (used_after - self._used_margin)
        self._used_margin = used_after
        self._total_fees += fee
        self._set_exposure(position, mark_price)
        self._recompute_derived()

    def deposit(self, amount: float) -> WalletState:
        """Add external cash to the account."""
        if not (math.isfinite(amount) and amount > 0):
            raise ValueError(f"Deposit amount must be positive, got {amount}")
        self._cash_balance += amount
        self._recompute_derived()
        return self.state

    def withdraw(self, amount: float) -> WalletState:
        """
        Remove cash from the account.

        Raises:
            ValueError: If amount is not positive
            InsufficientMarginError: If cash would drop below margin_minimum
        """
        if not (math.isfinite(amount) and amount > 0):
            raise ValueError(f"Withdrawal amount must be positive, got {amount}")
        if self._cash_balance - amount < self._config.margin_minimum:
            raise InsufficientMarginError("withdrawal", self._cash_balance, amount)
        self._cash_balance -= amount
        self._recompute_derived()
        return self.state

    def update_for_mark_price(self, position: Position, mark_price: float) -> WalletState:
        """
        Update ledger for current mark price (MTM valuation).

        Args:
            position: Position already marked at mark_price
            mark_price: Current mark price

        Returns:
            Current wallet state
        """
        self._set_exposure(position, mark_price)
        self._recompute_derived()
        return self.state

    @property
    def maintenance_margin(self) -> float:
        return self._maintenance_margin

    @property
    def is_liquidatable(self) -> bool:
        """
        Check if the margin-call path should close the position.

        Only applicable with a configured maintenance rate and an open
        position (maintenance_margin > 0). Compares the account value,
        which includes the margin still posted.
        """
        if self._maintenance_margin <= 0:
            return False
        return self._account_value <= self._maintenance_margin
