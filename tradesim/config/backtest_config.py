"""
Run configuration.

BacktestConfig is constructed once per run and never mutated. It can be
built in code or loaded from YAML:

    initial_cash: 10000          # required
    leverage: 1.0
    margin_minimum: 0.0
    maintenance_margin_rate: 0.0 # 0 disables the margin call
    fees: {maker_rate: 0.0002, taker_rate: 0.0006}
    slippage: {mode: fixed, fixed_bps: 5.0}
    liquidity: {max_fill_per_candle: null, max_volume_fraction: null}
    intrabar_policy: directional # directional | low_first | high_first
    timeframe: 1h
    periods_per_year: null       # derived from timeframe when null

Unknown keys and a missing initial_cash fail loudly.
"""

import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import DEFAULTS
from ..backtest.runtime.timeframe import bars_per_year, tf_minutes
from ..backtest.sim.execution.execution_model import ExecutionModelConfig
from ..backtest.sim.execution.fee_model import FeeConfig
from ..backtest.sim.execution.liquidity_model import LiquidityConfig
from ..backtest.sim.execution.slippage_model import SlippageConfig
from ..backtest.sim.ledger import LedgerConfig
from ..backtest.sim.pricing.intrabar_path import IntrabarPathConfig, IntrabarPolicy

logger = logging.getLogger(__name__)

_NESTED = {
    "fees": FeeConfig,
    "slippage": SlippageConfig,
    "liquidity": LiquidityConfig,
}


@dataclass(frozen=True)
class BacktestConfig:
    """Immutable per-run configuration; safe to share across concurrent runs."""
    initial_cash: float
    leverage: float = DEFAULTS.account.leverage
    margin_minimum: float = DEFAULTS.account.margin_minimum
    maintenance_margin_rate: float = DEFAULTS.margin.maintenance_margin_rate
    fees: FeeConfig = field(default_factory=FeeConfig)
    slippage: SlippageConfig = field(default_factory=SlippageConfig)
    liquidity: LiquidityConfig = field(default_factory=LiquidityConfig)
    intrabar_policy: IntrabarPolicy = IntrabarPolicy(DEFAULTS.execution.intrabar_policy)
    timeframe: str = DEFAULTS.execution.timeframe
    periods_per_year: Optional[float] = None
    debug_check_invariants: bool = False

    def __post_init__(self) -> None:
        if not self.initial_cash > 0:
            raise ValueError(f"initial_cash must be positive, got {self.initial_cash}")
        if not isinstance(self.intrabar_policy, IntrabarPolicy):
            object.__setattr__(self, "intrabar_policy", IntrabarPolicy(self.intrabar_policy))
        tf_minutes(self.timeframe)
        if self.periods_per_year is not None and self.periods_per_year <= 0:
            raise ValueError(f"periods_per_year must be positive, got {self.periods_per_year}")
        # Leverage, margin and rate checks live with the ledger config
        self.ledger_config()

    @property
    def annualization_periods(self) -> float:
        if self.periods_per_year is not None:
            return self.periods_per_year
        return bars_per_year(self.timeframe)

    def ledger_config(self) -> LedgerConfig:
        return LedgerConfig(
            leverage=self.leverage,
            margin_minimum=self.margin_minimum,
            maintenance_margin_rate=self.maintenance_margin_rate,
            debug_check_invariants=self.debug_check_invariants,
        )

    def execution_config(self) -> ExecutionModelConfig:
        return ExecutionModelConfig(
            slippage=self.slippage,
            liquidity=self.liquidity,
            intrabar=IntrabarPathConfig(policy=self.intrabar_policy),
            fees=self.fees,
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BacktestConfig":
        """
        Build from a plain dict (e.g. parsed YAML).

        Raises:
            ValueError: On missing initial_cash, unknown keys or bad values
        """
        if not isinstance(raw, dict):
            raise ValueError(f"Config must be a mapping, got {type(raw).__name__}")
        if "initial_cash" not in raw:
            raise ValueError("Config is missing required field 'initial_cash'")

        known = set(cls.__dataclass_fields__)
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = dict(raw)
        for key, config_cls in _NESTED.items():
            if key in kwargs:
                section = kwargs[key] or {}
                try:
                    kwargs[key] = config_cls(**section)
                except TypeError as e:
                    raise ValueError(f"Invalid '{key}' section: {e}") from e

        defaulted = sorted(known - set(raw) - {"debug_check_invariants", "periods_per_year"})
        if defaulted:
            logger.debug("BacktestConfig using defaults for: %s", ", ".join(defaulted))

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["intrabar_policy"] = self.intrabar_policy.value
        return data


def load_backtest_config(path: str | Path) -> BacktestConfig:
    """
    Load a BacktestConfig from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the content is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    try:
        return BacktestConfig.from_dict(raw or {})
    except ValueError as e:
        raise ValueError(f"{path}: {e}") from e
