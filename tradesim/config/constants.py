"""
Centralized constants for the simulator.

DEFAULTS is loaded once from config/defaults.yml (next to this module)
and is immutable. Config classes fall back to it for unspecified
fields; nothing else should hardcode a default rate.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULTS_PATH = Path(__file__).with_name("defaults.yml")


# ==================== Timeframes ====================

# Timeframe string -> minutes
TF_MINUTES: Dict[str, int] = {
    "1m": 1,
    "3m": 3,
    "5m": 5,
    "15m": 15,
    "30m": 30,
    "1h": 60,
    "2h": 120,
    "4h": 240,
    "6h": 360,
    "12h": 720,
    "1d": 1440,
    "1w": 10080,
}

# Crypto markets trade ~365 days a year
MINUTES_PER_YEAR = 365 * 24 * 60


# ==================== Defaults ====================

@dataclass(frozen=True)
class AccountDefaults:
    initial_cash: float
    leverage: float
    margin_minimum: float


@dataclass(frozen=True)
class FeeDefaults:
    maker_rate: float
    taker_rate: float


@dataclass(frozen=True)
class SlippageDefaults:
    fixed_bps: float


@dataclass(frozen=True)
class MarginDefaults:
    maintenance_margin_rate: float


@dataclass(frozen=True)
class ExecutionDefaults:
    intrabar_policy: str
    timeframe: str


@dataclass(frozen=True)
class Defaults:
    """Typed view of defaults.yml."""
    account: AccountDefaults
    fees: FeeDefaults
    slippage: SlippageDefaults
    margin: MarginDefaults
    execution: ExecutionDefaults

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Defaults":
        try:
            return cls(
                account=AccountDefaults(**raw["account"]),
                fees=FeeDefaults(**raw["fees"]),
                slippage=SlippageDefaults(**raw["slippage"]),
                margin=MarginDefaults(**raw["margin"]),
                execution=ExecutionDefaults(**raw["execution"]),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed defaults file {DEFAULTS_PATH}: {e}") from e


def load_defaults(path: Path = DEFAULTS_PATH) -> Defaults:
    """Load and validate the defaults file."""
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return Defaults.from_dict(raw)


DEFAULTS = load_defaults()
