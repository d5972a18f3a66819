"""
Pytest configuration: logger setup and shared fixtures.
"""

import pytest

from tradesim.backtest.sim.execution.fee_model import FeeConfig
from tradesim.backtest.sim.execution.slippage_model import SlippageConfig
from tradesim.config.backtest_config import BacktestConfig
from tradesim.utils.logger import setup_logger

from tests.factories import candle, flat_candles, wave_candles, zero_cost_config


@pytest.fixture(scope="session", autouse=True)
def test_logger(tmp_path_factory):
    """Route simulator logs to a temp dir for the whole session."""
    return setup_logger(log_dir=str(tmp_path_factory.mktemp("logs")), log_level="DEBUG")


@pytest.fixture
def make_candle():
    """Factory: make_candle(i, o, h, l, c, v=100)."""
    return candle


@pytest.fixture
def zero_cost() -> BacktestConfig:
    """10k cash, no fees, no slippage."""
    return zero_cost_config()


@pytest.fixture
def realistic_config() -> BacktestConfig:
    """0.1% slippage, 0.1% taker / 0.02% maker fees."""
    return BacktestConfig(
        initial_cash=1_000.0,
        fees=FeeConfig(maker_rate=0.0002, taker_rate=0.001),
        slippage=SlippageConfig(mode="fixed", fixed_bps=10.0),
    )


@pytest.fixture
def wave() -> list:
    return wave_candles(120)


@pytest.fixture
def flat() -> list:
    return flat_candles(10)
