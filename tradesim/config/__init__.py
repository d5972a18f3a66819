"""
Configuration: packaged defaults (constants) and the per-run BacktestConfig.

Import BacktestConfig from tradesim.config.backtest_config; this package
init stays import-free so the simulator modules can read the defaults.
"""
