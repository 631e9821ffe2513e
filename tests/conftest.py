"""Shared fixtures for the PairSignal test suite."""

from dataclasses import replace

import pytest

from pairsignal.config import AnchorSettings, Config, DecisionThresholds


def _make_config(**overrides) -> Config:
    cfg = Config(
        alpha_vantage_api_key="",
        fundamentals_url="",
        default_timeframe="30m",
        default_pairs=("EUR/USD", "BTC/USD"),
        provider_timeout_seconds=1.0,
        fundamentals_timeout_seconds=1.0,
        request_budget_seconds=5.0,
        signal_cache_ttl_seconds=60.0,
        min_series_length=20,
        thresholds=DecisionThresholds(),
        anchor=AnchorSettings(),
        backtest_initial_capital=10_000.0,
        backtest_max_bars_in_trade=50,
        log_level="WARNING",
        api_port=8080,
    )
    return replace(cfg, **overrides)


@pytest.fixture
def config() -> Config:
    return _make_config()


@pytest.fixture
def make_config():
    return _make_config
