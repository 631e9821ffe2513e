"""PairSignal application configuration.

Loads .env variables into a typed config object.
Out-of-range tuning values fall back to their defaults with a warning.
"""

import logging
import math
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from pairsignal.timeframes import sanitize_timeframe

logger = logging.getLogger("pairsignal.config")

_DEFAULT_PAIRS = "EUR/USD,USD/JPY,GBP/USD,BTC/USD,ETH/USD"


@dataclass(frozen=True)
class DecisionThresholds:
    """Tunable thresholds for the technical signal and its relaxation pass.

    The relaxation values are empirically tuned and kept as-is rather than
    re-derived.
    """

    rsi_buy: float = 55.0
    rsi_sell: float = 45.0
    macd_confirm: float = 0.0
    sell_rsi_grace: float = 5.0  # Sell fallback allows RSI up to rsi_sell + grace
    buy_rsi_grace: float = 2.0  # Buy fallback allows RSI down to rsi_buy - grace
    trend_down_sma200_factor: float = 0.9995
    trend_up_sma200_factor: float = 1.0005
    sell_block_score: float = 56.0  # fundamentals at or above this veto a relaxed Sell


@dataclass(frozen=True)
class AnchorSettings:
    """Thresholds for re-anchoring levels to a live price snapshot."""

    ratio: float = 1.2
    atr_multiplier: float = 5.0
    fx_pips: int = 10


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    alpha_vantage_api_key: str
    fundamentals_url: str
    default_timeframe: str
    default_pairs: tuple[str, ...]
    provider_timeout_seconds: float
    fundamentals_timeout_seconds: float
    request_budget_seconds: float
    signal_cache_ttl_seconds: float
    min_series_length: int
    thresholds: DecisionThresholds
    anchor: AnchorSettings
    backtest_initial_capital: float
    backtest_max_bars_in_trade: int
    log_level: str
    api_port: int


def _float_env(name: str, default: float, minimum: float | None = None) -> float:
    """Read a float variable; invalid or too-small values yield *default*."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    if not math.isfinite(value) or (minimum is not None and value <= minimum):
        logger.warning("Ignoring out-of-range %s=%r, using %s", name, raw, default)
        return default
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Every variable is optional; API keys default to empty strings, which
    disables the providers that need them.
    """
    load_dotenv(dotenv_path=env_path)

    pairs = tuple(
        p.strip().upper()
        for p in os.environ.get("DEFAULT_PAIRS", _DEFAULT_PAIRS).split(",")
        if p.strip()
    )

    thresholds = DecisionThresholds(
        rsi_buy=_float_env("RSI_BUY", 55.0),
        rsi_sell=_float_env("RSI_SELL", 45.0),
        macd_confirm=_float_env("MACD_CONFIRM", 0.0),
    )
    anchor = AnchorSettings(
        ratio=_float_env("LIVE_PRICE_ANCHOR_RATIO", 1.2, minimum=1.0),
        atr_multiplier=_float_env("LIVE_PRICE_ANCHOR_ATR_MULTIPLIER", 5.0, minimum=0.0),
        fx_pips=math.floor(_float_env("LIVE_PRICE_ANCHOR_FX_PIPS", 10.0, minimum=0.0)),
    )

    return Config(
        alpha_vantage_api_key=os.environ.get("ALPHA_VANTAGE_API_KEY", ""),
        fundamentals_url=os.environ.get("FUNDAMENTALS_URL", ""),
        default_timeframe=sanitize_timeframe(os.environ.get("DEFAULT_TIMEFRAME", "").strip()),
        default_pairs=pairs,
        provider_timeout_seconds=_float_env("PROVIDER_TIMEOUT_SECONDS", 3.5, minimum=0.0),
        fundamentals_timeout_seconds=_float_env("FUNDAMENTALS_TIMEOUT_SECONDS", 2.5, minimum=0.0),
        request_budget_seconds=_float_env("REQUEST_BUDGET_SECONDS", 20.0, minimum=0.0),
        signal_cache_ttl_seconds=_float_env("SIGNAL_CACHE_TTL_SECONDS", 60.0, minimum=-1.0),
        min_series_length=int(_float_env("MIN_SERIES_LENGTH", 20.0, minimum=1.0)),
        thresholds=thresholds,
        anchor=anchor,
        backtest_initial_capital=_float_env("BACKTEST_INITIAL_CAPITAL", 10_000.0, minimum=0.0),
        backtest_max_bars_in_trade=int(_float_env("BACKTEST_MAX_BARS_IN_TRADE", 50.0, minimum=0.0)),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=int(os.environ.get("API_PORT", "8080")),
    )
