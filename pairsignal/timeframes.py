"""Timeframe vocabulary and per-timeframe tuning tables."""

from dataclasses import dataclass

ALLOWED_TIMEFRAMES: tuple[str, ...] = ("1m", "5m", "15m", "30m", "1H", "4H", "1D")
DEFAULT_TIMEFRAME = "30m"


@dataclass(frozen=True)
class MacdPeriods:
    fast: int
    slow: int
    signal: int


# Shorter periods for sub-hour bars, standard 12/26/9 from 30m upward.
MACD_PERIODS: dict[str, MacdPeriods] = {
    "1m": MacdPeriods(5, 13, 3),
    "5m": MacdPeriods(5, 13, 3),
    "15m": MacdPeriods(8, 17, 5),
    "30m": MacdPeriods(12, 26, 9),
    "1H": MacdPeriods(12, 26, 9),
    "4H": MacdPeriods(19, 39, 9),
    "1D": MacdPeriods(12, 26, 9),
}

HISTORY_LOOKBACK: dict[str, int] = {
    "1m": 300,
    "5m": 300,
    "15m": 200,
    "30m": 180,
    "1H": 120,
    "4H": 90,
    "1D": 365,
}

# Seconds a cached series stays fresh.
SERIES_CACHE_TTL: dict[str, float] = {
    "1D": 30 * 60.0,
    "4H": 2 * 60.0,
}
_INTRADAY_CACHE_TTL = 60.0


def sanitize_timeframe(value: str | None, fallback: str = DEFAULT_TIMEFRAME) -> str:
    """Return *value* when it is an allowed timeframe, else *fallback*."""
    if not value:
        return fallback
    return value if value in ALLOWED_TIMEFRAMES else fallback


def macd_periods(timeframe: str) -> MacdPeriods:
    """MACD fast/slow/signal for *timeframe* (unknown values use 1H)."""
    return MACD_PERIODS.get(timeframe, MACD_PERIODS["1H"])


def lookback(timeframe: str) -> int:
    return HISTORY_LOOKBACK.get(timeframe, 120)


def cache_ttl_seconds(timeframe: str) -> float:
    return SERIES_CACHE_TTL.get(timeframe, _INTRADAY_CACHE_TTL)


def is_intraday(timeframe: str) -> bool:
    return timeframe != "1D"
