"""Technical indicators over close series. Pure functions, no I/O.

The low-level ``calculate_*`` functions return full-length series padded
with ``float('nan')`` and raise ``ValueError`` on insufficient data.
``compute_indicators`` wraps them for the live signal path and never
raises for short input.
"""

import math
from dataclasses import dataclass
from typing import Optional

from pairsignal.data.models import PriceSeries
from pairsignal.strategy.models import IndicatorBundle
from pairsignal.timeframes import macd_periods

NEUTRAL_RSI = 50.0


def _last_valid(values: list[float]) -> Optional[float]:
    value = values[-1] if values else float("nan")
    return None if math.isnan(value) else value


# ── Moving averages ──────────────────────────────────────────────────────


def calculate_sma(values: list[float], period: int) -> list[float]:
    """Simple Moving Average series.

    Requires at least *period* values.  Entries before the first full
    window are ``float('nan')``.
    """
    if period < 1:
        raise ValueError(f"SMA period must be >= 1, got {period}")
    if len(values) < period:
        raise ValueError(
            f"Need at least {period} values for SMA({period}), "
            f"got {len(values)}"
        )

    sma: list[float] = [float("nan")] * len(values)
    window_sum = sum(values[:period])
    sma[period - 1] = window_sum / period
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        sma[i] = window_sum / period
    return sma


def expanding_sma(values: list[float], max_period: int = 200) -> list[float]:
    """SMA over ``min(max_period, i + 1)`` values ending at each index.

    Matches what ``SMA(min(200, len))`` would give if the series were cut
    at every bar in turn.
    """
    out: list[float] = []
    window_sum = 0.0
    for i, value in enumerate(values):
        window_sum += value
        if i >= max_period:
            window_sum -= values[i - max_period]
        out.append(window_sum / min(max_period, i + 1))
    return out


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    values; entries before the seed are ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* values are provided.
    """
    if period < 1:
        raise ValueError(f"EMA period must be >= 1, got {period}")
    if len(values) < period:
        raise ValueError(
            f"Need at least {period} values for EMA({period}), "
            f"got {len(values)}"
        )

    k = 2.0 / (period + 1)
    ema: list[float] = [float("nan")] * len(values)

    # Seed: SMA of first *period* values
    ema[period - 1] = sum(values[:period]) / period

    for i in range(period, len(values)):
        ema[i] = values[i] * k + ema[i - 1] * (1 - k)

    return ema


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(closes: list[float], period: int = 14) -> list[float]:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RS = avg_gain / avg_loss
        6. RSI = 100 - 100 / (1 + RS)

    A window with neither gains nor losses reads 50.

    Requires at least ``period + 1`` closes.
    """
    if len(closes) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} closes for RSI({period}), "
            f"got {len(closes)}"
        )

    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    rsi: list[float] = [float("nan")] * len(closes)

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    def _rsi_from_avgs(ag: float, al: float) -> float:
        if al == 0:
            return NEUTRAL_RSI if ag == 0 else 100.0
        rs = ag / al
        return 100.0 - 100.0 / (1.0 + rs)

    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        # Index in rsi is i+1 because deltas are offset by 1
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return rsi


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    closes: list[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[list[float], list[float], list[float]]:
    """MACD line, signal line and histogram.

    MACD = EMA(fast) − EMA(slow); signal = EMA(signal) of the MACD line;
    histogram = MACD − signal.  Requires ``slow + signal − 1`` closes.

    Returns ``(macd, signal, histogram)``, each the length of *closes*.
    """
    if fast >= slow:
        raise ValueError(f"MACD fast period ({fast}) must be below slow ({slow})")
    min_len = slow + signal - 1
    if len(closes) < min_len:
        raise ValueError(
            f"Need at least {min_len} closes for MACD({fast},{slow},{signal}), "
            f"got {len(closes)}"
        )

    n = len(closes)
    ema_fast = calculate_ema(closes, fast)
    ema_slow = calculate_ema(closes, slow)

    start = slow - 1
    macd_line: list[float] = [float("nan")] * n
    for i in range(start, n):
        macd_line[i] = ema_fast[i] - ema_slow[i]

    signal_tail = calculate_ema(macd_line[start:], signal)
    signal_line = [float("nan")] * start + signal_tail
    histogram = [m - s for m, s in zip(macd_line, signal_line)]
    return macd_line, signal_line, histogram


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    period: int = 14,
) -> float:
    """Calculate the Average True Range over *period* bars.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Requires at least ``period + 1`` bars (need a previous close for TR).
    Returns the simple average of the last *period* true ranges.

    Raises ``ValueError`` if insufficient data or mismatched lengths.
    """
    if not (len(highs) == len(lows) == len(closes)):
        raise ValueError(
            f"highs/lows/closes lengths differ: {len(highs)}/{len(lows)}/{len(closes)}"
        )
    if period < 1 or len(closes) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} bars for ATR({period}), "
            f"got {len(closes)}"
        )

    true_ranges: list[float] = []
    for i in range(1, len(closes)):
        high = highs[i]
        low = lows[i]
        prev_close = closes[i - 1]
        true_ranges.append(max(high - low, abs(high - prev_close), abs(low - prev_close)))

    recent = true_ranges[-period:]
    return sum(recent) / len(recent)


def atr_proxy(closes: list[float], period: int = 14) -> float:
    """Mean absolute close-to-close change over the last *period* moves.

    Stands in for ATR when only closes are available.
    """
    recent = closes[-(period + 1):]
    if len(recent) < 2:
        return 0.0
    moves = [abs(recent[i] - recent[i - 1]) for i in range(1, len(recent))]
    return sum(moves) / len(moves)


# ── Volatility ───────────────────────────────────────────────────────────


def calc_volatility(closes: list[float]) -> float:
    """Population std-dev of absolute close-to-close changes.

    Uses the last ``min(50, len − 1)`` closes; fewer than three closes
    give 0.
    """
    if not closes:
        return 0.0
    n = min(50, len(closes) - 1)
    if n <= 1:
        return 0.0
    window = closes[-n:]
    deltas = [abs(window[i] - window[i - 1]) for i in range(1, len(window))]
    mean = sum(deltas) / len(deltas)
    variance = sum((d - mean) ** 2 for d in deltas) / len(deltas)
    return math.sqrt(variance)


# ── Bundles ──────────────────────────────────────────────────────────────


def compute_indicators(series: PriceSeries, timeframe: str) -> IndicatorBundle:
    """Latest indicator values for *series*.

    Indicators that cannot be computed from the available history fall
    back to neutral values: RSI 50, moving averages at the last close,
    MACD and ATR missing.

    Raises ``ValueError`` only for an empty series.
    """
    closes = series.closes
    if not closes:
        raise ValueError("Cannot compute indicators for an empty series")
    n = len(closes)
    last_close = closes[-1]

    try:
        rsi = _last_valid(calculate_rsi(closes, 14))
    except ValueError:
        rsi = None

    try:
        sma50 = _last_valid(calculate_sma(closes, 50))
    except ValueError:
        sma50 = None

    sma200 = _last_valid(calculate_sma(closes, min(200, n)))
    ema20 = _last_valid(calculate_ema(closes, min(20, n)))
    ema50 = _last_valid(calculate_ema(closes, min(50, n)))

    periods = macd_periods(timeframe)
    try:
        macd_line, signal_line, hist = calculate_macd(
            closes, periods.fast, periods.slow, periods.signal,
        )
        macd, macd_signal, macd_hist = (
            _last_valid(macd_line), _last_valid(signal_line), _last_valid(hist),
        )
    except ValueError:
        macd = macd_signal = macd_hist = None

    atr: Optional[float] = None
    if series.has_high_low and n >= 2:
        atr = calculate_atr(series.highs, series.lows, closes, period=min(14, n - 1))

    return IndicatorBundle(
        last_close=last_close,
        rsi=rsi if rsi is not None else NEUTRAL_RSI,
        sma50=sma50 if sma50 is not None else last_close,
        sma200=sma200 if sma200 is not None else last_close,
        ema20=ema20 if ema20 is not None else last_close,
        ema50=ema50 if ema50 is not None else last_close,
        atr=atr,
        macd=macd,
        macd_signal=macd_signal,
        macd_hist=macd_hist,
    )


@dataclass(frozen=True)
class IndicatorSeries:
    """Full-length indicator arrays for replaying a close series bar by bar."""

    closes: list[float]
    rsi: list[float]
    sma50: list[float]
    sma200: list[float]
    ema20: list[float]
    ema50: list[float]
    macd: list[float]
    macd_signal: list[float]
    macd_hist: list[float]

    def at(self, index: int) -> IndicatorBundle:
        """Bundle as of bar *index*; unavailable values use the neutral sentinels."""
        close = self.closes[index]

        def _value(values: list[float], fallback):
            value = values[index]
            return fallback if math.isnan(value) else value

        return IndicatorBundle(
            last_close=close,
            rsi=_value(self.rsi, NEUTRAL_RSI),
            sma50=_value(self.sma50, close),
            sma200=_value(self.sma200, close),
            ema20=_value(self.ema20, close),
            ema50=_value(self.ema50, close),
            macd=_value(self.macd, None),
            macd_signal=_value(self.macd_signal, None),
            macd_hist=_value(self.macd_hist, None),
        )


def compute_indicator_series(closes: list[float], timeframe: str) -> IndicatorSeries:
    """Compute every indicator array once for a whole close series."""
    n = len(closes)
    nan_series = [float("nan")] * n

    def _or_nan(fn, *args) -> list[float]:
        try:
            return fn(*args)
        except ValueError:
            return list(nan_series)

    periods = macd_periods(timeframe)
    try:
        macd_line, signal_line, hist = calculate_macd(
            closes, periods.fast, periods.slow, periods.signal,
        )
    except ValueError:
        macd_line, signal_line, hist = list(nan_series), list(nan_series), list(nan_series)

    return IndicatorSeries(
        closes=list(closes),
        rsi=_or_nan(calculate_rsi, closes, 14),
        sma50=_or_nan(calculate_sma, closes, 50),
        sma200=expanding_sma(closes, 200),
        ema20=_or_nan(calculate_ema, closes, 20),
        ema50=_or_nan(calculate_ema, closes, 50),
        macd=macd_line,
        macd_signal=signal_line,
        macd_hist=hist,
    )
