"""Confidence scoring from technicals, candlestick patterns and volatility."""

import math
from dataclasses import dataclass, field
from typing import Optional

from pairsignal.strategy.models import IndicatorBundle

RISK_LOW = "Low"
RISK_MEDIUM = "Medium"
RISK_HIGH = "High"


@dataclass(frozen=True)
class PatternResult:
    """Candlestick patterns on the last bar and their directional weight."""

    patterns: list[str] = field(default_factory=list)
    bull_bias: float = 0.0
    bear_bias: float = 0.0


@dataclass(frozen=True)
class VolatilityFilter:
    penalty: int = 0
    notes: list[str] = field(default_factory=list)


# ── Patterns ─────────────────────────────────────────────────────────────


def detect_candlestick_patterns(
    opens: Optional[list[float]],
    highs: Optional[list[float]],
    lows: Optional[list[float]],
    closes: Optional[list[float]],
) -> PatternResult:
    """Engulfing, hammer, shooting star and doji on the last two bars.

    Needs full OHLC data; returns an empty result otherwise.
    """
    if not opens or not highs or not lows or not closes:
        return PatternResult()
    n = min(len(opens), len(highs), len(lows), len(closes))
    if n < 2:
        return PatternResult()

    o1, c1 = opens[n - 2], closes[n - 2]
    o2, c2, h2, l2 = opens[n - 1], closes[n - 1], highs[n - 1], lows[n - 1]
    body1 = abs(c1 - o1)
    body2 = abs(c2 - o2)
    range2 = h2 - l2

    patterns: list[str] = []
    bull = 0.0
    bear = 0.0

    if c2 > o2 and c1 < o1 and body2 > body1 and o2 <= c1 and c2 >= o1:
        patterns.append("Bullish Engulfing")
        bull += 0.15
    if c2 < o2 and c1 > o1 and body2 > body1 and o2 >= c1 and c2 <= o1:
        patterns.append("Bearish Engulfing")
        bear += 0.15

    if range2 > 0:
        lower_wick = max(0.0, min(o2, c2) - l2)
        upper_wick = max(0.0, h2 - max(o2, c2))
        if lower_wick / range2 > 0.6 and body2 / range2 < 0.3:
            patterns.append("Hammer")
            bull += 0.1
        if upper_wick / range2 > 0.6 and body2 / range2 < 0.3:
            patterns.append("Shooting Star")
            bear += 0.1
        if body2 / range2 < 0.1:
            patterns.append("Doji")

    return PatternResult(patterns=patterns, bull_bias=bull, bear_bias=bear)


# ── Volatility ───────────────────────────────────────────────────────────


def apply_volatility_filters(vol_ratio: float, is_crypto: bool) -> VolatilityFilter:
    """Confidence penalty for unusually high or low volatility.

    Thresholds (volatility / price): crypto 5 % high, 8 % very high,
    0.3 % low; forex 2 %, 3 % and 0.1 %.
    """
    high = 0.05 if is_crypto else 0.02
    very_high = 0.08 if is_crypto else 0.03
    low = 0.003 if is_crypto else 0.001

    penalty = 0
    notes: list[str] = []
    if vol_ratio > very_high:
        penalty += 12
        notes.append("Very high volatility")
    elif vol_ratio > high:
        penalty += 6
        notes.append("High volatility")
    if vol_ratio < low:
        penalty += 3
        notes.append("Low volatility")
    return VolatilityFilter(penalty=penalty, notes=notes)


def classify_risk(vol_ratio: float) -> str:
    if vol_ratio < 0.005:
        return RISK_LOW
    if vol_ratio < 0.015:
        return RISK_MEDIUM
    return RISK_HIGH


# ── Scores ───────────────────────────────────────────────────────────────


def macd_score(hist: Optional[float]) -> float:
    """1 for a positive histogram, 0 for negative, 0.5 when flat or missing."""
    if hist is None or hist == 0:
        return 0.5
    return 1.0 if hist > 0 else 0.0


def technical_composite(
    bundle: IndicatorBundle,
    volatility: float,
    patterns: PatternResult,
) -> float:
    """Weighted technical score, roughly 0–1 before the pattern nudge."""
    close = bundle.last_close
    trend_ref = bundle.ema50 if bundle.ema50 is not None else bundle.sma50
    trend_up = 1.0 if close > trend_ref else 0.0
    above_200 = 1.0 if close > bundle.sma200 else 0.0

    rsi = bundle.rsi
    rsi_component = 1.0 if (rsi < 30 or rsi > 70) else 1 - abs(50 - rsi) / 50

    vol_component = 0.0
    if volatility > 0 and close > 0:
        vol_component = max(0.0, 1 - (volatility / close) * 5) * 0.18

    pattern_nudge = max(-0.12, min(0.12, patterns.bull_bias - patterns.bear_bias))

    return (
        trend_up * 0.25
        + above_200 * 0.2
        + macd_score(bundle.macd_hist) * 0.2
        + rsi_component * 0.15
        + vol_component
        + pattern_nudge
    )


def score_confidence(
    composite: float,
    fundamental_score: float,
    vol_ratio: float,
    volatility_filter: VolatilityFilter,
) -> int:
    """Blend technicals (60 %) and fundamentals (40 %), then apply penalties."""
    # half-up rounding, so 52.5 scores 53
    confidence = math.floor(composite * 60 + fundamental_score * 0.4 + 0.5)
    confidence = max(0, confidence - volatility_filter.penalty)
    confidence = max(0, min(100, confidence))
    if vol_ratio > 0.02:
        confidence = max(0, confidence - 5)
    return int(confidence)
