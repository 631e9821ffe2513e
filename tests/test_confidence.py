"""Tests for pairsignal.strategy.confidence."""

import pytest

from pairsignal.strategy.confidence import (
    PatternResult,
    VolatilityFilter,
    apply_volatility_filters,
    classify_risk,
    detect_candlestick_patterns,
    macd_score,
    score_confidence,
    technical_composite,
)
from pairsignal.strategy.models import IndicatorBundle


# ── Helpers ──────────────────────────────────────────────────────────────


def _bundle(**overrides) -> IndicatorBundle:
    values = dict(
        last_close=1.1, rsi=50.0, sma50=1.0, sma200=1.0,
        ema20=1.05, ema50=1.0, macd_hist=0.1,
    )
    values.update(overrides)
    return IndicatorBundle(**values)


# ── Patterns ─────────────────────────────────────────────────────────────


class TestCandlestickPatterns:
    def test_bullish_engulfing(self):
        result = detect_candlestick_patterns(
            opens=[1.10, 1.085],
            highs=[1.101, 1.106],
            lows=[1.089, 1.084],
            closes=[1.09, 1.105],
        )
        assert result.patterns == ["Bullish Engulfing"]
        assert result.bull_bias == pytest.approx(0.15)
        assert result.bear_bias == 0.0

    def test_hammer(self):
        result = detect_candlestick_patterns(
            opens=[1.0, 1.0],
            highs=[1.0, 1.012],
            lows=[1.0, 0.95],
            closes=[1.0, 1.01],
        )
        assert result.patterns == ["Hammer"]
        assert result.bull_bias == pytest.approx(0.1)

    def test_doji(self):
        result = detect_candlestick_patterns(
            opens=[1.0, 1.0],
            highs=[1.01, 1.01],
            lows=[0.99, 0.99],
            closes=[1.0, 1.0005],
        )
        assert "Doji" in result.patterns

    def test_missing_ohlc_is_empty(self):
        assert detect_candlestick_patterns(None, None, None, [1.0, 2.0]) == PatternResult()
        assert detect_candlestick_patterns([1.0], [1.0], [1.0], [1.0]) == PatternResult()


# ── Volatility ───────────────────────────────────────────────────────────


class TestVolatilityFilters:
    @pytest.mark.parametrize(
        "ratio, is_crypto, penalty",
        [
            (0.01, False, 0),
            (0.025, False, 6),
            (0.035, False, 12),
            (0.0005, False, 3),
            (0.06, True, 6),
            (0.09, True, 12),
            (0.002, True, 3),
            (0.01, True, 0),
        ],
    )
    def test_penalties(self, ratio, is_crypto, penalty):
        assert apply_volatility_filters(ratio, is_crypto).penalty == penalty

    def test_notes(self):
        assert apply_volatility_filters(0.0005, False).notes == ["Low volatility"]

    def test_risk_category_boundaries(self):
        assert classify_risk(0.004) == "Low"
        assert classify_risk(0.005) == "Medium"
        assert classify_risk(0.0149) == "Medium"
        assert classify_risk(0.015) == "High"


# ── Scores ───────────────────────────────────────────────────────────────


class TestScores:
    def test_macd_score(self):
        assert macd_score(None) == 0.5
        assert macd_score(0.0) == 0.5
        assert macd_score(0.2) == 1.0
        assert macd_score(-0.2) == 0.0

    def test_composite_bullish(self):
        assert technical_composite(_bundle(), 0.0, PatternResult()) == pytest.approx(0.8)

    def test_composite_pattern_nudge_capped(self):
        patterns = PatternResult(patterns=["x"], bull_bias=0.5)
        assert technical_composite(_bundle(), 0.0, patterns) == pytest.approx(0.92)

    def test_composite_extreme_rsi_counts_fully(self):
        assert technical_composite(_bundle(rsi=80.0), 0.0, PatternResult()) == pytest.approx(0.8)
        assert technical_composite(_bundle(rsi=60.0), 0.0, PatternResult()) == pytest.approx(0.77)

    def test_confidence_blend(self):
        assert score_confidence(0.8, 50, 0.01, VolatilityFilter()) == 68

    def test_confidence_rounds_half_up(self):
        # 0.875 × 60 = 52.5 exactly
        assert score_confidence(0.875, 0, 0.0, VolatilityFilter()) == 53

    def test_confidence_penalties(self):
        assert score_confidence(0.8, 50, 0.03, VolatilityFilter(penalty=6)) == 57

    def test_confidence_clamped(self):
        assert score_confidence(2.0, 100, 0.0, VolatilityFilter()) == 100
        assert score_confidence(0.0, 0, 0.03, VolatilityFilter(penalty=12)) == 0
        assert isinstance(score_confidence(0.5, 50, 0.0, VolatilityFilter()), int)
