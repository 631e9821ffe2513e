"""Tests for pairsignal.strategy.explanation and pairsignal.timeframes."""

from pairsignal.strategy.explanation import build_explanation, format_macd, poi_summary, rsi_state
from pairsignal.strategy.models import IndicatorBundle, Zone
from pairsignal.timeframes import cache_ttl_seconds, lookback, macd_periods, sanitize_timeframe


def _bundle() -> IndicatorBundle:
    return IndicatorBundle(
        last_close=1.1, rsi=72.0, sma50=1.09, sma200=1.08,
        ema20=1.095, ema50=1.09, macd_hist=0.0021,
    )


class TestExplanation:
    def test_flat_text(self):
        flat, _ = build_explanation("Buy", _bundle(), 61, ["Rate hike"], 0.25, 2.0, "Low")
        assert flat == (
            "Type Buy | SMA200 1.0800 (above) | RSI 72.0 (overbought) | "
            "MACD hist 0.002 (bullish) | Risk Low, Vol 0.25%, RR 2.00"
        )

    def test_sections(self):
        _, sections = build_explanation(
            "Sell", _bundle(), 40.4, ["a", "b", "c", "d", "e"], 1.0, -2.0, "Medium",
            patterns=["Doji", "Hammer"], filters=["High volatility"],
        )
        titles = [s.title for s in sections]
        assert titles == ["Signal", "Trend & MAs", "Momentum", "Fundamentals", "Risk", "Patterns & Filters"]
        assert sections[3].details == ["Fundamentals 40/100", "a", "b", "c", "d"]
        assert sections[-1].details == ["Patterns: Doji, Hammer", "Filters: High volatility"]

    def test_patterns_in_flat_text(self):
        flat, _ = build_explanation(
            "Hold", _bundle(), 50, [], 0.1, 2.0, "Low",
            patterns=["Doji", "Hammer"], filters=["Low volatility"],
        )
        assert "| Hammer | Low volatility |" in flat

    def test_helpers(self):
        assert format_macd(None) == "MACD n/a"
        assert format_macd(0.0) == "MACD hist 0.000 (flat)"
        assert rsi_state(25) == "oversold"
        assert rsi_state(50) == "neutral"

    def test_poi_summary(self):
        assert poi_summary(None, None, []) == "No POIs"
        text = poi_summary(Zone(1.0, 1.01), None, [1.2, 1.3, 1.4, 1.5])
        assert text == "Demand 1.0000-1.0100 | Fibs 1.3000,1.4000,1.5000"


class TestTimeframes:
    def test_sanitize(self):
        assert sanitize_timeframe("4H") == "4H"
        assert sanitize_timeframe("4h") == "30m"
        assert sanitize_timeframe(None, "1D") == "1D"

    def test_tables(self):
        assert macd_periods("5m").fast == 5
        assert macd_periods("unknown") == macd_periods("1H")
        assert lookback("1D") == 365
        assert cache_ttl_seconds("1D") == 1800.0
        assert cache_ttl_seconds("5m") == 60.0
