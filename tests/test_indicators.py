"""Tests for pairsignal.strategy.indicators: pure indicator math."""

import math

import pytest

from pairsignal.data.models import PriceSeries
from pairsignal.strategy.indicators import (
    atr_proxy,
    calc_volatility,
    calculate_atr,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    compute_indicator_series,
    compute_indicators,
    expanding_sma,
)


# ── Helpers ──────────────────────────────────────────────────────────────


def _uptrend(n: int, start: float = 100.0, growth: float = 1.005) -> list[float]:
    return [start * growth ** i for i in range(n)]


# ── Moving averages ──────────────────────────────────────────────────────


class TestMovingAverages:
    def test_sma_values(self):
        sma = calculate_sma([1.0, 2.0, 3.0, 4.0, 5.0], 3)
        assert math.isnan(sma[0]) and math.isnan(sma[1])
        assert sma[2:] == pytest.approx([2.0, 3.0, 4.0])

    def test_sma_insufficient_data(self):
        with pytest.raises(ValueError, match="SMA"):
            calculate_sma([1.0, 2.0], 3)

    def test_ema_seeded_with_sma(self):
        ema = calculate_ema([1.0, 2.0, 3.0, 4.0], 2)
        assert math.isnan(ema[0])
        assert ema[1] == pytest.approx(1.5)
        assert ema[2] == pytest.approx(2.5)
        assert ema[3] == pytest.approx(3.5)

    def test_ema_insufficient_data(self):
        with pytest.raises(ValueError, match="EMA"):
            calculate_ema([1.0], 5)

    def test_expanding_sma_caps_window(self):
        assert expanding_sma([2.0, 4.0, 6.0], max_period=2) == pytest.approx([2.0, 3.0, 5.0])


# ── RSI ──────────────────────────────────────────────────────────────────


class TestRSI:
    def test_flat_series_is_neutral(self):
        assert calculate_rsi([1.1] * 30)[-1] == 50.0

    def test_only_gains_is_100(self):
        assert calculate_rsi(_uptrend(30))[-1] == 100.0

    def test_only_losses_is_0(self):
        assert calculate_rsi(list(reversed(_uptrend(30))))[-1] == pytest.approx(0.0)

    def test_padding_before_seed(self):
        rsi = calculate_rsi(_uptrend(20), period=14)
        assert all(math.isnan(v) for v in rsi[:14])
        assert not math.isnan(rsi[14])

    def test_insufficient_data(self):
        with pytest.raises(ValueError, match="RSI"):
            calculate_rsi([1.0] * 14, period=14)


# ── MACD / ATR ───────────────────────────────────────────────────────────


class TestMACD:
    def test_uptrend_histogram_positive(self):
        macd, signal, hist = calculate_macd(_uptrend(80), 12, 26, 9)
        assert macd[-1] > 0
        assert hist[-1] > 0
        assert len(macd) == len(signal) == len(hist) == 80

    def test_insufficient_data(self):
        with pytest.raises(ValueError, match="MACD"):
            calculate_macd(_uptrend(30), 12, 26, 9)

    def test_fast_must_be_below_slow(self):
        with pytest.raises(ValueError):
            calculate_macd(_uptrend(80), 26, 12, 9)


class TestATR:
    def test_simple_average_of_true_ranges(self):
        atr = calculate_atr([2.0, 3.0, 4.0], [1.0, 2.0, 3.0], [1.5, 2.5, 3.5], period=2)
        assert atr == pytest.approx(1.5)

    def test_insufficient_data(self):
        with pytest.raises(ValueError, match="ATR"):
            calculate_atr([1.0, 2.0], [0.5, 1.5], [0.8, 1.8], period=14)

    def test_mismatched_lengths(self):
        with pytest.raises(ValueError):
            calculate_atr([1.0, 2.0, 3.0], [0.5, 1.5], [0.8, 1.8, 2.8], period=1)

    def test_atr_proxy(self):
        assert atr_proxy([1.0, 2.0, 4.0]) == pytest.approx(1.5)
        assert atr_proxy([1.0]) == 0.0


# ── Volatility ───────────────────────────────────────────────────────────


class TestVolatility:
    def test_fewer_than_three_closes(self):
        assert calc_volatility([]) == 0.0
        assert calc_volatility([1.0, 2.0]) == 0.0

    def test_population_std_of_abs_changes(self):
        # window [2, 4, 7] -> changes [2, 3] -> std 0.5
        assert calc_volatility([1.0, 2.0, 4.0, 7.0]) == pytest.approx(0.5)

    def test_constant_step_has_zero_volatility(self):
        assert calc_volatility([float(i) for i in range(100)]) == pytest.approx(0.0)


# ── Bundles ──────────────────────────────────────────────────────────────


class TestComputeIndicators:
    def test_short_series_uses_sentinels(self):
        series = PriceSeries(closes=[1.10, 1.11, 1.12, 1.11, 1.13])
        bundle = compute_indicators(series, "1H")
        assert bundle.rsi == 50.0
        assert bundle.sma50 == 1.13
        assert bundle.macd is None
        assert bundle.macd_hist is None
        assert bundle.atr is None
        assert bundle.sma200 == pytest.approx(sum(series.closes) / 5)

    def test_full_series(self):
        closes = _uptrend(120)
        series = PriceSeries(
            closes=closes,
            highs=[c * 1.001 for c in closes],
            lows=[c * 0.999 for c in closes],
        )
        bundle = compute_indicators(series, "1H")
        assert bundle.last_close == closes[-1]
        assert bundle.rsi == 100.0
        assert bundle.ema20 > bundle.ema50
        assert bundle.trend_up
        assert bundle.macd_hist is not None and bundle.macd_hist > 0
        assert bundle.atr is not None and bundle.atr > 0

    def test_flat_series_is_neutral(self):
        bundle = compute_indicators(PriceSeries(closes=[100.0] * 60), "30m")
        assert bundle.rsi == 50.0
        assert bundle.ema20 == pytest.approx(bundle.ema50)
        assert bundle.macd_hist == pytest.approx(0.0, abs=1e-9)

    def test_empty_series_raises(self):
        with pytest.raises(ValueError):
            compute_indicators(PriceSeries(closes=[]), "1H")

    def test_indicator_series_matches_last_bundle(self):
        closes = _uptrend(120)
        series = compute_indicator_series(closes, "1H")
        last = compute_indicators(PriceSeries(closes=closes), "1H")
        at_end = series.at(len(closes) - 1)
        assert at_end.rsi == pytest.approx(last.rsi)
        assert at_end.ema20 == pytest.approx(last.ema20)
        assert at_end.macd_hist == pytest.approx(last.macd_hist)
        assert at_end.sma50 == pytest.approx(last.sma50)

    def test_indicator_series_sentinels_before_warmup(self):
        series = compute_indicator_series(_uptrend(60), "1H")
        early = series.at(5)
        assert early.rsi == 50.0
        assert early.sma50 == series.closes[5]
        assert early.macd_hist is None
