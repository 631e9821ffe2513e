"""Tests for pairsignal.risk.levels: SL/TP placement and re-anchoring."""

import pytest

from pairsignal.config import AnchorSettings
from pairsignal.risk.levels import compute_levels, pip_size, risk_reward, should_reanchor
from pairsignal.strategy.models import SignalType, Zone


class TestComputeLevels:
    def test_buy_with_atr(self):
        levels = compute_levels(SignalType.BUY, 1.1, 0.01, 0.0, False)
        assert levels.entry == 1.1
        assert levels.sl == pytest.approx(1.09)
        assert levels.tp == pytest.approx(1.12)

    def test_sell_mirrors_buy(self):
        levels = compute_levels(SignalType.SELL, 1.1, 0.01, 0.0, False)
        assert levels.sl == pytest.approx(1.11)
        assert levels.tp == pytest.approx(1.08)

    def test_forex_fallback_distance(self):
        levels = compute_levels(SignalType.BUY, 1.1, None, 0.0, False)
        assert levels.entry - levels.sl == pytest.approx(0.0033)
        assert levels.tp - levels.entry == pytest.approx(0.0066)

    def test_crypto_fallback_distance(self):
        levels = compute_levels(SignalType.BUY, 100.0, None, 0.0, True)
        assert levels.sl == pytest.approx(99.0)
        assert levels.tp == pytest.approx(102.0)

    def test_buy_pushed_beyond_zones(self):
        levels = compute_levels(
            SignalType.BUY, 1.1, 0.01, 0.0, False,
            demand_zone=Zone(1.085, 1.087), supply_zone=Zone(1.128, 1.13),
        )
        assert levels.sl == pytest.approx(1.083)
        assert levels.tp == pytest.approx(1.132)

    def test_sell_pushed_beyond_zones(self):
        levels = compute_levels(
            SignalType.SELL, 1.1, 0.01, 0.0, False,
            demand_zone=Zone(1.07, 1.072), supply_zone=Zone(1.113, 1.115),
        )
        assert levels.sl == pytest.approx(1.117)
        assert levels.tp == pytest.approx(1.068)

    def test_zones_never_tighten(self):
        levels = compute_levels(
            SignalType.BUY, 1.1, 0.01, 0.0, False,
            demand_zone=Zone(1.098, 1.099), supply_zone=Zone(1.101, 1.102),
        )
        assert levels.sl == pytest.approx(1.09)
        assert levels.tp == pytest.approx(1.12)

    def test_hold_ignores_zones(self):
        levels = compute_levels(
            SignalType.HOLD, 1.1, 0.01, 0.0, False,
            demand_zone=Zone(1.05, 1.06),
        )
        assert levels.sl == pytest.approx(1.09)

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="signal_type"):
            compute_levels("Maybe", 1.1, 0.01, 0.0, False)

    def test_risk_reward(self):
        levels = compute_levels(SignalType.BUY, 1.1, 0.01, 0.0, False)
        assert risk_reward(levels) == pytest.approx(2.0)

    def test_risk_reward_measured_in_sell_direction(self):
        levels = compute_levels(SignalType.SELL, 1.1, 0.0033, 0.0, False)
        assert risk_reward(levels, SignalType.SELL) == pytest.approx(2.0)

    def test_hold_risk_reward_uses_long_side(self):
        levels = compute_levels(SignalType.HOLD, 1.1, 0.01, 0.0, False)
        assert risk_reward(levels, SignalType.HOLD) == pytest.approx(2.0)


class TestReanchor:
    def test_pip_size(self):
        assert pip_size("USD/JPY") == 0.01
        assert pip_size("EUR/USD") == 0.0001

    def test_ratio_trigger(self):
        assert should_reanchor("BTC/USD", True, 1.1, 1.5, None, 0.0)

    def test_invalid_live_price(self):
        assert not should_reanchor("EUR/USD", False, 1.1, 0.0, None, 0.0)
        assert not should_reanchor("EUR/USD", False, 1.1, float("nan"), None, 0.0)

    def test_crypto_atr_trigger(self):
        assert not should_reanchor("BTC/USD", True, 100.0, 100.5, 1.0, 0.0)
        assert should_reanchor("BTC/USD", True, 100.0, 106.0, 1.0, 0.0)

    def test_forex_pip_trigger(self):
        assert should_reanchor("EUR/USD", False, 1.1, 1.1012, None, 0.0)
        assert not should_reanchor("EUR/USD", False, 1.1, 1.1005, None, 0.0)

    def test_jpy_pip_size(self):
        assert not should_reanchor("USD/JPY", False, 150.0, 150.05, None, 0.0)
        assert should_reanchor("USD/JPY", False, 150.0, 150.2, None, 0.0)

    def test_custom_settings(self):
        settings = AnchorSettings(ratio=1.01, atr_multiplier=5.0, fx_pips=10)
        assert should_reanchor("BTC/USD", True, 100.0, 102.0, None, 0.0, settings)
