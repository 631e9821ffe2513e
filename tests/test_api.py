"""Tests for the HTTP API: /health, /signals and /backtest."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from pairsignal.api import routers
from pairsignal.api.routers import configure_routers
from pairsignal.backtest.engine import BacktestResult
from pairsignal.engine import SignalResult
from pairsignal.main import app

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


def _signal(pair: str, timeframe: str = "30m", stale: bool = False) -> SignalResult:
    result = SignalResult.fallback(pair, timeframe, "test")
    return SignalResult.from_dict({**result.to_dict(), "stale": stale, "confidence": 40})


def _make_engine():
    engine = AsyncMock()

    async def _signals(pairs, timeframe):
        return [_signal(p, timeframe) for p in pairs]

    engine.calculate_signals.side_effect = _signals
    engine.run_backtest.return_value = BacktestResult(
        pair="EUR/USD", timeframe="1H", trades=2, wins=1, win_rate=50.0,
        total_return_pct=1.5, equity_curve=[10_000.0, 10_150.0], source="fake",
    )
    return engine


@pytest.fixture(autouse=True)
def _reset_routers():
    yield
    routers._engine = None
    routers._signal_cache = None


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestSignalsEndpoint:
    def test_unconfigured_returns_503(self):
        assert client.get("/signals").status_code == 503

    def test_default_pairs(self):
        engine = _make_engine()
        configure_routers(engine, default_pairs=("EUR/USD", "BTC/USD"), default_timeframe="30m")
        resp = client.get("/signals")
        assert resp.status_code == 200
        signals = resp.json()["signals"]
        assert [s["pair"] for s in signals] == ["EUR/USD", "BTC/USD"]
        assert signals[0]["type"] == "Hold"
        assert signals[0]["timeframe"] == "30m"

    def test_explicit_pairs_and_timeframe(self):
        engine = _make_engine()
        configure_routers(engine, default_pairs=("EUR/USD",))
        resp = client.get("/signals", params={"pairs": "gbp/usd, eth/usd", "timeframe": "4H"})
        assert resp.status_code == 200
        engine.calculate_signals.assert_awaited_once_with(["GBP/USD", "ETH/USD"], "4H")

    def test_unknown_timeframe_falls_back(self):
        engine = _make_engine()
        configure_routers(engine, default_timeframe="1H")
        client.get("/signals", params={"pairs": "EUR/USD", "timeframe": "7m"})
        engine.calculate_signals.assert_awaited_once_with(["EUR/USD"], "1H")

    def test_malformed_pair_returns_400(self):
        configure_routers(_make_engine())
        resp = client.get("/signals", params={"pairs": "EUR/USD,EURUSD"})
        assert resp.status_code == 400

    def test_fresh_results_served_from_cache(self):
        engine = _make_engine()
        configure_routers(engine, signal_cache_ttl_seconds=60.0)
        client.get("/signals", params={"pairs": "EUR/USD"})
        client.get("/signals", params={"pairs": "EUR/USD"})
        assert engine.calculate_signals.await_count == 1

    def test_stale_results_not_cached(self):
        engine = _make_engine()

        async def _stale(pairs, timeframe):
            return [_signal(p, timeframe, stale=True) for p in pairs]

        engine.calculate_signals.side_effect = _stale
        configure_routers(engine)
        client.get("/signals", params={"pairs": "EUR/USD"})
        client.get("/signals", params={"pairs": "EUR/USD"})
        assert engine.calculate_signals.await_count == 2


class TestBacktestEndpoint:
    def test_backtest_shape(self):
        engine = _make_engine()
        configure_routers(engine)
        resp = client.get("/backtest", params={"pair": "EUR/USD", "timeframe": "1H"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["trades"] == 2
        assert data["win_rate"] == 50.0
        assert data["equity_curve"] == [10_000.0, 10_150.0]
        engine.run_backtest.assert_awaited_once_with("EUR/USD", "1H")

    def test_malformed_pair_returns_400(self):
        configure_routers(_make_engine())
        assert client.get("/backtest", params={"pair": "nope"}).status_code == 400
