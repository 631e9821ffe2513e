"""Tests for pairsignal.data.cache."""

from pairsignal.data.cache import SeriesCache, TTLCache
from pairsignal.data.models import PriceSeries


class _Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_fresh_entry_returned(self):
        clock = _Clock()
        cache = TTLCache(ttl_seconds=60.0, clock=clock)
        cache.put("k", 1, source="test")
        clock.now += 59.9
        assert cache.get("k") == 1

    def test_expires_at_ttl(self):
        clock = _Clock()
        cache = TTLCache(ttl_seconds=60.0, clock=clock)
        cache.put("k", 1)
        clock.now += 60.0
        assert cache.get("k") is None
        # raw entry survives expiry
        assert cache.entry("k").value == 1

    def test_per_call_ttl(self):
        clock = _Clock()
        cache = TTLCache(ttl_seconds=60.0, clock=clock)
        cache.put("k", 1)
        clock.now += 10.0
        assert cache.get("k", ttl_seconds=5.0) is None

    def test_overwrite_and_clear(self):
        cache = TTLCache(ttl_seconds=60.0, clock=_Clock())
        cache.put("k", 1)
        cache.put("k", 2)
        assert cache.get("k") == 2
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0
        assert cache.get("missing") is None


class TestSeriesCache:
    def test_ttl_depends_on_timeframe(self):
        clock = _Clock()
        cache = SeriesCache(clock=clock)
        series = PriceSeries(closes=[1.0, 2.0], source="test")
        cache.put("EUR/USD", "1D", series)
        cache.put("EUR/USD", "30m", series)
        clock.now += 120.0
        assert cache.get("EUR/USD", "1D") is series
        assert cache.get("EUR/USD", "30m") is None

    def test_last_known_ignores_ttl(self):
        clock = _Clock()
        cache = SeriesCache(clock=clock)
        series = PriceSeries(closes=[1.0, 2.0], source="test")
        cache.put("EUR/USD", "1H", series)
        clock.now += 10_000.0
        assert cache.get("EUR/USD", "1H") is None
        assert cache.last_known("EUR/USD", "1H") is series
        assert cache.last_known("EUR/USD", "4H") is None
