"""In-process TTL caches: explicit objects injected where they are used.

Writes are last-writer-wins and no locking is done; readers tolerate
stale entries. Nothing is evicted except by overwrite.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from pairsignal.data.models import PriceSeries
from pairsignal.timeframes import cache_ttl_seconds

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value with its fetch time and provenance."""

    value: T
    stored_at: float
    source: str


class TTLCache(Generic[T]):
    """Key/value cache where every entry expires after *ttl_seconds*.

    Args:
        ttl_seconds: Default freshness window for entries.
        clock: Time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[Any, CacheEntry[T]] = {}

    def put(self, key: Any, value: T, source: str = "") -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), source=source)

    def get(self, key: Any, ttl_seconds: Optional[float] = None) -> Optional[T]:
        """Return the value for *key* if it is still fresh, else ``None``."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        if self._clock() - entry.stored_at >= ttl:
            return None
        return entry.value

    def entry(self, key: Any) -> Optional[CacheEntry[T]]:
        """Return the raw entry regardless of age."""
        return self._entries.get(key)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class SeriesCache:
    """Historical series keyed by ``(pair, timeframe)``.

    Freshness scales with timeframe granularity: 30 min for daily bars,
    2 min for 4H, 60 s for everything shorter.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._cache: TTLCache[PriceSeries] = TTLCache(ttl_seconds=60.0, clock=clock)

    def get(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        """Fresh series or ``None``."""
        return self._cache.get((pair, timeframe), ttl_seconds=cache_ttl_seconds(timeframe))

    def last_known(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        """Most recent series for the key, ignoring TTL."""
        entry = self._cache.entry((pair, timeframe))
        return entry.value if entry is not None else None

    def put(self, pair: str, timeframe: str, series: PriceSeries) -> None:
        self._cache.put((pair, timeframe), series, source=series.source)

    def clear(self) -> None:
        self._cache.clear()
