"""Market data client: historical series and live prices with fallback.

Resolution order for a series: fresh cache → provider chain for the asset
class → last-known cached series (flagged stale) → synthetic series.  The
client never raises for provider outages.
"""

import logging
from typing import Optional, Sequence

from pairsignal.config import Config
from pairsignal.data.cache import SeriesCache
from pairsignal.data.models import PriceSeries, is_crypto, parse_pair
from pairsignal.data.providers import (
    HistoricalProvider,
    QuoteProvider,
    crypto_chain,
    default_price,
    fetch_price,
    fetch_series,
    forex_chain,
    quote_chain,
    synthetic_series,
)
from pairsignal.timeframes import lookback

logger = logging.getLogger("pairsignal.market_data")


class MarketDataClient:
    """Fetch historical and current prices for forex and crypto pairs.

    Args:
        config: Application configuration (API key, timeouts).
        cache: Shared series cache; a private one is created if omitted.
        forex_providers: Override the forex provider chain.
        crypto_providers: Override the crypto provider chain.
        quote_providers: Override the live-price chain for every pair.
    """

    def __init__(
        self,
        config: Config,
        cache: Optional[SeriesCache] = None,
        forex_providers: Optional[Sequence[HistoricalProvider]] = None,
        crypto_providers: Optional[Sequence[HistoricalProvider]] = None,
        quote_providers: Optional[Sequence[QuoteProvider]] = None,
    ) -> None:
        self._config = config
        self._timeout = config.provider_timeout_seconds
        self._cache = cache if cache is not None else SeriesCache()
        self._forex = list(forex_providers) if forex_providers is not None else forex_chain(
            config.alpha_vantage_api_key, self._timeout,
        )
        self._crypto = list(crypto_providers) if crypto_providers is not None else crypto_chain(
            self._timeout,
        )
        self._quotes = list(quote_providers) if quote_providers is not None else None

    @property
    def cache(self) -> SeriesCache:
        return self._cache

    # ── Historical ───────────────────────────────────────────────────────

    async def fetch_historical_series(self, pair: str, timeframe: str) -> PriceSeries:
        """Return a price series for *pair* on *timeframe*.

        Raises ``ValueError`` only for a malformed pair; every data-source
        failure degrades to stale or synthetic data instead.
        """
        parse_pair(pair)

        cached = self._cache.get(pair, timeframe)
        if cached is not None:
            logger.debug("Cache hit: %s %s (%s)", pair, timeframe, cached.source)
            return cached

        providers = self._crypto if is_crypto(pair) else self._forex
        series = await fetch_series(
            providers, pair, timeframe,
            timeout=self._timeout,
            min_length=self._config.min_series_length,
        )
        if series is not None:
            series = series.tail(lookback(timeframe))
            self._cache.put(pair, timeframe, series)
            logger.info(
                "Fetched %d bars for %s %s from %s",
                len(series), pair, timeframe, series.source,
            )
            return series

        last_known = self._cache.last_known(pair, timeframe)
        if last_known is not None:
            logger.warning(
                "All providers failed for %s %s, serving last-known series (%s)",
                pair, timeframe, last_known.source,
            )
            return last_known.mark_stale()

        logger.warning(
            "All providers failed for %s %s, using synthetic series", pair, timeframe,
        )
        price = await self.fetch_current_price(pair, fallback=default_price(pair))
        return synthetic_series(pair, timeframe, price)

    # ── Live price ───────────────────────────────────────────────────────

    async def fetch_current_price(self, pair: str, fallback: float) -> float:
        """Latest live price, or *fallback* when every quote source fails."""
        providers = self._quotes if self._quotes is not None else quote_chain(
            pair, self._config.alpha_vantage_api_key, self._timeout,
        )
        price = await fetch_price(providers, pair, timeout=self._timeout)
        if price is None:
            logger.info("Live price unavailable for %s, using %.5f", pair, fallback)
            return fallback
        return price
