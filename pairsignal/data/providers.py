"""Market data providers: ordered strategy objects plus a fallback combinator.

Each historical provider implements ``fetch(pair, timeframe)`` and returns a
``PriceSeries`` or ``None``.  Quote providers implement
``fetch_price(pair)``.  ``first_success`` runs an ordered list of attempts,
each bounded by a timeout, and returns the first usable result; failures
are logged and the next provider is tried.
"""

import asyncio
import logging
import math
import zlib
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

import httpx
import numpy as np

from pairsignal.data.models import (
    PriceSeries,
    coingecko_id,
    derive_opens,
    is_crypto,
    parse_pair,
)
from pairsignal.timeframes import is_intraday, lookback

logger = logging.getLogger("pairsignal.providers")

T = TypeVar("T")

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"
ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"
EXCHANGERATE_HOST_URL = "https://api.exchangerate.host/timeseries"

# Failures that mean "this provider has nothing for us", not a bug.
_PROVIDER_ERRORS = (
    httpx.HTTPError, ValueError, KeyError, TypeError, IndexError, AttributeError,
)


class HistoricalProvider(Protocol):
    """Interface for a single historical-series source."""

    name: str

    async def fetch(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        ...


class QuoteProvider(Protocol):
    """Interface for a single live-price source."""

    name: str

    async def fetch_price(self, pair: str) -> Optional[float]:
        ...


# ── Combinator ───────────────────────────────────────────────────────────


async def first_success(
    attempts: Sequence[tuple[str, Callable[[], Awaitable[Optional[T]]]]],
    timeout: float,
    accept: Callable[[T], bool] = lambda value: True,
) -> Optional[T]:
    """Run *attempts* in order and return the first accepted result.

    Each attempt is raced against *timeout* seconds.  Timeouts, HTTP
    errors, and malformed payloads are logged and skipped.  Returns
    ``None`` when every attempt fails.
    """
    for name, attempt in attempts:
        try:
            result = await asyncio.wait_for(attempt(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", name, timeout)
            continue
        except _PROVIDER_ERRORS as exc:
            logger.warning("%s failed: %s", name, exc)
            continue

        if result is not None and accept(result):
            logger.debug("%s succeeded", name)
            return result
        logger.debug("%s returned no usable data", name)
    return None


async def fetch_series(
    providers: Sequence[HistoricalProvider],
    pair: str,
    timeframe: str,
    timeout: float,
    min_length: int = 2,
) -> Optional[PriceSeries]:
    """First series from *providers* with at least *min_length* closes."""
    attempts = [
        (p.name, lambda p=p: p.fetch(pair, timeframe))
        for p in providers
    ]
    return await first_success(
        attempts, timeout, accept=lambda s: len(s.closes) >= min_length,
    )


async def fetch_price(
    providers: Sequence[QuoteProvider],
    pair: str,
    timeout: float,
) -> Optional[float]:
    """First finite, positive live price from *providers*."""
    attempts = [
        (p.name, lambda p=p: p.fetch_price(pair))
        for p in providers
    ]
    return await first_success(
        attempts, timeout, accept=lambda v: math.isfinite(v) and v > 0,
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def downsample_closes(closes: list[float], factor: int = 4) -> list[float]:
    """Keep the last close of each *factor*-sized block (hourly → 4H)."""
    return [
        closes[min(i + factor - 1, len(closes) - 1)]
        for i in range(0, len(closes), factor)
    ]


def downsample_ohlc(
    opens: list[float],
    highs: list[float],
    lows: list[float],
    closes: list[float],
    factor: int = 4,
) -> tuple[list[float], list[float], list[float], list[float]]:
    """Aggregate OHLC bars into *factor*-sized blocks."""
    d_open: list[float] = []
    d_high: list[float] = []
    d_low: list[float] = []
    d_close: list[float] = []
    for i in range(0, len(closes), factor):
        end = min(i + factor, len(closes))
        d_open.append(opens[i])
        d_high.append(max(highs[i:end]))
        d_low.append(min(lows[i:end]))
        d_close.append(closes[end - 1])
    return d_open, d_high, d_low, d_close


def _series_from_ohlc(
    opens: list[float],
    highs: list[float],
    lows: list[float],
    closes: list[float],
    timeframe: str,
    source: str,
) -> PriceSeries:
    if timeframe == "4H":
        opens, highs, lows, closes = downsample_ohlc(opens, highs, lows, closes)
        source = f"{source}:4h"
    return PriceSeries(closes=closes, opens=opens, highs=highs, lows=lows, source=source)


class _HttpProvider:
    """Shared JSON-over-HTTP plumbing for the concrete providers."""

    name = "http"

    def __init__(self, timeout: float = 3.5) -> None:
        self._timeout = timeout

    async def _get_json(self, url: str, params: Optional[dict] = None):
        async with httpx.AsyncClient() as client:
            resp = await client.get(url, params=params, timeout=self._timeout)
        resp.raise_for_status()
        return resp.json()


# ── CoinGecko ────────────────────────────────────────────────────────────


def _coingecko_days(timeframe: str) -> str:
    if timeframe == "1D":
        return "400"
    if timeframe in ("1H", "4H"):
        return "14"
    return "1"


class CoinGeckoMarketChart(_HttpProvider):
    """Close-only series from CoinGecko ``market_chart``."""

    name = "coingecko:market_chart"

    async def fetch(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        base, _ = parse_pair(pair)
        if timeframe == "1D":
            interval = "daily"
        elif timeframe in ("1H", "4H"):
            interval = "hourly"
        else:
            interval = "minutely"
        data = await self._get_json(
            f"{COINGECKO_BASE_URL}/coins/{coingecko_id(base)}/market_chart",
            params={
                "vs_currency": "usd",
                "days": _coingecko_days(timeframe),
                "interval": interval,
            },
        )
        prices = data.get("prices") or []
        if not prices:
            return None
        closes = [float(p[1]) for p in prices]
        if timeframe == "4H":
            return PriceSeries(closes=downsample_closes(closes), source=f"{self.name}:4h")
        suffix = "daily" if timeframe == "1D" else "intraday"
        return PriceSeries(closes=closes, source=f"{self.name}:{suffix}")


class CoinGeckoOHLC(_HttpProvider):
    """OHLC candles from CoinGecko ``ohlc``."""

    name = "coingecko:ohlc"

    async def fetch(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        base, _ = parse_pair(pair)
        rows = await self._get_json(
            f"{COINGECKO_BASE_URL}/coins/{coingecko_id(base)}/ohlc",
            params={"vs_currency": "usd", "days": _coingecko_days(timeframe)},
        )
        if not isinstance(rows, list) or not rows:
            return None
        return _series_from_ohlc(
            opens=[float(r[1]) for r in rows],
            highs=[float(r[2]) for r in rows],
            lows=[float(r[3]) for r in rows],
            closes=[float(r[4]) for r in rows],
            timeframe=timeframe,
            source=self.name,
        )


class CoinGeckoQuote(_HttpProvider):
    """Live crypto price from CoinGecko ``coins/markets``."""

    name = "coingecko:markets"

    async def fetch_price(self, pair: str) -> Optional[float]:
        base, _ = parse_pair(pair)
        data = await self._get_json(
            f"{COINGECKO_BASE_URL}/coins/markets",
            params={"vs_currency": "usd", "ids": coingecko_id(base)},
        )
        if not data:
            return None
        return float(data[0]["current_price"])


# ── Yahoo Finance ────────────────────────────────────────────────────────


_YAHOO_INTERVALS = {"1m": "1m", "5m": "5m", "15m": "15m", "30m": "30m"}


class YahooChart(_HttpProvider):
    """Yahoo Finance chart endpoint, for both forex and crypto symbols."""

    name = "yahoo:chart"

    @staticmethod
    def symbol_for(pair: str) -> str:
        base, quote = parse_pair(pair)
        if is_crypto(pair):
            return f"{base}-{quote}"
        return f"{base}{quote}=X"

    @staticmethod
    def _range_for(pair: str, timeframe: str) -> str:
        if timeframe == "1D":
            return "5y" if is_crypto(pair) else "1y"
        if timeframe in ("1H", "4H") and not is_crypto(pair):
            return "1mo"
        return "5d"

    async def _chart(self, pair: str, params: dict) -> dict:
        data = await self._get_json(f"{YAHOO_CHART_URL}/{self.symbol_for(pair)}", params=params)
        return data["chart"]["result"][0]

    async def fetch(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        interval = "1d" if timeframe == "1D" else _YAHOO_INTERVALS.get(timeframe, "60m")
        result = await self._chart(
            pair, {"interval": interval, "range": self._range_for(pair, timeframe)},
        )
        quote = result["indicators"]["quote"][0]
        raw_closes = quote.get("close") or []
        raw_ohlc = [quote.get("open"), quote.get("high"), quote.get("low")]
        has_ohlc = all(
            isinstance(values, list) and len(values) == len(raw_closes)
            for values in raw_ohlc
        )

        # Yahoo pads missing bars with nulls; drop them to keep arrays aligned.
        opens: list[float] = []
        highs: list[float] = []
        lows: list[float] = []
        closes: list[float] = []
        for i, close in enumerate(raw_closes):
            if close is None:
                continue
            if has_ohlc:
                o, h, l = (values[i] for values in raw_ohlc)
                if o is None or h is None or l is None:
                    continue
                opens.append(float(o))
                highs.append(float(h))
                lows.append(float(l))
            closes.append(float(close))

        if not closes:
            return None
        source = "yahoo:crypto:chart" if is_crypto(pair) else self.name
        if has_ohlc:
            return _series_from_ohlc(opens, highs, lows, closes, timeframe, source)
        if timeframe == "4H":
            return PriceSeries(closes=downsample_closes(closes), source=f"{source}:4h")
        return PriceSeries(closes=closes, source=source)

    async def fetch_price(self, pair: str) -> Optional[float]:
        result = await self._chart(pair, {"interval": "1m", "range": "1d"})
        price = result["meta"].get("regularMarketPrice")
        return float(price) if price is not None else None


# ── Alpha Vantage ────────────────────────────────────────────────────────


_ALPHA_INTERVALS = {
    "1m": "1min",
    "5m": "5min",
    "15m": "15min",
    "30m": "30min",
    "1H": "60min",
    "4H": "60min",
}


def _parse_alpha_series(series: dict, limit: Optional[int] = None) -> tuple[list, list, list, list]:
    """Alpha Vantage time series (keyed by timestamp) → oldest-first OHLC."""
    rows = sorted(series.items())
    if limit is not None:
        rows = rows[-limit:]
    opens = [float(bar["1. open"]) for _, bar in rows]
    highs = [float(bar["2. high"]) for _, bar in rows]
    lows = [float(bar["3. low"]) for _, bar in rows]
    closes = [float(bar["4. close"]) for _, bar in rows]
    return opens, highs, lows, closes


class AlphaVantageFxIntraday(_HttpProvider):
    """Intraday FX candles; skipped without an API key or for daily bars."""

    name = "alpha:intraday"

    def __init__(self, api_key: str, timeout: float = 3.5) -> None:
        super().__init__(timeout)
        self._api_key = api_key

    async def fetch(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        interval = _ALPHA_INTERVALS.get(timeframe)
        if not self._api_key or not is_intraday(timeframe) or interval is None:
            return None
        base, quote = parse_pair(pair)
        data = await self._get_json(ALPHA_VANTAGE_URL, params={
            "function": "FX_INTRADAY",
            "from_symbol": base,
            "to_symbol": quote,
            "interval": interval,
            "outputsize": "compact",
            "apikey": self._api_key,
        })
        series = data.get(f"Time Series FX ({interval})")
        if not series:
            return None
        opens, highs, lows, closes = _parse_alpha_series(series, limit=300)
        return _series_from_ohlc(
            opens, highs, lows, closes, timeframe, f"{self.name}:{interval}",
        )


class AlphaVantageFxDaily(_HttpProvider):
    """Daily FX candles from Alpha Vantage."""

    name = "alpha:daily"

    def __init__(self, api_key: str, timeout: float = 3.5) -> None:
        super().__init__(timeout)
        self._api_key = api_key

    async def fetch(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        if not self._api_key:
            return None
        base, quote = parse_pair(pair)
        data = await self._get_json(ALPHA_VANTAGE_URL, params={
            "function": "FX_DAILY",
            "from_symbol": base,
            "to_symbol": quote,
            "outputsize": "full",
            "apikey": self._api_key,
        })
        series = data.get("Time Series (FX)")
        if not series:
            return None
        opens, highs, lows, closes = _parse_alpha_series(series)
        return PriceSeries(
            closes=closes, opens=opens, highs=highs, lows=lows, source=self.name,
        )


class AlphaVantageQuote(_HttpProvider):
    """Realtime FX rate from Alpha Vantage ``CURRENCY_EXCHANGE_RATE``."""

    name = "alpha:exchange_rate"

    def __init__(self, api_key: str, timeout: float = 3.5) -> None:
        super().__init__(timeout)
        self._api_key = api_key

    async def fetch_price(self, pair: str) -> Optional[float]:
        if not self._api_key:
            return None
        base, quote = parse_pair(pair)
        data = await self._get_json(ALPHA_VANTAGE_URL, params={
            "function": "CURRENCY_EXCHANGE_RATE",
            "from_currency": base,
            "to_currency": quote,
            "apikey": self._api_key,
        })
        return float(data["Realtime Currency Exchange Rate"]["5. Exchange Rate"])


# ── exchangerate.host ────────────────────────────────────────────────────


class ExchangeRateHostTimeseries(_HttpProvider):
    """~180 days of daily FX closes from exchangerate.host."""

    name = "exchangeratehost:timeseries"

    async def fetch(self, pair: str, timeframe: str) -> Optional[PriceSeries]:
        base, quote = parse_pair(pair)
        end = datetime.now(timezone.utc).date()
        start = end - timedelta(days=180)
        data = await self._get_json(EXCHANGERATE_HOST_URL, params={
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "base": base,
            "symbols": quote,
        })
        rates = data.get("rates")
        if not rates:
            return None
        closes: list[float] = []
        for day in sorted(rates):
            value = rates[day].get(quote)
            if value is not None and math.isfinite(float(value)):
                closes.append(float(value))
        if not closes:
            return None
        return PriceSeries(closes=closes, source=self.name)


# ── Chains ───────────────────────────────────────────────────────────────


def forex_chain(api_key: str, timeout: float = 3.5) -> list[HistoricalProvider]:
    """Forex providers in priority order."""
    return [
        AlphaVantageFxIntraday(api_key, timeout),
        AlphaVantageFxDaily(api_key, timeout),
        YahooChart(timeout),
        ExchangeRateHostTimeseries(timeout),
    ]


def crypto_chain(timeout: float = 3.5) -> list[HistoricalProvider]:
    """Crypto providers in priority order."""
    return [
        CoinGeckoMarketChart(timeout),
        CoinGeckoOHLC(timeout),
        YahooChart(timeout),
    ]


def quote_chain(pair: str, api_key: str, timeout: float = 3.5) -> list[QuoteProvider]:
    """Live-price providers for *pair* in priority order."""
    if is_crypto(pair):
        return [CoinGeckoQuote(timeout), YahooChart(timeout)]
    return [AlphaVantageQuote(api_key, timeout), YahooChart(timeout)]


# ── Synthetic series ─────────────────────────────────────────────────────


DEFAULT_CRYPTO_PRICE = 100.0
DEFAULT_FOREX_PRICE = 1.1


def default_price(pair: str) -> float:
    return DEFAULT_CRYPTO_PRICE if is_crypto(pair) else DEFAULT_FOREX_PRICE


def synthetic_series(pair: str, timeframe: str, price: Optional[float] = None) -> PriceSeries:
    """Deterministic sine-plus-noise OHLC series around *price*.

    Used only when every provider has failed.  The generator is seeded from
    the pair and timeframe, so repeated calls produce identical bars.
    """
    if price is None or not math.isfinite(price) or price <= 0:
        price = default_price(pair)

    n = lookback(timeframe)
    swing = price * (0.015 if is_crypto(pair) else 0.002)
    rng = np.random.default_rng(zlib.crc32(f"{pair}:{timeframe}".encode()))

    idx = np.arange(n)
    closes = price + np.sin(idx / 7) * swing * 0.25 + (rng.random(n) - 0.5) * swing * 0.05
    opens = np.array(derive_opens(closes.tolist()))
    highs = np.maximum(opens, closes) + rng.random(n) * swing * 0.1
    lows = np.minimum(opens, closes) - rng.random(n) * swing * 0.1

    return PriceSeries(
        closes=closes.tolist(),
        opens=opens.tolist(),
        highs=highs.tolist(),
        lows=lows.tolist(),
        source="synthetic",
    )
