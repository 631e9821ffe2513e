"""Fundamentals collaborators.

The scoring service itself lives elsewhere; this module only adapts its
``{score, factors, news, sentiment_score}`` payload into ``FundamentalData``.
"""

import logging
import math
from typing import Optional, Protocol

import httpx

from pairsignal.config import Config
from pairsignal.data.models import FundamentalData, NewsItem

logger = logging.getLogger("pairsignal.fundamentals")

NEUTRAL_SCORE = 50.0


class FundamentalsProvider(Protocol):
    async def fetch(self, pair: str, timeframe: str) -> FundamentalData:
        ...


class NeutralFundamentals:
    """Always reports a neutral score with no factors or news."""

    def __init__(self, score: float = NEUTRAL_SCORE) -> None:
        self._score = score

    async def fetch(self, pair: str, timeframe: str) -> FundamentalData:
        return FundamentalData(score=self._score, factors=["Neutral fundamentals"])


class RemoteFundamentals:
    """Fetch fundamentals from an HTTP scoring service.

    Args:
        base_url: Endpoint accepting ``pair`` and ``timeframe`` query params.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, timeout: float = 2.5) -> None:
        self._base_url = base_url
        self._timeout = timeout

    async def fetch(self, pair: str, timeframe: str) -> FundamentalData:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                self._base_url,
                params={"pair": pair, "timeframe": timeframe},
                timeout=self._timeout,
            )
        resp.raise_for_status()
        return parse_fundamentals(resp.json())


def parse_fundamentals(payload: dict) -> FundamentalData:
    """Normalize a service payload; missing fields become neutral defaults.

    Raises ``ValueError`` when the payload is not a JSON object or the
    score is not a finite number.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"fundamentals payload must be an object, got {type(payload).__name__}")
    score = float(payload.get("score", NEUTRAL_SCORE))
    if not math.isfinite(score):
        raise ValueError(f"fundamentals score must be finite, got {score}")

    news = [
        NewsItem(title=str(item.get("title", "")), url=str(item.get("url", "")))
        for item in payload.get("news") or []
        if isinstance(item, dict)
    ]
    sentiment: Optional[float] = payload.get("sentiment_score")
    return FundamentalData(
        score=score,
        factors=[str(f) for f in payload.get("factors") or []],
        news=news,
        sentiment_score=float(sentiment) if sentiment is not None else None,
    )


def build_fundamentals_provider(config: Config) -> FundamentalsProvider:
    """Remote provider when ``FUNDAMENTALS_URL`` is set, neutral otherwise."""
    if config.fundamentals_url:
        logger.info("Using remote fundamentals at %s", config.fundamentals_url)
        return RemoteFundamentals(config.fundamentals_url, config.fundamentals_timeout_seconds)
    return NeutralFundamentals()
