"""PairSignal signal engine (orchestration).

Connects market data, indicators, POIs, the decision rules, levels and
confidence scoring into one ``SignalResult`` per pair.  Multi-pair
requests run concurrently under a wall-clock budget; pairs that fail or
run out of time get a flagged Hold instead of failing the request.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Optional

import httpx

from pairsignal.backtest.engine import BacktestResult, BacktestSimulator
from pairsignal.config import Config
from pairsignal.data.fundamentals import FundamentalsProvider, NeutralFundamentals
from pairsignal.data.market_data import MarketDataClient
from pairsignal.data.models import FundamentalData, NewsItem, asset_class, is_crypto, parse_pair
from pairsignal.risk.levels import compute_levels, risk_reward, should_reanchor
from pairsignal.strategy.confidence import (
    apply_volatility_filters,
    classify_risk,
    detect_candlestick_patterns,
    score_confidence,
    technical_composite,
)
from pairsignal.strategy.explanation import ExplanationSection, build_explanation, poi_summary
from pairsignal.strategy.indicators import calc_volatility, compute_indicators
from pairsignal.strategy.models import SignalType
from pairsignal.strategy.poi import build_pois
from pairsignal.strategy.signals import derive_final_type, determine_signal_type
from pairsignal.timeframes import is_intraday, sanitize_timeframe

logger = logging.getLogger("pairsignal.engine")

HISTORY_POINTS = 120

_FUNDAMENTALS_ERRORS = (asyncio.TimeoutError, httpx.HTTPError, ValueError, KeyError, TypeError)


def _round4(value: float) -> float:
    return round(float(value), 4)


@dataclass(frozen=True)
class SignalResult:
    """Assembled recommendation for one pair on one timeframe.

    Price levels are stored rounded to 4 dp and confidence as an int, so
    ``to_dict()`` / ``from_dict()`` round-trip exactly.
    """

    pair: str
    asset_class: str
    signal_type: str
    confidence: int
    timeframe: str
    current_price: float
    last_close: float
    buy_level: float
    stop_loss: float
    take_profit: float
    risk_reward: float
    risk_category: str
    volatility_pct: float
    composite_score: int
    technical_score: int
    fundamental_score: float
    explanation: str
    explanation_sections: list[ExplanationSection] = field(default_factory=list)
    stale: bool = False
    news: list[NewsItem] = field(default_factory=list)
    indicators: dict = field(default_factory=dict)
    fundamentals: dict = field(default_factory=dict)
    history: list[float] = field(default_factory=list)
    source: str = "unknown"

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", int(self.confidence))
        for name in ("buy_level", "stop_loss", "take_profit"):
            object.__setattr__(self, name, _round4(getattr(self, name)))

    @classmethod
    def fallback(cls, pair: str, timeframe: str, reason: str) -> "SignalResult":
        """Flagged Hold used when a pair could not be computed in time."""
        return cls(
            pair=pair,
            asset_class=asset_class(pair),
            signal_type=SignalType.HOLD,
            confidence=0,
            timeframe=timeframe,
            current_price=0.0,
            last_close=0.0,
            buy_level=0.0,
            stop_loss=0.0,
            take_profit=0.0,
            risk_reward=0.0,
            risk_category="High",
            volatility_pct=0.0,
            composite_score=0,
            technical_score=0,
            fundamental_score=50.0,
            explanation=reason,
            stale=True,
            source="fallback",
        )

    def to_dict(self) -> dict:
        return {
            "pair": self.pair,
            "asset_class": self.asset_class,
            "type": self.signal_type,
            "confidence": self.confidence,
            "timeframe": self.timeframe,
            "current_price": self.current_price,
            "last_close": self.last_close,
            "buy_level": self.buy_level,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "risk_reward": self.risk_reward,
            "risk_category": self.risk_category,
            "volatility_pct": self.volatility_pct,
            "composite_score": self.composite_score,
            "technical_score": self.technical_score,
            "fundamental_score": self.fundamental_score,
            "explanation": self.explanation,
            "explanation_sections": [s.to_dict() for s in self.explanation_sections],
            "stale": self.stale,
            "news": [asdict(n) for n in self.news],
            "indicators": dict(self.indicators),
            "fundamentals": dict(self.fundamentals),
            "history": list(self.history),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SignalResult":
        return cls(
            pair=data["pair"],
            asset_class=data["asset_class"],
            signal_type=data["type"],
            confidence=data["confidence"],
            timeframe=data["timeframe"],
            current_price=data["current_price"],
            last_close=data["last_close"],
            buy_level=data["buy_level"],
            stop_loss=data["stop_loss"],
            take_profit=data["take_profit"],
            risk_reward=data["risk_reward"],
            risk_category=data["risk_category"],
            volatility_pct=data["volatility_pct"],
            composite_score=data["composite_score"],
            technical_score=data["technical_score"],
            fundamental_score=data["fundamental_score"],
            explanation=data["explanation"],
            explanation_sections=[
                ExplanationSection(title=s["title"], details=list(s["details"]))
                for s in data.get("explanation_sections", [])
            ],
            stale=data.get("stale", False),
            news=[NewsItem(title=n["title"], url=n["url"]) for n in data.get("news", [])],
            indicators=dict(data.get("indicators", {})),
            fundamentals=dict(data.get("fundamentals", {})),
            history=list(data.get("history", [])),
            source=data.get("source", "unknown"),
        )


class SignalEngine:
    """Computes signals and backtests for currency and crypto pairs.

    Args:
        config: Application configuration.
        market_data: Historical/live price client.
        fundamentals: Fundamentals collaborator; neutral when omitted.
    """

    def __init__(
        self,
        config: Config,
        market_data: Optional[MarketDataClient] = None,
        fundamentals: Optional[FundamentalsProvider] = None,
    ) -> None:
        self._config = config
        self._market_data = market_data if market_data is not None else MarketDataClient(config)
        self._fundamentals = fundamentals if fundamentals is not None else NeutralFundamentals()
        self._simulator = BacktestSimulator.from_config(config)

    # ── Single pair ──────────────────────────────────────────────────────

    async def calculate_signal(self, pair: str, timeframe: Optional[str] = None) -> SignalResult:
        """Compute the full signal for *pair*.

        Raises ``ValueError`` for a malformed pair.  Data-source failures
        degrade to cached, synthetic or neutral inputs.
        """
        base, quote = parse_pair(pair)
        pair = f"{base}/{quote}"
        timeframe = sanitize_timeframe(timeframe, self._config.default_timeframe)
        thresholds = self._config.thresholds

        series = await self._market_data.fetch_historical_series(pair, timeframe)
        closes = series.closes
        crypto = is_crypto(pair)

        bundle = compute_indicators(series, timeframe)
        last_close = bundle.last_close
        volatility = calc_volatility(closes)
        vol_ratio = volatility / last_close if last_close else 0.0

        patterns = detect_candlestick_patterns(series.opens, series.highs, series.lows, closes)
        vol_filter = apply_volatility_filters(vol_ratio, crypto)
        tech_type = determine_signal_type(bundle, thresholds)

        fundamentals = await self._fetch_fundamentals(pair, timeframe)
        composite = technical_composite(bundle, volatility, patterns)
        confidence = score_confidence(composite, fundamentals.score, vol_ratio, vol_filter)

        poi = build_pois(closes, series.highs, series.lows)
        signal_type = derive_final_type(
            tech_type, fundamentals.score, bundle, poi, volatility, crypto, thresholds,
        )

        levels = compute_levels(
            signal_type, last_close, bundle.atr, volatility, crypto,
            poi.demand_zone, poi.supply_zone,
        )
        rr = risk_reward(levels, signal_type)
        risk_category = classify_risk(vol_ratio)
        volatility_pct = vol_ratio * 100

        current_price = await self._market_data.fetch_current_price(pair, fallback=last_close)
        display = levels
        anchored = is_intraday(timeframe) or should_reanchor(
            pair, crypto, last_close, current_price, bundle.atr, volatility,
            self._config.anchor,
        )
        if anchored:
            display = compute_levels(
                signal_type, current_price, bundle.atr, volatility, crypto,
                poi.demand_zone, poi.supply_zone,
            )

        flat, sections = build_explanation(
            signal_type, bundle, fundamentals.score, fundamentals.factors,
            volatility_pct, rr, risk_category,
            patterns=patterns.patterns, filters=vol_filter.notes,
        )
        explanation_parts = [flat, f"POIs: {poi_summary(poi.demand_zone, poi.supply_zone, poi.fibs)}"]
        if anchored:
            explanation_parts.append("Anchored to live price")
        explanation_parts.append(f"src:{series.source}")
        if series.stale:
            explanation_parts.append("stale data")

        logger.debug(
            "%s %s: tech=%s final=%s confidence=%d source=%s",
            pair, timeframe, tech_type, signal_type, confidence, series.source,
        )

        score = round(composite * 100)
        return SignalResult(
            pair=pair,
            asset_class=asset_class(pair),
            signal_type=signal_type,
            confidence=confidence,
            timeframe=timeframe,
            current_price=current_price,
            last_close=last_close,
            buy_level=display.entry or current_price,
            stop_loss=display.sl,
            take_profit=display.tp,
            risk_reward=risk_reward(display, signal_type),
            risk_category=risk_category,
            volatility_pct=volatility_pct,
            composite_score=score,
            technical_score=score,
            fundamental_score=fundamentals.score,
            explanation=" | ".join(explanation_parts),
            explanation_sections=sections,
            stale=series.stale,
            news=list(fundamentals.news),
            indicators=bundle.to_dict(),
            fundamentals={"score": fundamentals.score, "factors": list(fundamentals.factors)},
            history=closes[-HISTORY_POINTS:],
            source=series.source,
        )

    async def _fetch_fundamentals(self, pair: str, timeframe: str) -> FundamentalData:
        try:
            return await asyncio.wait_for(
                self._fundamentals.fetch(pair, timeframe),
                timeout=self._config.fundamentals_timeout_seconds,
            )
        except _FUNDAMENTALS_ERRORS as exc:
            logger.warning("Fundamentals unavailable for %s (%s), using neutral", pair, exc)
            return await NeutralFundamentals().fetch(pair, timeframe)

    # ── Many pairs ───────────────────────────────────────────────────────

    async def calculate_signals(
        self,
        pairs: list[str],
        timeframe: Optional[str] = None,
        budget_seconds: Optional[float] = None,
    ) -> list[SignalResult]:
        """Compute signals for *pairs* concurrently within a time budget.

        Every pair is validated up front (``ValueError`` on the first
        malformed one).  Pairs still running when the budget expires are
        cancelled and, like pairs that raised, reported as a stale Hold.
        Results keep the order of *pairs*, duplicates removed.
        """
        timeframe = sanitize_timeframe(timeframe, self._config.default_timeframe)
        budget = budget_seconds if budget_seconds is not None else self._config.request_budget_seconds

        normalized: list[str] = []
        for pair in pairs:
            base, quote = parse_pair(pair)
            key = f"{base}/{quote}"
            if key not in normalized:
                normalized.append(key)
        if not normalized:
            return []

        tasks = {
            pair: asyncio.create_task(self.calculate_signal(pair, timeframe))
            for pair in normalized
        }
        _, pending = await asyncio.wait(tasks.values(), timeout=budget)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[SignalResult] = []
        for pair, task in tasks.items():
            if task in pending:
                logger.warning("Signal for %s exceeded the %.1fs budget", pair, budget)
                results.append(SignalResult.fallback(pair, timeframe, "Timed out, fallback result"))
                continue
            try:
                results.append(task.result())
            except Exception:
                logger.exception("Signal computation failed for %s", pair)
                results.append(SignalResult.fallback(pair, timeframe, "Signal computation failed"))
        return results

    # ── Backtest ─────────────────────────────────────────────────────────

    async def run_backtest(self, pair: str, timeframe: Optional[str] = None) -> BacktestResult:
        """Replay the decision rules over the pair's available history."""
        base, quote = parse_pair(pair)
        pair = f"{base}/{quote}"
        timeframe = sanitize_timeframe(timeframe, self._config.default_timeframe)
        series = await self._market_data.fetch_historical_series(pair, timeframe)
        return self._simulator.run(pair, timeframe, series.closes, source=series.source)
