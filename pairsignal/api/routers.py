"""Internal API routers: /signals and /backtest endpoints.

No business logic. Delegates to the ``SignalEngine`` injected at startup.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from pairsignal.data.cache import TTLCache
from pairsignal.data.models import parse_pair
from pairsignal.engine import SignalEngine, SignalResult
from pairsignal.timeframes import DEFAULT_TIMEFRAME, sanitize_timeframe

logger = logging.getLogger("pairsignal.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine: Optional[SignalEngine] = None  # Set via configure_routers()
_signal_cache: Optional[TTLCache[SignalResult]] = None
_default_pairs: tuple[str, ...] = ()
_default_timeframe: str = DEFAULT_TIMEFRAME


def configure_routers(
    engine: SignalEngine,
    default_pairs: tuple[str, ...] = (),
    default_timeframe: str = DEFAULT_TIMEFRAME,
    signal_cache_ttl_seconds: float = 60.0,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        engine: The ``SignalEngine`` serving every request.
        default_pairs: Pairs used when ``/signals`` gets no ``pairs``.
        default_timeframe: Fallback for missing or unknown timeframes.
        signal_cache_ttl_seconds: Freshness window for computed signals.
    """
    global _engine, _signal_cache, _default_pairs, _default_timeframe  # noqa: PLW0603
    _engine = engine
    _signal_cache = TTLCache(ttl_seconds=signal_cache_ttl_seconds)
    _default_pairs = tuple(default_pairs)
    _default_timeframe = default_timeframe


def _require_engine() -> SignalEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Signal engine not configured")
    return _engine


def _parse_pairs(raw: Optional[str]) -> list[str]:
    """Split a comma-separated list, rejecting malformed pairs with HTTP 400."""
    candidates = [p.strip() for p in raw.split(",")] if raw else list(_default_pairs)
    pairs: list[str] = []
    for candidate in candidates:
        if not candidate:
            continue
        try:
            base, quote = parse_pair(candidate)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        pairs.append(f"{base}/{quote}")
    return pairs


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/signals")
async def get_signals(
    pairs: Optional[str] = Query(default=None),
    timeframe: Optional[str] = Query(default=None),
):
    """Return a signal per requested pair; fresh results are served from cache."""
    engine = _require_engine()
    pair_list = _parse_pairs(pairs)
    tf = sanitize_timeframe(timeframe, _default_timeframe)

    cached: dict[str, SignalResult] = {}
    if _signal_cache is not None:
        for pair in pair_list:
            hit = _signal_cache.get((pair, tf))
            if hit is not None:
                cached[pair] = hit

    missing = [p for p in pair_list if p not in cached]
    computed = await engine.calculate_signals(missing, tf) if missing else []
    for result in computed:
        if _signal_cache is not None and not result.stale:
            _signal_cache.put((result.pair, tf), result, source=result.source)
        cached[result.pair] = result

    return {"signals": [cached[p].to_dict() for p in pair_list if p in cached]}


@router.get("/backtest")
async def get_backtest(
    pair: str = Query(default="EUR/USD"),
    timeframe: Optional[str] = Query(default=None),
):
    """Run a backtest of the signal rules over the pair's recent history."""
    engine = _require_engine()
    try:
        parse_pair(pair)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    tf = sanitize_timeframe(timeframe, _default_timeframe)
    result = await engine.run_backtest(pair, tf)
    return result.to_dict()
