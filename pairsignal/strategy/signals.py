"""Decision engine: technical bias gated by POI proximity and fundamentals.

Flow: ``determine_signal_type`` gives the raw technical bias,
``decide_with_poi`` only lets it through near a zone or Fibonacci level
and in line with fundamentals, and ``derive_final_type`` re-admits strong
trend signals the gate blocked.
"""

from typing import Optional

from pairsignal.config import DecisionThresholds
from pairsignal.strategy.models import IndicatorBundle, PointsOfInterest, SignalType

BULLISH = "bull"
BEARISH = "bear"
NEUTRAL = "neutral"

DEFAULT_THRESHOLDS = DecisionThresholds()


def determine_signal_type(
    bundle: IndicatorBundle,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> str:
    """Raw technical bias from trend, RSI and MACD histogram.

    A missing histogram counts as 0.
    """
    hist = bundle.macd_hist if bundle.macd_hist is not None else 0.0
    if bundle.trend_up and bundle.rsi >= thresholds.rsi_buy and hist >= thresholds.macd_confirm:
        return SignalType.BUY
    if bundle.trend_down and bundle.rsi <= thresholds.rsi_sell and hist <= -thresholds.macd_confirm:
        return SignalType.SELL
    return SignalType.HOLD


def fundamental_bias(score: float) -> str:
    if score > 55:
        return BULLISH
    if score < 45:
        return BEARISH
    return NEUTRAL


def technical_bias(signal_type: str) -> str:
    if signal_type == SignalType.BUY:
        return BULLISH
    if signal_type == SignalType.SELL:
        return BEARISH
    return NEUTRAL


def price_tolerance(
    last_close: float,
    atr: Optional[float],
    volatility: float,
    is_crypto: bool,
) -> float:
    """Distance within which price counts as "at" a zone or level."""
    swing = atr if atr is not None else volatility
    return max(swing * 0.2, last_close * (0.005 if is_crypto else 0.001))


def _near_any(value: float, targets: list[float], tolerance: float) -> bool:
    return any(abs(value - t) <= tolerance for t in targets)


def decide_with_poi(
    tech_type: str,
    fundamental_score: float,
    last_close: float,
    atr: Optional[float],
    volatility: float,
    is_crypto: bool,
    poi: PointsOfInterest,
) -> str:
    """Gate the technical bias on POI proximity and fundamental agreement.

    Buy needs price near the demand zone or a Fibonacci level and
    fundamentals that are not bearish; Sell mirrors this against the
    supply zone.  Everything else is Hold.

    Raises ``TypeError`` if *poi* is not a ``PointsOfInterest``.
    """
    if not isinstance(poi, PointsOfInterest):
        raise TypeError(f"poi must be PointsOfInterest, got {type(poi).__name__}")

    tol = price_tolerance(last_close, atr, volatility, is_crypto)
    near_demand = poi.demand_zone is not None and poi.demand_zone.contains(last_close, tol)
    near_supply = poi.supply_zone is not None and poi.supply_zone.contains(last_close, tol)
    near_fib = _near_any(last_close, poi.fibs, tol)
    fund = fundamental_bias(fundamental_score)

    bias = technical_bias(tech_type)
    if bias == BULLISH and (near_demand or near_fib) and fund != BEARISH:
        return SignalType.BUY
    if bias == BEARISH and (near_supply or near_fib) and fund != BULLISH:
        return SignalType.SELL
    return SignalType.HOLD


def derive_final_type(
    tech_type: str,
    fundamental_score: float,
    bundle: IndicatorBundle,
    poi: PointsOfInterest,
    volatility: float,
    is_crypto: bool,
    thresholds: DecisionThresholds = DEFAULT_THRESHOLDS,
) -> str:
    """POI-gated decision plus the trend relaxation pass.

    When the gate returns Hold on a raw Sell, a clear downtrend below
    SMA200 with negative momentum still yields Sell unless fundamentals
    are bullish.  A raw Buy in a clear uptrend above SMA200 with RSI just
    under the buy threshold still yields Buy.
    """
    gated = decide_with_poi(
        tech_type, fundamental_score, bundle.last_close,
        bundle.atr, volatility, is_crypto, poi,
    )
    if gated != SignalType.HOLD:
        return gated

    hist = bundle.macd_hist if bundle.macd_hist is not None else 0.0
    close = bundle.last_close

    if tech_type == SignalType.SELL:
        fundamentals_bullish = fundamental_score >= thresholds.sell_block_score
        strong_down = bundle.trend_down and close < bundle.sma200 * thresholds.trend_down_sma200_factor
        momentum = hist < 0 and bundle.rsi <= thresholds.rsi_sell + thresholds.sell_rsi_grace
        if not fundamentals_bullish and strong_down and momentum:
            return SignalType.SELL

    elif tech_type == SignalType.BUY:
        strong_up = bundle.trend_up and close > bundle.sma200 * thresholds.trend_up_sma200_factor
        near_threshold = bundle.rsi >= thresholds.rsi_buy - thresholds.buy_rsi_grace
        if strong_up and near_threshold and hist >= 0:
            return SignalType.BUY

    return SignalType.HOLD
