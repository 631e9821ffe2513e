"""Entry, stop-loss and take-profit levels: pure math, no I/O.

Stop distance is the ATR when available, else a fixed share of price
(1 % crypto, 0.3 % forex); the target sits at twice the stop distance.
Levels are then pushed beyond the nearest demand/supply zone so a stop
is not parked inside the zone that justified the trade.
"""

import math
from dataclasses import dataclass
from typing import Optional

from pairsignal.config import AnchorSettings
from pairsignal.strategy.models import SignalType, Zone
from pairsignal.strategy.signals import price_tolerance


@dataclass(frozen=True)
class Levels:
    """Computed entry, stop-loss and take-profit for a signal."""

    entry: float
    sl: float
    tp: float


def stop_distance(price: float, atr: Optional[float], is_crypto: bool) -> float:
    if atr is not None:
        return atr
    return price * (0.01 if is_crypto else 0.003)


def compute_levels(
    signal_type: str,
    price: float,
    atr: Optional[float],
    volatility: float,
    is_crypto: bool,
    demand_zone: Optional[Zone] = None,
    supply_zone: Optional[Zone] = None,
) -> Levels:
    """Calculate levels for *signal_type* at *price*.

    Buy:  ``sl = min(price − d, demand.low − tol)``,
          ``tp = max(price + 2d, supply.high + tol)``.
    Sell: mirrored against the supply (stop) and demand (target) zones.
    Hold: Buy-side geometry without zone adjustment.

    Raises ``ValueError`` for an unknown signal type.
    """
    if signal_type not in SignalType.ALL:
        raise ValueError(f"signal_type must be one of {SignalType.ALL}, got '{signal_type}'")

    dist = stop_distance(price, atr, is_crypto)
    tol = price_tolerance(price, atr, volatility, is_crypto)

    if signal_type == SignalType.SELL:
        sl = price + dist
        tp = price - dist * 2
        if supply_zone is not None:
            sl = max(sl, supply_zone.high + tol)
        if demand_zone is not None:
            tp = min(tp, demand_zone.low - tol)
    else:
        sl = price - dist
        tp = price + dist * 2
        if signal_type == SignalType.BUY:
            if demand_zone is not None:
                sl = min(sl, demand_zone.low - tol)
            if supply_zone is not None:
                tp = max(tp, supply_zone.high + tol)

    return Levels(entry=price, sl=sl, tp=tp)


def risk_reward(levels: Levels, signal_type: str = SignalType.BUY) -> float:
    """Reward over risk measured in the direction of *signal_type*.

    Hold uses the long side, matching its Buy-side levels.
    """
    if signal_type == SignalType.SELL:
        return (levels.entry - levels.tp) / max(1e-8, levels.sl - levels.entry)
    return (levels.tp - levels.entry) / max(1e-8, levels.entry - levels.sl)


# ── Re-anchoring ─────────────────────────────────────────────────────────


def pip_size(pair: str) -> float:
    """0.01 for JPY-quoted pairs, 0.0001 otherwise."""
    return 0.01 if "JPY" in pair.upper() else 0.0001


def should_reanchor(
    pair: str,
    is_crypto: bool,
    last_close: float,
    current_price: float,
    atr: Optional[float],
    volatility: float,
    settings: AnchorSettings = AnchorSettings(),
) -> bool:
    """True when the live price has drifted materially from the last close.

    Triggers on any of: price ratio above ``settings.ratio``, absolute
    difference above ``settings.atr_multiplier`` × ATR (or volatility),
    or (forex only) a difference of more than ``settings.fx_pips`` pips.
    A non-positive or non-finite live price never re-anchors.
    """
    if not math.isfinite(current_price) or current_price <= 0:
        return False

    low = min(current_price, last_close)
    high = max(current_price, last_close)
    ratio = high / max(1e-8, low)
    diff = abs(current_price - last_close)
    swing = atr if atr is not None else volatility

    if ratio > settings.ratio:
        return True
    if swing > 0 and diff > settings.atr_multiplier * swing:
        return True
    if not is_crypto and diff / pip_size(pair) > settings.fx_pips:
        return True
    return False
