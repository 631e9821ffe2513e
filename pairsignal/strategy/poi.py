"""Points of interest: swing points, Fibonacci retracements, demand/supply zones.

Pure functions over a close series.
"""

from typing import Optional

from pairsignal.strategy.models import PointsOfInterest, SwingPoint, Zone

FIB_RATIOS: tuple[float, ...] = (0.382, 0.5, 0.618)
ZONE_PAD = 0.001


def swing_window(length: int) -> int:
    """Half-window for swing detection, scaled to the series length."""
    return max(2, length // 40)


def find_swing_points(
    values: list[float], window: int,
) -> tuple[list[SwingPoint], list[SwingPoint]]:
    """Identify swing highs and swing lows.

    A swing high is a value with nothing higher in ``[i-window, i+window]``;
    a swing low has nothing lower.  A value that qualifies as both (a flat
    window) is recorded as a high only.  The first and last *window* values
    can never be confirmed.

    Returns ``(highs, lows)`` in index order.
    """
    highs: list[SwingPoint] = []
    lows: list[SwingPoint] = []
    for i in range(window, len(values) - window):
        price = values[i]
        neighbourhood = values[i - window : i + window + 1]
        if max(neighbourhood) <= price:
            highs.append(SwingPoint(index=i, price=price))
        elif min(neighbourhood) >= price:
            lows.append(SwingPoint(index=i, price=price))
    return highs, lows


def compute_fib_levels(start: float, end: float) -> list[float]:
    """Retracements of the move from *start* to *end*, measured back from *end*."""
    move = end - start
    return [end - move * r for r in FIB_RATIOS]


def _zone_around(price: float) -> Zone:
    return Zone(low=price * (1 - ZONE_PAD), high=price * (1 + ZONE_PAD))


def build_pois(
    closes: list[float],
    highs: Optional[list[float]] = None,
    lows: Optional[list[float]] = None,
) -> PointsOfInterest:
    """Derive Fibonacci levels and demand/supply zones from the latest swings.

    Swings are always detected on *closes*; *highs* and *lows* are accepted
    for call-site symmetry with the OHLC series.
    """
    swing_highs, swing_lows = find_swing_points(closes, swing_window(len(closes)))
    last_high = swing_highs[-1] if swing_highs else None
    last_low = swing_lows[-1] if swing_lows else None

    fibs: list[float] = []
    if last_high is not None and last_low is not None:
        if last_low.index < last_high.index:
            # Up move: retrace down from the high
            fibs = compute_fib_levels(last_low.price, last_high.price)
        else:
            fibs = compute_fib_levels(last_high.price, last_low.price)

    return PointsOfInterest(
        fibs=fibs,
        demand_zone=_zone_around(last_low.price) if last_low is not None else None,
        supply_zone=_zone_around(last_high.price) if last_high is not None else None,
        swing_highs=swing_highs,
        swing_lows=swing_lows,
    )
