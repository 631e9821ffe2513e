"""Trailing stop: progressive stop management for a simulated position.

Rules, applied once per bar:
  - Trail the stop ``trail_multiple`` × ATR-proxy behind the close, only
    ever tightening it.
  - Once unrealised gain reaches ``breakeven_fraction`` × risk unit, move
    the stop to at least the entry price.

Transitions are pure: they return a new ``Position``.
"""

from dataclasses import dataclass, replace

LONG = "long"
SHORT = "short"


@dataclass(frozen=True)
class Position:
    """An open simulated trade.

    ``risk_unit`` is the initial stop distance in price terms.
    """

    side: str  # "long" or "short"
    entry: float
    stop_loss: float
    take_profit: float
    risk_unit: float
    age_in_bars: int = 0
    breakeven_applied: bool = False

    def __post_init__(self) -> None:
        if self.side not in (LONG, SHORT):
            raise ValueError(f"side must be 'long' or 'short', got '{self.side}'")

    def unrealised_gain(self, price: float) -> float:
        if self.side == LONG:
            return price - self.entry
        return self.entry - price

    def trade_return(self, exit_price: float) -> float:
        """Fractional return of closing at *exit_price*."""
        return self.unrealised_gain(exit_price) / self.entry


def open_position(
    side: str,
    price: float,
    risk_pct: float,
    reward_multiple: float = 2.0,
) -> Position:
    """Open at *price* with the stop one risk unit away."""
    risk_unit = price * risk_pct
    if side == LONG:
        stop, target = price - risk_unit, price + risk_unit * reward_multiple
    else:
        stop, target = price + risk_unit, price - risk_unit * reward_multiple
    return Position(
        side=side,
        entry=price,
        stop_loss=stop,
        take_profit=target,
        risk_unit=risk_unit,
    )


def age(position: Position) -> Position:
    return replace(position, age_in_bars=position.age_in_bars + 1)


def trail(position: Position, price: float, atr_proxy: float, trail_multiple: float = 2.0) -> Position:
    """Tighten the stop to ``trail_multiple × atr_proxy`` behind *price*.

    A looser candidate is ignored.
    """
    if atr_proxy <= 0:
        return position
    offset = trail_multiple * atr_proxy
    if position.side == LONG:
        candidate = price - offset
        if candidate > position.stop_loss:
            return replace(position, stop_loss=candidate)
    else:
        candidate = price + offset
        if candidate < position.stop_loss:
            return replace(position, stop_loss=candidate)
    return position


def apply_breakeven(position: Position, price: float, breakeven_fraction: float = 0.5) -> Position:
    """Move the stop to entry once gain reaches *breakeven_fraction* risk units."""
    if position.breakeven_applied:
        return position
    if position.unrealised_gain(price) < breakeven_fraction * position.risk_unit:
        return position
    if position.side == LONG:
        stop = max(position.stop_loss, position.entry)
    else:
        stop = min(position.stop_loss, position.entry)
    return replace(position, stop_loss=stop, breakeven_applied=True)


def stop_or_target_hit(position: Position, price: float) -> float | None:
    """Level breached by *price*, or ``None``.

    The stop is checked first when both are breached.
    """
    if position.side == LONG:
        if price <= position.stop_loss:
            return position.stop_loss
        if price >= position.take_profit:
            return position.take_profit
    else:
        if price >= position.stop_loss:
            return position.stop_loss
        if price <= position.take_profit:
            return position.take_profit
    return None
