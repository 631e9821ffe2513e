"""Indicator snapshots, points of interest and decision types."""

from dataclasses import dataclass, field
from typing import Optional


class SignalType:
    """Decision vocabulary shared by live signals and the backtest."""

    BUY = "Buy"
    SELL = "Sell"
    HOLD = "Hold"

    ALL = (BUY, SELL, HOLD)


@dataclass(frozen=True)
class Zone:
    """A price band, e.g. demand around a swing low."""

    low: float
    high: float

    def contains(self, price: float, tolerance: float = 0.0) -> bool:
        return self.low - tolerance <= price <= self.high + tolerance


@dataclass(frozen=True)
class SwingPoint:
    index: int
    price: float


@dataclass(frozen=True)
class PointsOfInterest:
    """Fibonacci levels and demand/supply zones derived from swing points."""

    fibs: list[float] = field(default_factory=list)
    demand_zone: Optional[Zone] = None
    supply_zone: Optional[Zone] = None
    swing_highs: list[SwingPoint] = field(default_factory=list)
    swing_lows: list[SwingPoint] = field(default_factory=list)


@dataclass(frozen=True)
class IndicatorBundle:
    """Last values of every indicator for one series."""

    last_close: float
    rsi: float
    sma50: float
    sma200: float
    ema20: Optional[float]
    ema50: Optional[float]
    atr: Optional[float] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_hist: Optional[float] = None

    @property
    def trend_up(self) -> bool:
        """EMA20 above EMA50; close above SMA50 when the EMAs are missing."""
        if self.ema20 is not None and self.ema50 is not None:
            return self.ema20 > self.ema50
        return self.last_close > self.sma50

    @property
    def trend_down(self) -> bool:
        if self.ema20 is not None and self.ema50 is not None:
            return self.ema20 < self.ema50
        return self.last_close < self.sma50

    def to_dict(self) -> dict:
        return {
            "rsi": self.rsi,
            "sma50": self.sma50,
            "sma200": self.sma200,
            "ema20": self.ema20,
            "ema50": self.ema50,
            "atr": self.atr,
            "macd": self.macd,
            "macd_signal": self.macd_signal,
            "macd_hist": self.macd_hist,
        }
