"""Backtest engine: replays a close series through the live decision rules.

Each bar after the warm-up runs the same indicator → POI → decision path
as a live signal, then advances a Flat / InPosition state machine whose
transitions are pure functions.  No real orders are placed.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from pairsignal.backtest.stats import calculate_stats
from pairsignal.config import Config, DecisionThresholds
from pairsignal.data.models import is_crypto
from pairsignal.risk.trailing_stop import (
    LONG,
    SHORT,
    Position,
    age,
    apply_breakeven,
    open_position,
    stop_or_target_hit,
    trail,
)
from pairsignal.strategy.indicators import atr_proxy, calc_volatility, compute_indicator_series
from pairsignal.strategy.models import SignalType
from pairsignal.strategy.poi import build_pois
from pairsignal.strategy.signals import derive_final_type, determine_signal_type
from pairsignal.timeframes import macd_periods

logger = logging.getLogger("pairsignal.backtest")

EXIT_OPPOSITE = "opposite_signal"
EXIT_STOP = "stop_loss"
EXIT_TARGET = "take_profit"
EXIT_MAX_AGE = "max_bars"
EXIT_END = "end_of_data"


@dataclass(frozen=True)
class BacktestSettings:
    """Simulation parameters."""

    initial_capital: float = 10_000.0
    reward_multiple: float = 2.0
    trail_atr_multiple: float = 2.0
    breakeven_fraction: float = 0.5
    max_bars_in_trade: int = 50
    fundamental_score: float = 50.0
    crypto_risk_pct: float = 0.01
    forex_risk_pct: float = 0.003
    atr_proxy_period: int = 14

    @classmethod
    def from_config(cls, config: Config) -> "BacktestSettings":
        return cls(
            initial_capital=config.backtest_initial_capital,
            max_bars_in_trade=config.backtest_max_bars_in_trade,
        )


@dataclass(frozen=True)
class ClosedTrade:
    side: str
    entry: float
    exit: float
    return_pct: float
    opened_at: int
    closed_at: int
    bars_held: int
    reason: str

    def to_dict(self) -> dict:
        return {
            "side": self.side,
            "entry": self.entry,
            "exit": self.exit,
            "return_pct": self.return_pct,
            "opened_at": self.opened_at,
            "closed_at": self.closed_at,
            "bars_held": self.bars_held,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Bar:
    """Per-bar inputs to the state machine."""

    index: int
    price: float
    decision: str
    atr_proxy: float


@dataclass(frozen=True)
class SimulationState:
    """Everything carried from one bar to the next.

    ``position`` is ``None`` while flat.
    """

    equity: float
    position: Optional[Position] = None
    opened_at: int = -1
    trades: int = 0
    wins: int = 0
    trade_log: tuple[ClosedTrade, ...] = ()

    @property
    def is_flat(self) -> bool:
        return self.position is None


@dataclass(frozen=True)
class BacktestResult:
    """Summary of one simulation run."""

    pair: str
    timeframe: str
    trades: int
    wins: int
    win_rate: float
    total_return_pct: float
    equity_curve: list[float] = field(default_factory=list)
    max_drawdown_pct: float = 0.0
    losses: int = 0
    avg_return_pct: float = 0.0
    profit_factor: Optional[float] = None
    source: str = "unknown"
    trade_log: list[ClosedTrade] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "pair": self.pair,
            "timeframe": self.timeframe,
            "trades": self.trades,
            "wins": self.wins,
            "win_rate": self.win_rate,
            "total_return_pct": self.total_return_pct,
            "equity_curve": list(self.equity_curve),
            "max_drawdown_pct": self.max_drawdown_pct,
            "losses": self.losses,
            "avg_return_pct": self.avg_return_pct,
            "profit_factor": self.profit_factor,
            "source": self.source,
            "trade_log": [t.to_dict() for t in self.trade_log],
        }


# ── State transitions ────────────────────────────────────────────────────


def warmup_bars(timeframe: str) -> int:
    """Bars skipped before the first decision so every indicator is populated."""
    periods = macd_periods(timeframe)
    return max(50, 14, periods.slow + periods.signal)


def close_position(state: SimulationState, exit_price: float, reason: str, index: int) -> SimulationState:
    """Flatten the open position and book its return into equity.

    Raises ``ValueError`` when already flat.
    """
    position = state.position
    if position is None:
        raise ValueError("No open position to close")

    ret = position.trade_return(exit_price)
    trade = ClosedTrade(
        side=position.side,
        entry=position.entry,
        exit=exit_price,
        return_pct=ret * 100.0,
        opened_at=state.opened_at,
        closed_at=index,
        bars_held=position.age_in_bars,
        reason=reason,
    )
    return SimulationState(
        equity=state.equity * (1.0 + ret),
        position=None,
        trades=state.trades + 1,
        wins=state.wins + (1 if ret > 0 else 0),
        trade_log=state.trade_log + (trade,),
    )


def step(
    state: SimulationState,
    bar: Bar,
    settings: BacktestSettings,
    risk_pct: float,
) -> SimulationState:
    """Advance the simulation by one bar.

    Flat: a Buy or Sell opens a position at the close.
    In position: age, trail, promote to breakeven, then exit on (in
    order) an opposite signal, a stop/target breach, or max age.  An exit
    never re-enters on the same bar.
    """
    if state.position is None:
        if bar.decision == SignalType.BUY:
            side = LONG
        elif bar.decision == SignalType.SELL:
            side = SHORT
        else:
            return state
        position = open_position(side, bar.price, risk_pct, settings.reward_multiple)
        return replace(state, position=position, opened_at=bar.index)

    position = age(state.position)
    position = trail(position, bar.price, bar.atr_proxy, settings.trail_atr_multiple)
    position = apply_breakeven(position, bar.price, settings.breakeven_fraction)
    state = replace(state, position=position)

    opposite = (
        (position.side == LONG and bar.decision == SignalType.SELL)
        or (position.side == SHORT and bar.decision == SignalType.BUY)
    )
    if opposite:
        return close_position(state, bar.price, EXIT_OPPOSITE, bar.index)

    level = stop_or_target_hit(position, bar.price)
    if level is not None:
        reason = EXIT_STOP if level == position.stop_loss else EXIT_TARGET
        return close_position(state, level, reason, bar.index)

    if position.age_in_bars >= settings.max_bars_in_trade:
        return close_position(state, bar.price, EXIT_MAX_AGE, bar.index)

    return state


# ── Simulator ────────────────────────────────────────────────────────────


class BacktestSimulator:
    """Simulates the signal rules on a historical close series.

    Args:
        thresholds: Decision thresholds shared with the live signal path.
        settings: Simulation parameters.
    """

    def __init__(
        self,
        thresholds: Optional[DecisionThresholds] = None,
        settings: Optional[BacktestSettings] = None,
    ) -> None:
        self._thresholds = thresholds if thresholds is not None else DecisionThresholds()
        self._settings = settings if settings is not None else BacktestSettings()

    @classmethod
    def from_config(cls, config: Config) -> "BacktestSimulator":
        return cls(config.thresholds, BacktestSettings.from_config(config))

    @property
    def settings(self) -> BacktestSettings:
        return self._settings

    def run(
        self,
        pair: str,
        timeframe: str,
        closes: list[float],
        source: str = "unknown",
    ) -> BacktestResult:
        """Execute a full backtest over *closes* (oldest first).

        Series no longer than the warm-up produce an empty, zero-trade
        result.
        """
        settings = self._settings
        crypto = is_crypto(pair)
        risk_pct = settings.crypto_risk_pct if crypto else settings.forex_risk_pct
        n = len(closes)
        start = warmup_bars(timeframe)

        indicators = compute_indicator_series(closes, timeframe)
        state = SimulationState(equity=settings.initial_capital)
        equity_curve: list[float] = []

        for i in range(start, n):
            window = closes[: i + 1]
            bundle = indicators.at(i)
            volatility = calc_volatility(window)
            poi = build_pois(window)
            tech_type = determine_signal_type(bundle, self._thresholds)
            decision = derive_final_type(
                tech_type, settings.fundamental_score, bundle, poi,
                volatility, crypto, self._thresholds,
            )
            bar = Bar(
                index=i,
                price=closes[i],
                decision=decision,
                atr_proxy=atr_proxy(window, settings.atr_proxy_period),
            )
            state = step(state, bar, settings, risk_pct)
            equity_curve.append(state.equity)

        if state.position is not None:
            state = close_position(state, closes[-1], EXIT_END, n - 1)
            equity_curve[-1] = state.equity

        trade_dicts = [t.to_dict() for t in state.trade_log]
        stats = calculate_stats(trade_dicts, equity_curve, settings.initial_capital, state.equity)
        logger.info(
            "Backtest %s %s: %d bars, %d trades, win rate %.1f%%, return %.2f%%",
            pair, timeframe, len(equity_curve), stats["trades"],
            stats["win_rate"], stats["total_return_pct"],
        )

        return BacktestResult(
            pair=pair,
            timeframe=timeframe,
            trades=state.trades,
            wins=state.wins,
            win_rate=stats["win_rate"],
            total_return_pct=stats["total_return_pct"],
            equity_curve=equity_curve,
            max_drawdown_pct=stats["max_drawdown_pct"],
            losses=stats["losses"],
            avg_return_pct=stats["avg_return_pct"],
            profit_factor=stats["profit_factor"],
            source=source,
            trade_log=list(state.trade_log),
        )
