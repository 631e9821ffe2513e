"""Backtest statistics: pure functions for trade-series analysis."""

from typing import Optional

from pairsignal.risk.drawdown import max_drawdown_pct


def calculate_stats(
    trades: list[dict],
    equity_curve: list[float],
    initial_capital: float,
    final_equity: Optional[float] = None,
) -> dict:
    """Compute summary statistics for a finished simulation.

    Each trade dict must have a ``"return_pct"`` key (float).  A trade is
    a win when its return is positive.

    Returns:
        Dict with ``trades``, ``wins``, ``losses``, ``win_rate`` (percent,
        0 when there are no trades), ``avg_return_pct``,
        ``profit_factor``, ``total_return_pct`` and ``max_drawdown_pct``.
    """
    if final_equity is None:
        final_equity = equity_curve[-1] if equity_curve else initial_capital

    returns = [t["return_pct"] for t in trades]
    total = len(returns)
    winners = [r for r in returns if r > 0]
    losers = [r for r in returns if r <= 0]

    gross_profit = sum(winners)
    gross_loss = abs(sum(losers))
    profit_factor: Optional[float] = (
        gross_profit / gross_loss if gross_loss > 0 else None
    )

    return {
        "trades": total,
        "wins": len(winners),
        "losses": len(losers),
        "win_rate": (len(winners) / total) * 100.0 if total else 0.0,
        "avg_return_pct": sum(returns) / total if total else 0.0,
        "profit_factor": round(profit_factor, 4) if profit_factor is not None else None,
        "total_return_pct": (final_equity / initial_capital - 1.0) * 100.0,
        "max_drawdown_pct": max_drawdown_pct(equity_curve, initial_capital),
    }
