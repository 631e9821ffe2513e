"""Drawdown over an equity curve. Pure math, no I/O."""


def max_drawdown_pct(equity_curve: list[float], initial_equity: float) -> float:
    """Worst peak-to-trough decline of *equity_curve*, in percent.

    The running peak starts at *initial_equity*.

    Raises ``ValueError`` if *initial_equity* is not positive.
    """
    if initial_equity <= 0:
        raise ValueError(f"initial_equity must be positive, got {initial_equity}")

    peak = initial_equity
    worst = 0.0
    for equity in equity_curve:
        peak = max(peak, equity)
        worst = max(worst, (peak - equity) / peak * 100.0)
    return worst
