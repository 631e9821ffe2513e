"""Human-readable rationale for a signal: sectioned and flat forms."""

from dataclasses import dataclass, field
from typing import Optional

from pairsignal.strategy.models import IndicatorBundle, Zone


@dataclass(frozen=True)
class ExplanationSection:
    title: str
    details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"title": self.title, "details": list(self.details)}


def format_macd(hist: Optional[float]) -> str:
    if hist is None:
        return "MACD n/a"
    if hist > 0:
        bias = "bullish"
    elif hist < 0:
        bias = "bearish"
    else:
        bias = "flat"
    return f"MACD hist {hist:.3f} ({bias})"


def rsi_state(rsi: float) -> str:
    if rsi < 30:
        return "oversold"
    if rsi > 70:
        return "overbought"
    return "neutral"


def build_explanation(
    signal_type: str,
    bundle: IndicatorBundle,
    fundamental_score: float,
    fundamental_factors: list[str],
    volatility_pct: float,
    risk_reward: float,
    risk_category: str,
    patterns: Optional[list[str]] = None,
    filters: Optional[list[str]] = None,
) -> tuple[str, list[ExplanationSection]]:
    """Return ``(flat_text, sections)`` describing the decision inputs."""
    patterns = patterns or []
    filters = filters or []
    close = bundle.last_close

    trend = [
        f"Price {close:.4f} vs SMA50 {bundle.sma50:.4f}",
        f"SMA200 {bundle.sma200:.4f} ({'above' if close > bundle.sma200 else 'below'})",
    ]
    if bundle.ema20 is not None and bundle.ema50 is not None:
        trend.append(f"EMA20 {bundle.ema20:.4f} vs EMA50 {bundle.ema50:.4f}")

    momentum = [f"RSI {bundle.rsi:.1f} ({rsi_state(bundle.rsi)})", format_macd(bundle.macd_hist)]
    risk = [f"Risk {risk_category}", f"Vol {volatility_pct:.2f}%", f"RR {risk_reward:.2f}"]

    sections = [
        ExplanationSection("Signal", [f"Type {signal_type}"]),
        ExplanationSection("Trend & MAs", trend),
        ExplanationSection("Momentum", momentum),
        ExplanationSection(
            "Fundamentals",
            [f"Fundamentals {round(fundamental_score)}/100", *fundamental_factors[:4]],
        ),
        ExplanationSection("Risk", risk),
    ]
    if patterns or filters:
        details: list[str] = []
        if patterns:
            details.append(f"Patterns: {', '.join(patterns[-3:])}")
        if filters:
            details.append(f"Filters: {', '.join(filters)}")
        sections.append(ExplanationSection("Patterns & Filters", details))

    flat_parts = [
        f"Type {signal_type}",
        trend[1],
        momentum[0],
        momentum[1],
        patterns[-1] if patterns else None,
        filters[0] if filters else None,
        ", ".join(risk),
    ]
    flat = " | ".join(p for p in flat_parts if p)
    return flat, sections


def poi_summary(
    demand_zone: Optional[Zone],
    supply_zone: Optional[Zone],
    fibs: list[float],
) -> str:
    parts: list[str] = []
    if demand_zone is not None:
        parts.append(f"Demand {demand_zone.low:.4f}-{demand_zone.high:.4f}")
    if supply_zone is not None:
        parts.append(f"Supply {supply_zone.low:.4f}-{supply_zone.high:.4f}")
    if fibs:
        parts.append("Fibs " + ",".join(f"{f:.4f}" for f in fibs[-3:]))
    return " | ".join(parts) or "No POIs"
