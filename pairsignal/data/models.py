"""Price series, fundamentals and pair metadata."""

import re
from dataclasses import dataclass, field, replace
from typing import Optional


# ── Pair metadata ────────────────────────────────────────────────────────

# Explicit set so that not every USD pair is treated as crypto.
CRYPTO_SYMBOLS: frozenset[str] = frozenset({
    "BTC", "ETH", "SOL", "XRP", "ADA", "DOGE", "LTC", "BNB", "DOT",
    "AVAX", "LINK", "MATIC", "TRX", "SHIB", "BCH", "XLM", "NEAR", "UNI",
})

COINGECKO_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "LTC": "litecoin",
    "BNB": "binancecoin",
    "DOT": "polkadot",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "TRX": "tron",
    "SHIB": "shiba-inu",
    "BCH": "bitcoin-cash",
    "XLM": "stellar",
    "NEAR": "near",
    "UNI": "uniswap",
}

_PAIR_RE = re.compile(r"^[A-Z0-9]{2,10}/[A-Z0-9]{2,10}$")


def parse_pair(pair: str) -> tuple[str, str]:
    """Split ``"EUR/USD"`` into ``("EUR", "USD")``.

    Raises ``ValueError`` for anything that is not ``BASE/QUOTE``.
    """
    normalized = (pair or "").strip().upper()
    if not _PAIR_RE.match(normalized):
        raise ValueError(f"pair must look like 'BASE/QUOTE', got {pair!r}")
    base, quote = normalized.split("/")
    return base, quote


def is_crypto(pair: str) -> bool:
    """True when the pair's base symbol is a known crypto asset."""
    base = pair.split("/")[0].strip().upper()
    return base in CRYPTO_SYMBOLS


def asset_class(pair: str) -> str:
    return "Crypto" if is_crypto(pair) else "Forex"


def coingecko_id(symbol: str) -> str:
    return COINGECKO_IDS.get(symbol.upper(), symbol.lower())


# ── Series ───────────────────────────────────────────────────────────────


def derive_opens(closes: list[float]) -> list[float]:
    """Opens approximated by the previous close (first open = first close)."""
    if not closes:
        return []
    return [closes[0]] + closes[:-1]


@dataclass(frozen=True)
class PriceSeries:
    """Chronological price history (oldest first) from a single provider.

    ``opens``, ``highs`` and ``lows`` are optional but, when present, must
    match ``closes`` in length.
    """

    closes: list[float]
    opens: Optional[list[float]] = None
    highs: Optional[list[float]] = None
    lows: Optional[list[float]] = None
    source: str = "unknown"
    stale: bool = False

    def __post_init__(self) -> None:
        n = len(self.closes)
        for name in ("opens", "highs", "lows"):
            values = getattr(self, name)
            if values is not None and len(values) != n:
                raise ValueError(
                    f"{name} has {len(values)} values, closes has {n}"
                )

    @property
    def last_close(self) -> float:
        return self.closes[-1]

    @property
    def has_high_low(self) -> bool:
        return self.highs is not None and self.lows is not None

    @property
    def is_synthetic(self) -> bool:
        return self.source.startswith("synthetic")

    def __len__(self) -> int:
        return len(self.closes)

    def tail(self, count: int) -> "PriceSeries":
        """Return the most recent *count* bars, deriving opens if absent."""
        closes = self.closes[-count:]
        opens = self.opens[-count:] if self.opens is not None else derive_opens(closes)
        return replace(
            self,
            closes=closes,
            opens=opens,
            highs=self.highs[-count:] if self.highs is not None else None,
            lows=self.lows[-count:] if self.lows is not None else None,
        )

    def mark_stale(self) -> "PriceSeries":
        return replace(self, stale=True)


# ── Fundamentals ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NewsItem:
    title: str
    url: str


@dataclass(frozen=True)
class FundamentalData:
    """Normalized output of the fundamentals collaborator."""

    score: float  # 0–100
    factors: list[str] = field(default_factory=list)
    news: list[NewsItem] = field(default_factory=list)
    sentiment_score: Optional[float] = None  # -1 to 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "score", max(0.0, min(100.0, float(self.score))))
