"""PairSignal application entry point.

Boots the FastAPI server and provides the CLI for one-off signals and
backtests.
"""

import json
import logging

from fastapi import FastAPI

from pairsignal.api.routers import router

app = FastAPI(title="PairSignal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("pairsignal")


@app.get("/health")
async def health():
    return {"status": "ok"}


def build_engine(config):
    """Wire the market data client, fundamentals and signal engine."""
    from pairsignal.data.fundamentals import build_fundamentals_provider
    from pairsignal.data.market_data import MarketDataClient
    from pairsignal.engine import SignalEngine

    return SignalEngine(
        config=config,
        market_data=MarketDataClient(config),
        fundamentals=build_fundamentals_provider(config),
    )


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from pairsignal.api.routers import configure_routers
    from pairsignal.config import load_config
    from pairsignal.data.models import parse_pair
    from pairsignal.timeframes import ALLOWED_TIMEFRAMES

    parser = argparse.ArgumentParser(description="PairSignal forex/crypto signal engine")
    parser.add_argument(
        "--mode",
        choices=["serve", "signal", "backtest"],
        default="serve",
        help="Run the API server, print signals, or print a backtest (default: serve)",
    )
    parser.add_argument(
        "--pairs",
        help="Comma-separated pairs, e.g. EUR/USD,BTC/USD (default: DEFAULT_PAIRS)",
    )
    parser.add_argument(
        "--timeframe",
        help=f"One of {', '.join(ALLOWED_TIMEFRAMES)} (default: DEFAULT_TIMEFRAME)",
    )
    parser.add_argument("--env-file", help="Path to a .env file")
    args = parser.parse_args()

    config = load_config(args.env_file)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    engine = build_engine(config)
    pairs = (
        [p.strip() for p in args.pairs.split(",") if p.strip()]
        if args.pairs else list(config.default_pairs)
    )
    try:
        for pair in pairs:
            parse_pair(pair)
    except ValueError as exc:
        parser.error(str(exc))

    if args.mode == "signal":
        results = asyncio.run(engine.calculate_signals(pairs, args.timeframe))
        print(json.dumps([r.to_dict() for r in results], indent=2))
    elif args.mode == "backtest":
        for pair in pairs:
            result = asyncio.run(engine.run_backtest(pair, args.timeframe))
            print(json.dumps(result.to_dict(), indent=2))
    else:
        import uvicorn

        configure_routers(
            engine,
            default_pairs=config.default_pairs,
            default_timeframe=config.default_timeframe,
            signal_cache_ttl_seconds=config.signal_cache_ttl_seconds,
        )
        logger.info("Starting PairSignal API on port %d", config.api_port)
        uvicorn.run(app, host="0.0.0.0", port=config.api_port, log_level="info")


if __name__ == "__main__":
    _run_cli()
