#!/usr/bin/env python3
"""Main entry point for the Crypto TA Assistant."""

import argparse
import json
import logging
import sys

from ta_assistant.config import Config
from ta_assistant.database import init_db
from ta_assistant.history import HISTORY
from ta_assistant.market.instruments import CRYPTOS, DEFAULT_TIMEFRAME, find_crypto
from ta_assistant.workers import PRICE

# Setup logging
logging.basicConfig(
    level=logging.DEBUG if Config.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(str(Config.DATA_DIR / "ta_assistant.log"))
    ],
)
logger = logging.getLogger("ta_assistant")


def run_once(ticker: str, timeframe: str) -> int:
    """Run a single analysis from the command line and print it as JSON."""
    from ta_assistant.analysis.pipeline import ANALYZER

    crypto = find_crypto(ticker)
    if crypto is None:
        known = ", ".join(c["ticker"] for c in CRYPTOS)
        logger.error(f"Unknown ticker {ticker!r}; choose one of: {known}")
        return 2

    outcome = ANALYZER.analyze(crypto["name"], crypto["ticker"], timeframe)
    if not outcome.ok:
        print(outcome.user_message(), file=sys.stderr)
        return 1
    print(json.dumps(outcome.entry.to_dict(), indent=2, ensure_ascii=False))
    return 0


def clear_history(assume_yes: bool) -> int:
    """Erase the stored history after confirmation."""
    if not assume_yes:
        answer = input("Are you sure you want to clear all analysis history? This cannot be undone. [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("History kept.")
            return 0
    return 0 if HISTORY.clear() else 1


def main():
    """Main application entry point."""
    ap = argparse.ArgumentParser(description="Crypto TA Assistant - AI technical analysis with a live price feed")
    ap.add_argument("--host", default=Config.HOST, help="Host to bind the server to")
    ap.add_argument("--port", type=int, default=Config.PORT, help="Port to run the server on")
    ap.add_argument("--debug", action="store_true", help="Enable debug mode")
    ap.add_argument("--no-price", action="store_true", help="Do not start the live price feed")
    ap.add_argument("--analyze", metavar="TICKER", help="Run one analysis (e.g. BTCUSDT), print it and exit")
    ap.add_argument("--timeframe", default=DEFAULT_TIMEFRAME, help="Trading horizon for --analyze")
    ap.add_argument("--history", action="store_true", help="Print the stored history and exit")
    ap.add_argument("--clear-history", action="store_true", help="Erase the stored history and exit")
    ap.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = ap.parse_args()

    # Initialize database and history
    logger.info("Initializing database...")
    init_db()
    HISTORY.load()

    if args.history:
        print(json.dumps([e.to_dict() for e in HISTORY.entries], indent=2, ensure_ascii=False))
        return 0
    if args.clear_history:
        return clear_history(args.yes)
    if args.analyze:
        return run_once(args.analyze, args.timeframe)

    # Start the price feed if auto-enabled
    if Config.AUTO_PRICE and not args.no_price:
        logger.info(f"Auto-starting price feed for {Config.DEFAULT_TICKER}...")
        PRICE.start(Config.DEFAULT_TICKER)

    # Log configuration
    logger.info("=" * 60)
    logger.info("Crypto TA Assistant")
    logger.info("=" * 60)
    logger.info(f"DB: {Config.DB_PATH}")
    logger.info(f"LLM Provider: {Config.LLM_PROVIDER}")
    logger.info(f"Model: {Config.GEMINI_MODEL if Config.LLM_PROVIDER == 'gemini' else Config.OPENROUTER_MODEL}")
    logger.info(f"History: {len(HISTORY)}/{Config.HISTORY_MAX} entries")
    logger.info(f"UI: http://{args.host}:{args.port}")
    logger.info("=" * 60)

    from ta_assistant.backend import create_app

    app = create_app()
    try:
        app.run(
            host=args.host,
            port=args.port,
            debug=(args.debug or Config.DEBUG),
            use_reloader=False,  # Disable reloader to prevent worker thread issues
            threaded=True
        )
    finally:
        PRICE.stop_now()
    return 0


if __name__ == "__main__":
    sys.exit(main())
