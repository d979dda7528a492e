"""Selectable instruments and trading horizons."""
from typing import Dict, List, Optional

CRYPTOS: List[Dict[str, str]] = [
    {"name": "Bitcoin (BTC)", "ticker": "BTCUSDT"},
    {"name": "Ethereum (ETH)", "ticker": "ETHUSDT"},
    {"name": "Solana (SOL)", "ticker": "SOLUSDT"},
    {"name": "Dogecoin (DOGE)", "ticker": "DOGEUSDT"},
    {"name": "XRP (XRP)", "ticker": "XRPUSDT"},
]

# label shown to the user -> horizon value sent to the model
TRADING_STYLES: List[Dict[str, str]] = [
    {"label": "Scalp (5-30 Minutes)", "value": "30 Minutes"},
    {"label": "Intraday (1-4 Hours)", "value": "4 Hours"},
    {"label": "Swing (1-3 Days)", "value": "3 Days"},
    {"label": "Position (1 Week+)", "value": "1 Week"},
]

DEFAULT_TIMEFRAME = "4 Hours"


def find_crypto(ticker: str) -> Optional[Dict[str, str]]:
    """Catalog entry for a pair ticker (case-insensitive)."""
    t = (ticker or "").strip().upper()
    for c in CRYPTOS:
        if c["ticker"] == t:
            return c
    return None
