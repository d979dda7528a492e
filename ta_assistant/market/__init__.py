"""Market module - live price feed and instrument catalog."""

from ta_assistant.market.instruments import CRYPTOS, TRADING_STYLES, find_crypto
from ta_assistant.market.price_feed import (
    PriceFeedManager,
    PriceSnapshot,
    PriceSubscription,
    TrendTracker,
    parse_trade_price,
    trade_stream_url,
)

__all__ = [
    "CRYPTOS",
    "TRADING_STYLES",
    "find_crypto",
    "PriceFeedManager",
    "PriceSnapshot",
    "PriceSubscription",
    "TrendTracker",
    "parse_trade_price",
    "trade_stream_url",
]
