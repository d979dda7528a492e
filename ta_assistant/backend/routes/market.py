"""Instrument catalog and live price routes."""

import logging
from concurrent.futures import TimeoutError as FuturesTimeoutError

from flask import Blueprint, current_app, jsonify, request

from ta_assistant.analysis.chart_levels import CHART_TIMEFRAMES
from ta_assistant.market.instruments import CRYPTOS, DEFAULT_TIMEFRAME, TRADING_STYLES, find_crypto

logger = logging.getLogger("ta_assistant")

bp = Blueprint("market", __name__, url_prefix="/api")


@bp.route("/instruments")
def instruments():
    """Selectable instruments, trading horizons and chart timeframes."""
    return jsonify({
        "cryptos": CRYPTOS,
        "tradingStyles": TRADING_STYLES,
        "defaultTimeframe": DEFAULT_TIMEFRAME,
        "chartTimeframes": list(CHART_TIMEFRAMES),
    })


@bp.route("/price")
def price():
    """Latest streamed price and trend."""
    worker = current_app.config["PRICE"]
    return jsonify(worker.snapshot().to_dict())


@bp.post("/price/subscribe")
def subscribe():
    """Switch the live subscription to another instrument."""
    data = request.get_json(silent=True) or {}
    crypto = find_crypto(str(data.get("ticker", "")))
    if crypto is None:
        return jsonify({"error": f"unknown ticker: {data.get('ticker')!r}"}), 400

    worker = current_app.config["PRICE"]
    try:
        snap = worker.switch(crypto["ticker"])
    except FuturesTimeoutError:
        logger.error(f"Price subscription switch to {crypto['ticker']} timed out")
        return jsonify({"error": "price subscription switch timed out"}), 504
    return jsonify(snap.to_dict())
