"""Analysis request and chart routes."""

import logging

from flask import Blueprint, current_app, jsonify, request

from ta_assistant.analysis.chart_levels import chart_interval, chart_lines
from ta_assistant.errors import (
    AnalysisInProgress,
    BackendUnavailable,
    CredentialMissing,
)
from ta_assistant.market.instruments import DEFAULT_TIMEFRAME, find_crypto

logger = logging.getLogger("ta_assistant")

bp = Blueprint("analysis", __name__, url_prefix="/api")


def _status_for(error) -> int:
    if isinstance(error, AnalysisInProgress):
        return 409
    if isinstance(error, (CredentialMissing, BackendUnavailable)):
        return 503
    return 502


@bp.post("/analyze")
def analyze():
    """Run one analysis for the selected instrument and horizon."""
    data = request.get_json(silent=True) or {}
    crypto = find_crypto(str(data.get("ticker", "")))
    if crypto is None:
        return jsonify({"error": f"unknown ticker: {data.get('ticker')!r}"}), 400
    timeframe = str(data.get("timeframe") or DEFAULT_TIMEFRAME).strip()
    if not timeframe:
        return jsonify({"error": "timeframe is required"}), 400

    live_price = current_app.config["PRICE"].live_price(crypto["ticker"])
    outcome = current_app.config["ANALYZER"].analyze(
        crypto["name"], crypto["ticker"], timeframe, live_price=live_price
    )
    if not outcome.ok:
        return jsonify({"success": False, "error": outcome.user_message()}), _status_for(outcome.error)

    entry = outcome.entry
    return jsonify({
        "success": True,
        "id": entry.id,
        "timestamp": entry.timestamp,
        "cryptoName": entry.crypto_name,
        "ticker": entry.ticker,
        "timeframe": entry.timeframe,
        "analysis": outcome.record.to_dict(),
        "persisted": outcome.persisted,
        "warnings": list(outcome.warnings),
    })


@bp.route("/chart")
def chart():
    """Chart configuration with key-level lines of the latest (or given) analysis."""
    timeframe = request.args.get("timeframe", "1H")
    entry_id = request.args.get("entry")
    history = current_app.config["HISTORY"]
    entry = history.get(entry_id) if entry_id else history.latest()
    if entry_id and entry is None:
        return jsonify({"error": f"history entry not found: {entry_id}"}), 404

    return jsonify({
        "symbol": f"BYBIT:{entry.ticker}" if entry else None,
        "interval": chart_interval(timeframe),
        "timezone": "Etc/UTC",
        "lines": chart_lines(entry.analysis.key_levels) if entry else [],
    })
