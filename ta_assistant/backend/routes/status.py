"""Status route."""

import sqlite3

from flask import Blueprint, current_app, jsonify

from ta_assistant.config import Config
from ta_assistant.database import db_conn, recent_events
from ta_assistant.llm.budget import LLM_BUDGET

bp = Blueprint("status", __name__, url_prefix="/api")


@bp.route("/status")
def status():
    """Worker, budget and history state for the UI."""
    history = current_app.config["HISTORY"]
    try:
        with db_conn(history.db_path) as conn:
            events = recent_events(conn, limit=12)
    except sqlite3.Error:
        events = []

    # Raw model text is kept in the event log for diagnostics only
    for ev in events:
        ev["detail"] = ev["detail"].split("\n", 1)[0]

    return jsonify({
        "provider": Config.LLM_PROVIDER,
        "analysisInProgress": current_app.config["ANALYZER"].busy,
        "price": current_app.config["PRICE"].status(),
        "llm": LLM_BUDGET.stats(),
        "history": {"count": len(history), "max": history.limit, "lastError": history.last_error},
        "events": events,
    })
