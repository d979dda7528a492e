"""Analysis history routes."""

from flask import Blueprint, current_app, jsonify, request

bp = Blueprint("history", __name__, url_prefix="/api/history")


@bp.route("", methods=["GET"])
def list_history():
    """All stored analyses, newest first."""
    history = current_app.config["HISTORY"]
    return jsonify({
        "count": len(history),
        "entries": [e.to_dict() for e in history.entries],
    })


@bp.route("/<entry_id>", methods=["GET"])
def get_entry(entry_id):
    entry = current_app.config["HISTORY"].get(entry_id)
    if entry is None:
        return jsonify({"error": f"history entry not found: {entry_id}"}), 404
    return jsonify(entry.to_dict())


@bp.route("", methods=["DELETE"])
def clear_history():
    """Erase all history. Requires ``?confirm=true``."""
    if request.args.get("confirm", "").lower() not in ("1", "true", "yes"):
        return jsonify({
            "error": "Clearing the history cannot be undone; repeat the request with confirm=true."
        }), 400
    ok = current_app.config["HISTORY"].clear()
    return jsonify({"success": ok, "count": 0})
