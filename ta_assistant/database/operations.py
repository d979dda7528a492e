"""Database CRUD operations."""
import sqlite3
from typing import Any, Dict, List, Optional

from ta_assistant.utils import utc_now


# ---------------------- Key-Value Store ----------------------

def kv_get(conn: sqlite3.Connection, k: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get key-value pair from meta table.

    Args:
        conn: SQLite connection
        k: Key to lookup
        default: Default value if key not found

    Returns:
        Value string or default
    """
    r = conn.execute("SELECT v FROM meta WHERE k=?", (k,)).fetchone()
    return r["v"] if r else default


def kv_set(conn: sqlite3.Connection, k: str, v: str):
    """Set key-value pair in meta table."""
    conn.execute("INSERT OR REPLACE INTO meta(k,v) VALUES(?,?)", (k, v))


def kv_delete(conn: sqlite3.Connection, k: str):
    """Remove a key from the meta table (no-op when absent)."""
    conn.execute("DELETE FROM meta WHERE k=?", (k,))


# ---------------------- Event Logging ----------------------

def log_event(conn: sqlite3.Connection, actor: str, action: str, detail: str = ""):
    """
    Log an event to the event_log table.

    Args:
        conn: SQLite connection
        actor: Component name (e.g., "analysis", "history", "price")
        action: Action type (e.g., "ok", "malformed", "backend_failed")
        detail: Optional detail string (truncated to 4000 chars)
    """
    conn.execute(
        "INSERT INTO event_log(ts, actor, action, detail) VALUES(?,?,?,?)",
        (utc_now(), actor, action, (detail or "")[:4000]),
    )


def recent_events(conn: sqlite3.Connection, limit: int = 20) -> List[Dict[str, Any]]:
    """Newest events first."""
    rows = conn.execute(
        "SELECT ts, actor, action, detail FROM event_log ORDER BY log_id DESC LIMIT ?",
        (int(limit),),
    ).fetchall()
    return [{"ts": r["ts"], "actor": r["actor"], "action": r["action"], "detail": r["detail"] or ""} for r in rows]
