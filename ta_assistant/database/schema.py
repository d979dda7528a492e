"""Database schema."""
import logging

from ta_assistant.database.connection import db_conn

logger = logging.getLogger("ta_assistant")


def init_db(path=None):
    """
    Initialize database schema.

    Creates all required tables if they don't exist:
    - meta: Key-value store (holds the serialized analysis history)
    - event_log: Analysis and storage events for diagnostics
    """
    with db_conn(path) as conn:
        conn.executescript("""
        CREATE TABLE IF NOT EXISTS meta (k TEXT PRIMARY KEY, v TEXT NOT NULL);

        CREATE TABLE IF NOT EXISTS event_log (
          log_id INTEGER PRIMARY KEY AUTOINCREMENT,
          ts TEXT NOT NULL,
          actor TEXT NOT NULL,
          action TEXT NOT NULL,
          detail TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_event_log_ts ON event_log(ts);
        """)
    logger.debug("Database schema ready")
