"""SQLite connection for the history store and event log."""
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

from ta_assistant.config import Config

# One writer at a time across the Flask threads and the workers
DB_LOCK = threading.RLock()


def resolve_db_path(path: Optional[Union[str, Path]] = None) -> str:
    """Database file to open, creating its directory on first use."""
    if path is not None and str(path) == ":memory:":
        return ":memory:"
    target = Path(path) if path is not None else Path(Config.DB_PATH)
    target.parent.mkdir(parents=True, exist_ok=True)
    return str(target)


@contextmanager
def db_conn(path: Optional[Union[str, Path]] = None):
    """
    Open the history database, commit on success and roll back on error.

    ``path`` defaults to ``Config.DB_PATH``; tests pass a temporary file.

        with db_conn() as conn:
            kv_get(conn, "analysisHistory")
    """
    with DB_LOCK:
        conn = sqlite3.connect(resolve_db_path(path), check_same_thread=False, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=8000;")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
