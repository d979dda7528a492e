"""
Analysis history: a bounded, newest-first log persisted under one key.

The ordering and truncation rules live in pure functions
(``append_entry``) so they can be tested without storage; ``HistoryStore``
adds the SQLite persistence around them. A broken payload never blocks the
application: it is logged, erased and replaced by an empty history.
"""
import json
import logging
import sqlite3
import threading
from typing import Any, Dict, Iterable, Optional, Tuple

from ta_assistant.analysis.models import AnalysisRecord, HistoryEntry
from ta_assistant.analysis.validator import analysis_from_dict
from ta_assistant.config import Config
from ta_assistant.database import db_conn, init_db, kv_delete, kv_get, kv_set
from ta_assistant.errors import MalformedResponse, StorageCorrupted, StorageWriteFailed
from ta_assistant.utils import utc_now

logger = logging.getLogger("ta_assistant.history")

History = Tuple[HistoryEntry, ...]


# ---------------------- Pure transitions ----------------------

def append_entry(entries: Iterable[HistoryEntry], entry: HistoryEntry, limit: Optional[int] = None) -> History:
    """Prepend ``entry`` and keep only the ``limit`` most recent entries."""
    cap = Config.HISTORY_MAX if limit is None else int(limit)
    return ((entry,) + tuple(entries))[:max(0, cap)]


def new_entry_id(timestamp: str, existing: Iterable[HistoryEntry] = ()) -> str:
    """Timestamp-derived id, suffixed when the timestamp is already taken."""
    taken = {e.id for e in existing}
    candidate = timestamp
    n = 1
    while candidate in taken:
        candidate = f"{timestamp}-{n}"
        n += 1
    return candidate


def new_history_entry(
    crypto_name: str,
    ticker: str,
    timeframe: str,
    analysis: AnalysisRecord,
    existing: Iterable[HistoryEntry] = (),
    timestamp: Optional[str] = None,
) -> HistoryEntry:
    """Create the history entry for a freshly validated analysis."""
    ts = timestamp or utc_now()
    return HistoryEntry(
        id=new_entry_id(ts, existing),
        timestamp=ts,
        crypto_name=crypto_name,
        ticker=ticker,
        timeframe=timeframe,
        analysis=analysis,
    )


# ---------------------- Serialization ----------------------

def serialize_history(entries: Iterable[HistoryEntry]) -> str:
    """Persisted text form: a JSON array of entries, newest first."""
    return json.dumps([e.to_dict() for e in entries], ensure_ascii=False)


def _entry_from_dict(item: Dict[str, Any], index: int) -> HistoryEntry:
    if not isinstance(item, dict):
        raise StorageCorrupted(f"entry {index} is not an object")
    fields = {}
    for key in ("id", "timestamp", "cryptoName", "ticker", "timeframe"):
        value = item.get(key)
        if not isinstance(value, str):
            raise StorageCorrupted(f"entry {index}: field {key!r} missing or not a string")
        fields[key] = value
    try:
        analysis = analysis_from_dict(item.get("analysis"))
    except MalformedResponse as e:
        raise StorageCorrupted(f"entry {index}: analysis.{e.path}: invalid") from e
    return HistoryEntry(
        id=fields["id"],
        timestamp=fields["timestamp"],
        crypto_name=fields["cryptoName"],
        ticker=fields["ticker"],
        timeframe=fields["timeframe"],
        analysis=analysis,
    )


def deserialize_history(text: str) -> History:
    """
    Parse the persisted text form.

    Raises:
        StorageCorrupted: the text is not a valid list of history entries
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise StorageCorrupted(f"history payload is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise StorageCorrupted("history payload is not a list")
    return tuple(_entry_from_dict(item, i) for i, item in enumerate(data))


# ---------------------- Store ----------------------

class HistoryStore:
    """
    Process-wide analysis history backed by the SQLite key/value table.

    The in-memory sequence is the source of truth for the running session;
    persistence failures are logged and reported through ``last_error``
    but never undo an append.
    """

    def __init__(self, db_path=None, key: Optional[str] = None, limit: Optional[int] = None):
        self.db_path = db_path
        self.key = key or Config.HISTORY_KEY
        self.limit = Config.HISTORY_MAX if limit is None else int(limit)
        self.lock = threading.Lock()
        self._entries: History = ()
        self.loaded = False
        self.last_error: Optional[str] = None

    @property
    def entries(self) -> History:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def load(self) -> History:
        """Read the persisted history; a corrupted payload yields an empty history."""
        with self.lock:
            try:
                init_db(self.db_path)
                with db_conn(self.db_path) as conn:
                    text = kv_get(conn, self.key)
            except sqlite3.Error as e:
                logger.error(f"History load failed, starting empty: {e}")
                self.last_error = str(e)
                self._entries = ()
                self.loaded = True
                return self._entries

            entries: History = ()
            if text is not None:
                try:
                    entries = deserialize_history(text)
                except StorageCorrupted as e:
                    logger.warning(f"Discarding corrupted history payload: {e}")
                    self.last_error = str(e)
                    self._erase()
            self._entries = entries[:self.limit]
            self.loaded = True
            logger.info(f"Loaded {len(self._entries)} history entries")
            return self._entries

    def append(self, entry: HistoryEntry) -> bool:
        """
        Prepend an entry, truncate to the limit, then persist.

        Returns:
            True if the new history was persisted, False if only the
            in-memory history was updated
        """
        with self.lock:
            self._entries = append_entry(self._entries, entry, self.limit)
            snapshot = self._entries
        try:
            self._persist(snapshot)
        except StorageWriteFailed as e:
            logger.error(f"Failed to save history: {e}")
            self.last_error = str(e)
            return False
        self.last_error = None
        return True

    def clear(self) -> bool:
        """Empty the history and erase the persisted payload."""
        with self.lock:
            self._entries = ()
        ok = self._erase()
        if ok:
            logger.info("History cleared")
        return ok

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        for e in self._entries:
            if e.id == entry_id:
                return e
        return None

    def latest(self) -> Optional[HistoryEntry]:
        return self._entries[0] if self._entries else None

    def _persist(self, entries: History):
        try:
            payload = serialize_history(entries)
            with db_conn(self.db_path) as conn:
                kv_set(conn, self.key, payload)
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StorageWriteFailed(str(e)) from e

    def _erase(self) -> bool:
        try:
            with db_conn(self.db_path) as conn:
                kv_delete(conn, self.key)
        except sqlite3.Error as e:
            logger.error(f"Failed to erase persisted history: {e}")
            self.last_error = str(e)
            return False
        return True


# Global history instance
HISTORY = HistoryStore()
