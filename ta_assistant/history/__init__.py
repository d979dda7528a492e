"""History module - bounded, persisted log of past analyses."""

from ta_assistant.history.store import (
    HISTORY,
    HistoryStore,
    append_entry,
    deserialize_history,
    new_history_entry,
    serialize_history,
)

__all__ = [
    "HISTORY",
    "HistoryStore",
    "append_entry",
    "deserialize_history",
    "new_history_entry",
    "serialize_history",
]
