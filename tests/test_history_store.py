"""Tests for the persisted analysis history."""
import sqlite3

import pytest

from ta_assistant.database import db_conn, kv_get, kv_set
from ta_assistant.database.connection import resolve_db_path
from ta_assistant.errors import StorageCorrupted
from ta_assistant.history import store as store_mod
from ta_assistant.history.store import (
    HistoryStore,
    append_entry,
    deserialize_history,
    new_entry_id,
    serialize_history,
)


def test_append_entry_is_newest_first_and_bounded(make_entry):
    entries = ()
    made = []
    for _ in range(60):
        e = make_entry()
        made.append(e)
        entries = append_entry(entries, e, limit=50)
    assert len(entries) == 50
    assert entries[0] is made[-1]
    assert entries[-1] is made[10]
    assert list(entries) == list(reversed(made[10:]))


def test_append_keeps_50_by_default(store, make_entry):
    for _ in range(60):
        store.append(make_entry())
    assert len(store) == 50
    reloaded = HistoryStore(db_path=store.db_path)
    reloaded.load()
    assert [e.id for e in reloaded.entries] == [e.id for e in store.entries]


def test_round_trip_preserves_entries(store, make_entry, db_path):
    first = make_entry(ticker="BTCUSDT")
    second = make_entry(ticker="ETHUSDT", timeframe="1 Hour")
    assert store.append(first)
    assert store.append(second)

    fresh = HistoryStore(db_path=db_path)
    loaded = fresh.load()
    assert loaded == (second, first)
    assert fresh.latest() == second
    assert fresh.get(first.id) == first
    assert fresh.get("missing") is None


def test_serialized_form_uses_wire_names(make_entry):
    text = serialize_history([make_entry()])
    assert '"cryptoName": "Bitcoin (BTC)"' in text
    assert '"biasProbabilities"' in text
    assert deserialize_history(text)[0].ticker == "BTCUSDT"


def test_missing_payload_loads_empty(store):
    assert store.entries == ()
    assert store.loaded
    assert store.last_error is None


@pytest.mark.parametrize("payload", [
    "{not json",
    '{"a": 1}',
    '[{"id": "x"}]',
    '[{"id": "x", "timestamp": "t", "cryptoName": "c", "ticker": "t", "timeframe": "f", "analysis": {}}]',
])
def test_corrupted_payload_loads_empty_and_is_erased(db_path, payload):
    seeded = HistoryStore(db_path=db_path)
    seeded.load()
    with db_conn(db_path) as conn:
        kv_set(conn, seeded.key, payload)

    s = HistoryStore(db_path=db_path)
    assert s.load() == ()
    assert s.last_error
    with db_conn(db_path) as conn:
        assert kv_get(conn, s.key) is None


def test_deserialize_rejects_non_list():
    with pytest.raises(StorageCorrupted):
        deserialize_history('{"entries": []}')


def test_write_failure_keeps_in_memory_entry(store, make_entry, monkeypatch):
    def broken(conn, k, v):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store_mod, "kv_set", broken)
    entry = make_entry()
    assert store.append(entry) is False
    assert store.entries == (entry,)
    assert "disk I/O error" in store.last_error


def test_clear_empties_memory_and_storage(store, make_entry, db_path):
    store.append(make_entry())
    store.append(make_entry())
    assert store.clear()
    assert len(store) == 0
    fresh = HistoryStore(db_path=db_path)
    assert fresh.load() == ()


def test_entry_ids_are_unique(make_entry):
    first = make_entry(timestamp="2025-03-01T10:00:00+00:00")
    assert new_entry_id(first.timestamp, [first]) == "2025-03-01T10:00:00+00:00-1"
    taken = [first, first.__class__(**{**first.__dict__, "id": "2025-03-01T10:00:00+00:00-1"})]
    assert new_entry_id(first.timestamp, taken) == "2025-03-01T10:00:00+00:00-2"
    assert new_entry_id("2025-03-01T11:00:00+00:00", taken) == "2025-03-01T11:00:00+00:00"


def test_load_truncates_oversized_payload(db_path, make_entry):
    entries = tuple(make_entry() for _ in range(5))
    with db_conn(db_path) as conn:
        conn.execute("CREATE TABLE IF NOT EXISTS meta (k TEXT PRIMARY KEY, v TEXT NOT NULL)")
        kv_set(conn, "analysisHistory", serialize_history(entries))
    s = HistoryStore(db_path=db_path, limit=3)
    assert s.load() == entries[:3]


def test_db_conn_creates_missing_directory(tmp_path, make_entry):
    nested = tmp_path / "fresh" / "data" / "history.db"
    s = HistoryStore(db_path=nested)
    assert s.load() == ()
    assert s.append(make_entry())
    assert nested.exists()
    assert resolve_db_path(":memory:") == ":memory:"
