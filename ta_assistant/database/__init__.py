"""Database module - Connection, key-value operations, and schema management."""

# Connection management
from ta_assistant.database.connection import db_conn, DB_LOCK

# CRUD operations
from ta_assistant.database.operations import (
    kv_get,
    kv_set,
    kv_delete,
    log_event,
    recent_events,
)

# Schema
from ta_assistant.database.schema import init_db

__all__ = [
    # Connection
    "db_conn",
    "DB_LOCK",
    # Operations
    "kv_get",
    "kv_set",
    "kv_delete",
    "log_event",
    "recent_events",
    # Schema
    "init_db",
]
