"""SQLite-backed key-value storage for rule, alert and snapshot collections."""
import json
import sqlite3
import logging
from datetime import datetime, timezone
from pathlib import Path

from alerts.errors import StorageError

logger = logging.getLogger("metricalerts.storage")


class KeyValueStore:
    """Durable string store. Each collection lives under one key as a JSON document."""

    def __init__(self, db_path="data/alerts.db"):
        self.db_path = db_path
        self.conn = None

    def connect(self):
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Could not open storage at {self.db_path}: {e}") from e
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
        """)
        self.conn.commit()

    def _require_conn(self):
        if self.conn is None:
            raise StorageError("Storage is not connected")
        return self.conn

    def get(self, key):
        conn = self._require_conn()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e
        return row["value"] if row else None

    def set(self, key, value):
        conn = self._require_conn()
        try:
            conn.execute("""
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """, (key, value, datetime.now(timezone.utc).isoformat()))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write '{key}': {e}") from e
        logger.debug(f"Wrote {len(value)} bytes to {key}")

    def delete(self, key):
        conn = self._require_conn()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete '{key}': {e}") from e

    def keys(self):
        conn = self._require_conn()
        try:
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list keys: {e}") from e
        return [r["key"] for r in rows]

    # --- JSON documents ---

    def get_json(self, key, default=None):
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StorageError(f"Stored document '{key}' is not valid JSON: {e}") from e

    def set_json(self, key, data):
        try:
            raw = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Could not serialize '{key}': {e}") from e
        self.set(key, raw)
