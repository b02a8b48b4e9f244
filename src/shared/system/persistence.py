"""
Persistence Layer
=================
SQLite-based durable state for LST strategy instances.

Features:
- Strategy state recovery after restarts (config, allowlist, pending redemptions)
- Operation audit trail with UTC timestamps
- Atomic transactions for data consistency
"""

import sqlite3
import json
import time
import threading
from pathlib import Path
from typing import Dict, Any, Optional, List
from contextlib import contextmanager


class PersistenceDB:
    """
    Singleton SQLite persistence layer.

    Thread-safe with one connection per thread.
    All timestamps are stored as Unix epoch (UTC).
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, db_path: str = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, db_path: str = None):
        if self._initialized:
            return

        if db_path is None:
            from config.settings import Settings
            db_path = Settings.LST_DB_PATH

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._init_schema()
        self._initialized = True

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            self._local.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False
            )
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    @contextmanager
    def _transaction(self):
        """Context manager for atomic transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _init_schema(self):
        conn = self._get_connection()

        conn.executescript("""
            -- Strategy state: one row per deployed strategy
            CREATE TABLE IF NOT EXISTS strategy_state (
                name TEXT PRIMARY KEY,
                state TEXT NOT NULL,
                updated_at REAL NOT NULL
            );

            -- Operations: audit trail of successful entry points
            CREATE TABLE IF NOT EXISTS strategy_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                event_type TEXT NOT NULL,
                payload TEXT DEFAULT '{}',
                created_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_name ON strategy_events(name);
        """)
        conn.commit()

    # ═══════════════════════════════════════════════════════════════
    # STRATEGY STATE
    # ═══════════════════════════════════════════════════════════════

    def save_strategy_state(self, name: str, state: Dict[str, Any]) -> None:
        with self._transaction() as conn:
            conn.execute("""
                INSERT INTO strategy_state (name, state, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    state = excluded.state,
                    updated_at = excluded.updated_at
            """, (name, json.dumps(state), time.time()))

    def load_strategy_state(self, name: str) -> Optional[Dict[str, Any]]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT state FROM strategy_state WHERE name = ?", (name,)
        ).fetchone()
        return json.loads(row["state"]) if row else None

    def list_strategies(self) -> List[str]:
        conn = self._get_connection()
        rows = conn.execute("SELECT name FROM strategy_state ORDER BY name").fetchall()
        return [r["name"] for r in rows]

    # ═══════════════════════════════════════════════════════════════
    # AUDIT TRAIL
    # ═══════════════════════════════════════════════════════════════

    def log_event(self, name: str, event_type: str, payload: Dict[str, Any] = None) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO strategy_events (name, event_type, payload, created_at)
                VALUES (?, ?, ?, ?)
            """, (name, event_type, json.dumps(payload or {}), time.time()))
            return cursor.lastrowid

    def get_events(self, name: str, limit: int = 100) -> List[Dict[str, Any]]:
        conn = self._get_connection()
        rows = conn.execute("""
            SELECT event_type, payload, created_at FROM strategy_events
            WHERE name = ? ORDER BY id DESC LIMIT ?
        """, (name, limit)).fetchall()
        return [
            {
                "event_type": r["event_type"],
                "payload": json.loads(r["payload"]),
                "created_at": r["created_at"],
            }
            for r in rows
        ]

    def close(self):
        """Close the database connection."""
        if hasattr(self._local, 'conn') and self._local.conn:
            self._local.conn.close()
            self._local.conn = None


# Global singleton accessor
def get_db(db_path: str = None) -> PersistenceDB:
    """Get the global persistence database instance."""
    return PersistenceDB(db_path)
