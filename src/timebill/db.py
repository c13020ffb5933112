"""SQLite key-value table backing timebill's persisted state."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger("timebill.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS timebill_kv (
    user_id TEXT NOT NULL,
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (user_id, namespace, key)
);
"""


def init_db(db_path: Path) -> None:
    """Create the database file and its parent directory if needed."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.executescript(SCHEMA)
    logger.debug("Initialized database at %s", db_path)


@contextmanager
def get_db(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Connection with Row factory; commits when the block exits cleanly."""
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def kv_get(conn: sqlite3.Connection, user_id: str, namespace: str, key: str) -> dict | None:
    """Stored value and updated_at for a key, or None when absent."""
    row = conn.execute(
        "SELECT value, updated_at FROM timebill_kv WHERE user_id = ? AND namespace = ? AND key = ?",
        (user_id, namespace, key),
    ).fetchone()
    return dict(row) if row is not None else None


def kv_set(conn: sqlite3.Connection, user_id: str, namespace: str, key: str, value: str) -> None:
    conn.execute(
        """
        INSERT INTO timebill_kv (user_id, namespace, key, value, updated_at)
        VALUES (?, ?, ?, ?, datetime('now'))
        ON CONFLICT(user_id, namespace, key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
        """,
        (user_id, namespace, key, value),
    )


def kv_delete(conn: sqlite3.Connection, user_id: str, namespace: str, key: str) -> bool:
    cursor = conn.execute(
        "DELETE FROM timebill_kv WHERE user_id = ? AND namespace = ? AND key = ?",
        (user_id, namespace, key),
    )
    return cursor.rowcount > 0


def kv_list(conn: sqlite3.Connection, user_id: str, namespace: str) -> list[dict]:
    """All keys of a namespace, ordered by key."""
    rows = conn.execute(
        "SELECT key, value, updated_at FROM timebill_kv WHERE user_id = ? AND namespace = ? ORDER BY key",
        (user_id, namespace),
    ).fetchall()
    return [dict(row) for row in rows]
