"""Snapshot storage backends for the draft store.

The store only ever loads one snapshot at startup and saves the whole
snapshot after each persisted change, so a backend needs two methods.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Protocol

from . import db

logger = logging.getLogger("timebill.storage")

SNAPSHOT_NAMESPACE = "snapshots"
DEFAULT_SNAPSHOT_NAME = "invoice-storage"


class SnapshotStorage(Protocol):
    def load(self) -> dict | None: ...

    def save(self, snapshot: dict) -> None: ...


class MemoryStorage:
    """Keeps the last saved snapshot in memory. Used by tests and dry runs."""

    def __init__(self, snapshot: dict | None = None):
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count = 0

    def load(self) -> dict | None:
        return copy.deepcopy(self._snapshot)

    def save(self, snapshot: dict) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1


class SqliteStorage:
    """Stores the snapshot as one JSON value in the timebill_kv table."""

    def __init__(
        self,
        db_path: Path,
        user_id: str = "default",
        name: str = DEFAULT_SNAPSHOT_NAME,
    ):
        self.db_path = Path(db_path)
        self.user_id = user_id
        self.name = name
        db.init_db(self.db_path)

    def load(self) -> dict | None:
        with db.get_db(self.db_path) as conn:
            row = db.kv_get(conn, self.user_id, SNAPSHOT_NAMESPACE, self.name)
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.error("Corrupt snapshot %s for %s: %s", self.name, self.user_id, e)
            return None

    def save(self, snapshot: dict) -> None:
        value = json.dumps(snapshot, ensure_ascii=False)
        with db.get_db(self.db_path) as conn:
            db.kv_set(conn, self.user_id, SNAPSHOT_NAMESPACE, self.name, value)
        logger.debug("Saved snapshot %s for %s (%d bytes)", self.name, self.user_id, len(value))
