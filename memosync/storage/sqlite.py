"""SQLite-backed stores for memosync.

One database file holds three tables:

- ``memos``: the entity table, one JSON document per id
- ``sync_meta``: key/value sync state (watermarks, device id, config)
- ``history_snapshots``: local backup snapshots

Connections are opened per operation through ``_connect()``, which commits
on success, rolls back on error and always closes.
"""

import contextlib
import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import List, Optional, Union

from memosync.config import SyncConfig, parse_sync_config
from memosync.errors import IntegrityError
from memosync.types import HistorySnapshot, HistorySnapshotInfo, Memo, SyncData, system_clock
from memosync.utils import get_memosync_home

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS memos (
    id TEXT PRIMARY KEY,
    updated_at INTEGER NOT NULL,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_memos_updated_at ON memos(updated_at);

CREATE TABLE IF NOT EXISTS sync_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS history_snapshots (
    id TEXT PRIMARY KEY,
    created_at INTEGER NOT NULL,
    label TEXT,
    data TEXT NOT NULL
);
"""

LAST_SYNC_KEY_PREFIX = "last_sync_time:"
LAST_SUCCESS_KEY = "last_success_at"
DEVICE_ID_KEY = "device_id"
CONFIG_KEY = "sync_config"


def default_db_path() -> Path:
    return get_memosync_home() / "memosync.db"


class _SQLiteDatabase:
    """Shared connection handling and schema bootstrap."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = Path(db_path) if db_path else default_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Yield a connection; commit on success, roll back on error, always close."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()


class SQLiteEntityStore(_SQLiteDatabase):
    """Entity table keyed by id. Tombstones are ordinary rows."""

    def _row_to_memo(self, row: sqlite3.Row) -> Memo:
        try:
            return Memo.from_dict(json.loads(row["data"]))
        except (json.JSONDecodeError, ValueError) as e:
            raise IntegrityError(f"Stored entity {row['id']!r} is unreadable: {e}") from e

    def _write(self, conn: sqlite3.Connection, memo: Memo) -> None:
        conn.execute(
            """INSERT INTO memos (id, updated_at, is_deleted, data)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   updated_at = excluded.updated_at,
                   is_deleted = excluded.is_deleted,
                   data = excluded.data""",
            (memo.id, memo.updated_at, 1 if memo.is_deleted else 0, json.dumps(memo.to_dict())),
        )

    def get_all(self) -> List[Memo]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id, data FROM memos ORDER BY updated_at DESC, id").fetchall()
        return [self._row_to_memo(row) for row in rows]

    def get(self, memo_id: str) -> Optional[Memo]:
        with self._connect() as conn:
            row = conn.execute("SELECT id, data FROM memos WHERE id = ?", (memo_id,)).fetchone()
        return self._row_to_memo(row) if row else None

    def upsert(self, memo: Memo) -> None:
        with self._connect() as conn:
            self._write(conn, memo)

    def bulk_save(self, memos: List[Memo]) -> None:
        with self._connect() as conn:
            for memo in memos:
                self._write(conn, memo)
        logger.debug(f"Saved {len(memos)} entities")

    def delete(self, memo_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM memos WHERE id = ?", (memo_id,))
        return cursor.rowcount > 0

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM memos")

    def replace_all(self, memos: List[Memo]) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM memos")
            for memo in memos:
                self._write(conn, memo)
        logger.debug(f"Replaced entity table with {len(memos)} entities")


class SQLiteSyncState(_SQLiteDatabase):
    """Persisted sync bookkeeping in the ``sync_meta`` table."""

    def _get_meta(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM sync_meta WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def _set_meta(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sync_meta (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, system_clock()),
            )

    def get_last_sync_time(self, provider: str) -> int:
        value = self._get_meta(LAST_SYNC_KEY_PREFIX + provider)
        try:
            return int(value) if value else 0
        except ValueError:
            logger.warning(f"Ignoring unreadable last sync time for {provider}: {value!r}")
            return 0

    def set_last_sync_time(self, provider: str, timestamp: int) -> None:
        self._set_meta(LAST_SYNC_KEY_PREFIX + provider, str(int(timestamp)))

    def get_device_id(self) -> str:
        device_id = self._get_meta(DEVICE_ID_KEY)
        if device_id:
            return device_id
        device_id = str(uuid.uuid4())
        # INSERT OR IGNORE keeps the first id if two callers race here
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO sync_meta (key, value, updated_at) VALUES (?, ?, ?)",
                (DEVICE_ID_KEY, device_id, system_clock()),
            )
        stored = self._get_meta(DEVICE_ID_KEY) or device_id
        logger.info(f"Assigned device id {stored}")
        return stored

    def load_config(self) -> SyncConfig:
        """Stored config, or a disabled one.

        Raises:
            ConfigurationError: If the stored config no longer validates
        """
        return parse_sync_config(self._get_meta(CONFIG_KEY))

    def save_config(self, config: SyncConfig) -> None:
        self._set_meta(CONFIG_KEY, json.dumps(config.to_dict()))
        logger.info(f"Saved sync config (provider={config.provider})")

    def record_sync_success(self, timestamp: int) -> None:
        self._set_meta(LAST_SUCCESS_KEY, str(int(timestamp)))

    def get_last_success(self) -> Optional[int]:
        value = self._get_meta(LAST_SUCCESS_KEY)
        return int(value) if value else None


class SQLiteHistoryStore(_SQLiteDatabase):
    """Backup snapshots, kept until explicitly deleted."""

    def _row_to_snapshot(self, row: sqlite3.Row) -> HistorySnapshot:
        try:
            data = SyncData.from_dict(json.loads(row["data"]))
        except (json.JSONDecodeError, ValueError) as e:
            raise IntegrityError(f"History snapshot {row['id']!r} is unreadable: {e}") from e
        return HistorySnapshot(
            id=row["id"], created_at=row["created_at"], label=row["label"], data=data
        )

    def add(self, snapshot: HistorySnapshot) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO history_snapshots (id, created_at, label, data) VALUES (?, ?, ?, ?)",
                (
                    snapshot.id,
                    snapshot.created_at,
                    snapshot.label,
                    json.dumps(snapshot.data.to_dict()),
                ),
            )

    def list(self) -> List[HistorySnapshotInfo]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, created_at, label FROM history_snapshots ORDER BY created_at DESC, id"
            ).fetchall()
        return [
            HistorySnapshotInfo(id=row["id"], created_at=row["created_at"], label=row["label"])
            for row in rows
        ]

    def get(self, snapshot_id: str) -> Optional[HistorySnapshot]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM history_snapshots WHERE id = ?", (snapshot_id,)
            ).fetchone()
        return self._row_to_snapshot(row) if row else None

    def delete(self, snapshot_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM history_snapshots WHERE id = ?", (snapshot_id,))
        return cursor.rowcount > 0
