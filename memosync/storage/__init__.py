"""Local storage for memosync: entity table, sync state, history snapshots."""

from .base import EntityStore, HistoryStore, SyncStateStore
from .snapshots import SnapshotManager, build_sync_snapshot, partition_entities
from .sqlite import SQLiteEntityStore, SQLiteHistoryStore, SQLiteSyncState, default_db_path

__all__ = [
    "EntityStore",
    "HistoryStore",
    "SyncStateStore",
    "SnapshotManager",
    "build_sync_snapshot",
    "partition_entities",
    "SQLiteEntityStore",
    "SQLiteHistoryStore",
    "SQLiteSyncState",
    "default_db_path",
]
