"""
memosync - local-first sync and conflict resolution for tasks and notes.

Keeps one device's entity store consistent with a remote backend
(Supabase, WebDAV, a GitHub gist, or an encrypted file in a GitHub repo).
"""

from .config import SyncConfig, parse_sync_config
from .conflict import ConflictState, Resolution
from .errors import MemoSyncError, SyncConflictError
from .merge import merge
from .orchestrator import SyncOrchestrator
from .storage import SnapshotManager, SQLiteEntityStore, SQLiteHistoryStore, SQLiteSyncState
from .types import Memo, SyncData, SyncSnapshot, new_memo, tombstone, touch, visible

try:
    from importlib.metadata import version

    __version__ = version("memosync")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "SyncOrchestrator",
    "SyncConfig",
    "parse_sync_config",
    "ConflictState",
    "Resolution",
    "MemoSyncError",
    "SyncConflictError",
    "merge",
    "SnapshotManager",
    "SQLiteEntityStore",
    "SQLiteHistoryStore",
    "SQLiteSyncState",
    "Memo",
    "SyncData",
    "SyncSnapshot",
    "new_memo",
    "tombstone",
    "touch",
    "visible",
]
