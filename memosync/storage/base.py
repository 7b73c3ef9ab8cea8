"""Storage protocols for memosync.

The sync engine only talks to these interfaces, so it can be exercised
against in-memory fakes (``memosync.testing``) as well as the SQLite
implementations in ``memosync.storage.sqlite``.
"""

from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

from memosync.types import HistorySnapshot, HistorySnapshotInfo, Memo

if TYPE_CHECKING:
    from memosync.config import SyncConfig


@runtime_checkable
class EntityStore(Protocol):
    """Durable id-keyed entity table, tombstones and archived entries included."""

    def get_all(self) -> List[Memo]:
        """All entities, newest ``updated_at`` first."""
        ...

    def get(self, memo_id: str) -> Optional[Memo]: ...

    def upsert(self, memo: Memo) -> None: ...

    def bulk_save(self, memos: List[Memo]) -> None:
        """Upsert many entities in one transaction."""
        ...

    def delete(self, memo_id: str) -> bool:
        """Physically remove one entity. Sync code never calls this."""
        ...

    def clear(self) -> None: ...

    def replace_all(self, memos: List[Memo]) -> None:
        """Clear the table and write ``memos`` as one transaction."""
        ...


@runtime_checkable
class SyncStateStore(Protocol):
    """Small persisted values the sync engine needs between passes."""

    def get_last_sync_time(self, provider: str) -> int:
        """Watermark of the last completed pass with ``provider`` (0 if never)."""
        ...

    def set_last_sync_time(self, provider: str, timestamp: int) -> None: ...

    def get_device_id(self) -> str:
        """Installation id, generated and persisted on first use."""
        ...

    def load_config(self) -> "SyncConfig": ...

    def save_config(self, config: "SyncConfig") -> None: ...

    def record_sync_success(self, timestamp: int) -> None: ...

    def get_last_success(self) -> Optional[int]: ...


@runtime_checkable
class HistoryStore(Protocol):
    """Append-only store of local backup snapshots."""

    def add(self, snapshot: HistorySnapshot) -> None: ...

    def list(self) -> List[HistorySnapshotInfo]:
        """Newest first."""
        ...

    def get(self, snapshot_id: str) -> Optional[HistorySnapshot]: ...

    def delete(self, snapshot_id: str) -> bool: ...
