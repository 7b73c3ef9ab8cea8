"""Full-database snapshots: partitioned exports, local history and restore.

History snapshots are independent of remote sync. They exist for local
rollback, are immutable once written and accumulate until deleted.
"""

import json
import logging
import uuid
from typing import Iterable, List, Optional

from memosync.crypto import compute_checksum
from memosync.types import (
    SNAPSHOT_FORMAT_VERSION,
    Clock,
    HistorySnapshot,
    HistorySnapshotInfo,
    Memo,
    MemoType,
    SyncData,
    SyncMeta,
    SyncSnapshot,
    system_clock,
)

from .base import EntityStore, HistoryStore

logger = logging.getLogger(__name__)


def partition_entities(entities: Iterable[Memo]) -> SyncData:
    """Split entities into the three SyncData partitions by type.

    Unrecognised types go to ``memos`` so nothing is dropped from an export.
    """
    data = SyncData()
    for memo in entities:
        if memo.type == MemoType.TODO.value:
            data.todos.append(memo)
        elif memo.type == MemoType.SKETCH.value:
            data.whiteboards.append(memo)
        else:
            data.memos.append(memo)
    return data


def data_checksum(data: SyncData) -> str:
    """Checksum over the canonical JSON form of the snapshot data."""
    return compute_checksum(json.dumps(data.to_dict(), sort_keys=True, separators=(",", ":")))


def build_sync_snapshot(entities: Iterable[Memo], device_id: str, now: int) -> SyncSnapshot:
    """Assemble a snapshot of ``entities`` stamped with assembly time ``now``."""
    data = partition_entities(entities)
    meta = SyncMeta(
        version=SNAPSHOT_FORMAT_VERSION,
        updated_at=now,
        device_id=device_id,
        checksum=data_checksum(data),
    )
    return SyncSnapshot(meta=meta, data=data)


class SnapshotManager:
    """Exports, history backups and destructive restores of the entity store.

    Args:
        store: The entity store to export from and restore into.
        history: Where history snapshots are kept.
        clock: Time source for snapshot timestamps.
    """

    def __init__(self, store: EntityStore, history: HistoryStore, clock: Clock = system_clock):
        self._store = store
        self._history = history
        self._clock = clock

    def export_snapshot(self) -> SyncData:
        """All entities, soft-deleted and archived included, partitioned by type."""
        return partition_entities(self._store.get_all())

    def save_history_snapshot(self, label: Optional[str] = None) -> HistorySnapshot:
        """Persist a timestamped copy of ``export_snapshot()``."""
        snapshot = HistorySnapshot(
            id=str(uuid.uuid4()),
            created_at=self._clock(),
            data=self.export_snapshot(),
            label=label,
        )
        self._history.add(snapshot)
        logger.info(
            f"Saved history snapshot {snapshot.id[:8]} ({snapshot.entity_count} entities)"
        )
        return snapshot

    def restore_snapshot(self, data: SyncData) -> List[Memo]:
        """Replace the whole entity store with the snapshot's contents.

        Destructive: local entities that are not in ``data`` are gone
        afterwards.

        Returns:
            The entities now in the store.
        """
        entities = data.all()
        self._store.replace_all(entities)
        logger.info(f"Restored snapshot with {len(entities)} entities")
        return self._store.get_all()

    def list_history_snapshots(self) -> List[HistorySnapshotInfo]:
        """Saved backups newest first, without their entity data."""
        return self._history.list()

    def get_history_snapshot(self, snapshot_id: str) -> Optional[HistorySnapshot]:
        return self._history.get(snapshot_id)

    def delete_history_snapshot(self, snapshot_id: str) -> bool:
        deleted = self._history.delete(snapshot_id)
        if deleted:
            logger.info(f"Deleted history snapshot {snapshot_id[:8]}")
        return deleted

    def restore_history_snapshot(self, snapshot_id: str) -> List[Memo]:
        """Roll the entity store back to a saved history snapshot.

        Raises:
            KeyError: If no snapshot has that id
        """
        snapshot = self._history.get(snapshot_id)
        if snapshot is None:
            raise KeyError(f"No history snapshot {snapshot_id!r}")
        return self.restore_snapshot(snapshot.data)
