"""In-memory stores and a controllable clock.

They satisfy the storage protocols so the orchestrator and adapters can be
exercised without SQLite or a real backend.
"""

import uuid
from dataclasses import replace
from typing import Dict, List, Optional

from memosync.config import SyncConfig
from memosync.types import HistorySnapshot, HistorySnapshotInfo, Memo


class ManualClock:
    """A clock that only moves when told to.

    Args:
        start: Initial reading in epoch millis.
        step: Added after every reading; 0 keeps time frozen.
    """

    def __init__(self, start: int = 1_000, step: int = 0):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

    def set(self, ms: int) -> None:
        self.now = ms


class InMemoryEntityStore:
    def __init__(self, entities: Optional[List[Memo]] = None):
        self._rows: Dict[str, Memo] = {}
        for memo in entities or []:
            self._rows[memo.id] = memo

    def get_all(self) -> List[Memo]:
        return sorted(self._rows.values(), key=lambda m: (-m.updated_at, m.id))

    def get(self, memo_id: str) -> Optional[Memo]:
        return self._rows.get(memo_id)

    def upsert(self, memo: Memo) -> None:
        self._rows[memo.id] = replace(memo)

    def bulk_save(self, memos: List[Memo]) -> None:
        for memo in memos:
            self.upsert(memo)

    def delete(self, memo_id: str) -> bool:
        return self._rows.pop(memo_id, None) is not None

    def clear(self) -> None:
        self._rows.clear()

    def replace_all(self, memos: List[Memo]) -> None:
        self._rows = {memo.id: replace(memo) for memo in memos}


class InMemorySyncState:
    def __init__(self, config: Optional[SyncConfig] = None, device_id: Optional[str] = None):
        self.config = config or SyncConfig()
        self.device_id = device_id
        self.last_sync: Dict[str, int] = {}
        self.last_success: Optional[int] = None
        self.saved_configs: List[SyncConfig] = []

    def get_last_sync_time(self, provider: str) -> int:
        return self.last_sync.get(provider, 0)

    def set_last_sync_time(self, provider: str, timestamp: int) -> None:
        self.last_sync[provider] = int(timestamp)

    def get_device_id(self) -> str:
        if not self.device_id:
            self.device_id = str(uuid.uuid4())
        return self.device_id

    def load_config(self) -> SyncConfig:
        return self.config

    def save_config(self, config: SyncConfig) -> None:
        self.config = config
        self.saved_configs.append(config)

    def record_sync_success(self, timestamp: int) -> None:
        self.last_success = timestamp

    def get_last_success(self) -> Optional[int]:
        return self.last_success


class InMemoryHistoryStore:
    def __init__(self):
        self._snapshots: Dict[str, HistorySnapshot] = {}

    def add(self, snapshot: HistorySnapshot) -> None:
        self._snapshots[snapshot.id] = snapshot

    def list(self) -> List[HistorySnapshotInfo]:
        ordered = sorted(self._snapshots.values(), key=lambda s: (-s.created_at, s.id))
        return [s.info() for s in ordered]

    def get(self, snapshot_id: str) -> Optional[HistorySnapshot]:
        return self._snapshots.get(snapshot_id)

    def delete(self, snapshot_id: str) -> bool:
        return self._snapshots.pop(snapshot_id, None) is not None
