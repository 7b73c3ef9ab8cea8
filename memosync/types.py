"""
Shared record types for memosync.

These dataclasses are the vocabulary shared by the merge engine, the
provider adapters, the snapshot manager and the stores. Every record has a
camelCase wire form (``to_dict``/``from_dict``) which is what goes to remote
backends, into snapshots and into the local entity table.

All timestamps are integer epoch milliseconds.
"""

import math
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

# Snapshot format version written into SyncMeta.version
SNAPSHOT_FORMAT_VERSION = 1

# A clock is any zero-argument callable returning epoch millis
Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# === Enums ===


class MemoType(str, Enum):
    """Entity kinds; each maps to one SyncData partition."""

    MEMO = "memo"
    TODO = "todo"
    SKETCH = "sketch"


class Priority(str, Enum):
    IMPORTANT = "important"
    NORMAL = "normal"
    SECONDARY = "secondary"


class RepeatInterval(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"


# === Records ===


@dataclass
class TodoItem:
    """A checklist line inside a todo entity."""

    id: str
    text: str = ""
    completed: bool = False
    priority: str = Priority.NORMAL.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TodoItem":
        if not isinstance(data, dict):
            raise ValueError(f"todo item must be an object, got {type(data).__name__}")
        return cls(
            id=str(data.get("id", "")),
            text=data.get("text") or "",
            completed=bool(data.get("completed", False)),
            priority=data.get("priority") or Priority.NORMAL.value,
        )


# Python attribute -> wire key, in wire order
_MEMO_FIELDS = (
    ("id", "id"),
    ("content", "content"),
    ("type", "type"),
    ("todos", "todos"),
    ("tags", "tags"),
    ("created_at", "createdAt"),
    ("updated_at", "updatedAt"),
    ("due_date", "dueDate"),
    ("reminder_at", "reminderAt"),
    ("reminder_repeat", "reminderRepeat"),
    ("is_archived", "isArchived"),
    ("is_favorite", "isFavorite"),
    ("is_deleted", "isDeleted"),
    ("category", "category"),
    ("priority", "priority"),
    ("sketch_data", "sketchData"),
    ("audio", "audio"),
    ("remote_id", "remoteId"),
    ("completed_at", "completedAt"),
    ("source", "source"),
)
_WIRE_KEYS = frozenset(wire for _, wire in _MEMO_FIELDS)


def _as_millis(value: Any, field_name: str, required: bool = False) -> Optional[int]:
    if value is None:
        if required:
            raise ValueError(f"{field_name} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be epoch millis, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{field_name} must be finite, got {value}")
    return int(value)


@dataclass
class Memo:
    """A task/note entity.

    ``updated_at`` is the sole authority for merge precedence and must grow
    with every mutation. ``is_deleted`` is a tombstone: deleted entities stay
    in storage so that the deletion replicates.
    """

    id: str
    content: str = ""
    type: str = MemoType.TODO.value
    todos: Optional[List[TodoItem]] = None
    tags: List[str] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0
    due_date: Optional[int] = None
    reminder_at: Optional[int] = None
    reminder_repeat: Optional[str] = None
    is_archived: bool = False
    is_favorite: bool = False
    is_deleted: Optional[bool] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    sketch_data: Optional[str] = None
    audio: Optional[Dict[str, Any]] = None
    remote_id: Optional[str] = None
    completed_at: Optional[int] = None
    source: Optional[str] = None
    # Wire keys this version does not know about, written back untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form. Optional fields that are unset are omitted."""
        out: Dict[str, Any] = {}
        for attr, wire in _MEMO_FIELDS:
            value = getattr(self, attr)
            if attr == "todos" and value is not None:
                value = [t.to_dict() for t in value]
            if value is None:
                continue
            out[wire] = value
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Memo":
        """Build a Memo from its wire form.

        Raises:
            ValueError: If the object has no usable id or its timestamps are
                not numeric, or a nested todo item or tag list has the
                wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"entity must be an object, got {type(data).__name__}")
        memo_id = data.get("id")
        if not isinstance(memo_id, str) or not memo_id:
            raise ValueError("entity id must be a non-empty string")

        todos = data.get("todos")
        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ValueError("tags must be a list of strings")
        return cls(
            id=memo_id,
            content=data.get("content") or "",
            type=data.get("type") or MemoType.TODO.value,
            todos=[TodoItem.from_dict(t) for t in todos] if isinstance(todos, list) else None,
            tags=list(tags),
            created_at=_as_millis(data.get("createdAt", 0), "createdAt") or 0,
            updated_at=_as_millis(data.get("updatedAt"), "updatedAt", required=True),
            due_date=_as_millis(data.get("dueDate"), "dueDate"),
            reminder_at=_as_millis(data.get("reminderAt"), "reminderAt"),
            reminder_repeat=data.get("reminderRepeat"),
            is_archived=bool(data.get("isArchived", False)),
            is_favorite=bool(data.get("isFavorite", False)),
            is_deleted=data.get("isDeleted"),
            category=data.get("category"),
            priority=data.get("priority"),
            sketch_data=data.get("sketchData"),
            audio=data.get("audio"),
            remote_id=data.get("remoteId"),
            completed_at=_as_millis(data.get("completedAt"), "completedAt"),
            source=data.get("source"),
            extra={k: v for k, v in data.items() if k not in _WIRE_KEYS},
        )


def memos_to_dicts(entities: Iterable[Memo]) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in entities]


def memos_from_dicts(items: Iterable[Dict[str, Any]]) -> List[Memo]:
    if not isinstance(items, list):
        raise ValueError(f"entity list must be an array, got {type(items).__name__}")
    return [Memo.from_dict(item) for item in items]


# === Entity lifecycle ===


def new_memo(content: str, clock: Clock = system_clock, **fields: Any) -> Memo:
    """Create an entity with a fresh id and ``created_at == updated_at == now``."""
    now = clock()
    fields.setdefault("priority", Priority.NORMAL.value)
    fields.setdefault("reminder_repeat", RepeatInterval.NONE.value)
    return Memo(id=str(uuid.uuid4()), content=content, created_at=now, updated_at=now, **fields)


def touch(memo: Memo, clock: Clock = system_clock, **changes: Any) -> Memo:
    """Return an updated copy with a strictly larger ``updated_at``.

    The bump is at least one millisecond even when the clock has not moved
    (or moved backwards) since the previous write.
    """
    return replace(memo, updated_at=max(clock(), memo.updated_at + 1), **changes)


def tombstone(memo: Memo, clock: Clock = system_clock) -> Memo:
    """Soft-delete: flag the entity and bump ``updated_at``."""
    return touch(memo, clock, is_deleted=True)


def visible(entities: Iterable[Memo]) -> List[Memo]:
    """Entities the application should display (tombstones removed)."""
    return [m for m in entities if not m.is_deleted]


# === Snapshots ===


@dataclass
class SyncData:
    """Full export partitioned by entity type."""

    memos: List[Memo] = field(default_factory=list)
    todos: List[Memo] = field(default_factory=list)
    whiteboards: List[Memo] = field(default_factory=list)

    def all(self) -> List[Memo]:
        """Union of the three partitions."""
        return [*self.memos, *self.todos, *self.whiteboards]

    def count(self) -> int:
        return len(self.memos) + len(self.todos) + len(self.whiteboards)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memos": memos_to_dicts(self.memos),
            "todos": memos_to_dicts(self.todos),
            "whiteboards": memos_to_dicts(self.whiteboards),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncData":
        if not isinstance(data, dict):
            raise ValueError("snapshot data must be an object")
        return cls(
            memos=memos_from_dicts(data.get("memos") or []),
            todos=memos_from_dicts(data.get("todos") or []),
            whiteboards=memos_from_dicts(data.get("whiteboards") or []),
        )


@dataclass
class SyncMeta:
    """Snapshot header.

    ``updated_at`` is when the snapshot was assembled, not the age of any
    entity inside it. It is what conflict detection compares.
    """

    version: int
    updated_at: int
    device_id: str
    checksum: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "updatedAt": self.updated_at,
            "deviceId": self.device_id,
        }
        if self.checksum is not None:
            out["checksum"] = self.checksum
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncMeta":
        if not isinstance(data, dict):
            raise ValueError("snapshot meta must be an object")
        return cls(
            version=int(data.get("version", SNAPSHOT_FORMAT_VERSION)),
            updated_at=_as_millis(data.get("updatedAt"), "meta.updatedAt", required=True),
            device_id=str(data.get("deviceId", "")),
            checksum=data.get("checksum"),
        )


@dataclass
class SyncSnapshot:
    """A device's full state plus header, as exchanged with encrypted storage."""

    meta: SyncMeta
    data: SyncData

    def to_dict(self) -> Dict[str, Any]:
        return {"meta": self.meta.to_dict(), "data": self.data.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncSnapshot":
        if not isinstance(data, dict):
            raise ValueError("snapshot must be an object")
        return cls(
            meta=SyncMeta.from_dict(data.get("meta")),
            data=SyncData.from_dict(data.get("data") or {}),
        )


@dataclass
class HistorySnapshot:
    """A local, immutable backup used for rollback only."""

    id: str
    created_at: int
    data: SyncData
    label: Optional[str] = None

    @property
    def entity_count(self) -> int:
        return self.data.count()

    def info(self) -> "HistorySnapshotInfo":
        return HistorySnapshotInfo(id=self.id, created_at=self.created_at, label=self.label)


@dataclass
class HistorySnapshotInfo:
    """Listing row for a history snapshot; the data stays on disk until fetched."""

    id: str
    created_at: int
    label: Optional[str] = None
