"""Whole-snapshot conflict detection and the resolution state machine.

A conflict exists exactly when the cloud snapshot was assembled after the
last time this device completed a sync with that backend. Entity-level
timestamps play no part in the decision. Once detected, nothing is merged
automatically; the caller chooses ``use_local`` or ``use_cloud``.

States::

    SYNCED --detect--> CONFLICT_PENDING --resolve--> RESOLVED
       ^                     |                           |
       +------- cancel ------+------- next pass ---------+
"""

import logging
from enum import Enum
from typing import Optional, Union

from memosync.errors import SyncConflictError
from memosync.types import SyncSnapshot

logger = logging.getLogger(__name__)


class ConflictState(str, Enum):
    SYNCED = "synced"
    CONFLICT_PENDING = "conflict-pending"
    RESOLVED = "resolved"


class Resolution(str, Enum):
    """The two ways out of a pending conflict."""

    USE_LOCAL = "use_local"  # keep this device's data, overwrite the cloud
    USE_CLOUD = "use_cloud"  # replace local data with the cloud snapshot

    @classmethod
    def parse(cls, value: Union["Resolution", str]) -> "Resolution":
        """Accept the enum or its string value.

        Raises:
            ValueError: For anything else
        """
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown conflict resolution {value!r}; expected 'use_local' or 'use_cloud'"
            ) from None


def is_conflict(cloud_updated_at: int, last_sync_time: int) -> bool:
    """True when the cloud snapshot is newer than this device's last sync."""
    return cloud_updated_at > last_sync_time


class ConflictDetector:
    """Compares snapshot metadata to decide if an automatic push is safe."""

    def check(
        self,
        local_snapshot: SyncSnapshot,
        cloud_snapshot: Optional[SyncSnapshot],
        last_sync_time: int,
        provider: Optional[str] = None,
    ) -> None:
        """Raise if the cloud moved since our last sync.

        Args:
            local_snapshot: Snapshot assembled from this device's entities
            cloud_snapshot: Decrypted remote snapshot, or None if there is none yet
            last_sync_time: This device's watermark for the backend

        Raises:
            SyncConflictError: Carrying both snapshots, when a human must decide
        """
        if cloud_snapshot is None:
            return
        if not is_conflict(cloud_snapshot.meta.updated_at, last_sync_time):
            return

        logger.warning(
            f"Sync conflict: cloud snapshot from device {cloud_snapshot.meta.device_id} "
            f"at {cloud_snapshot.meta.updated_at} is newer than last sync at {last_sync_time}"
        )
        raise SyncConflictError(
            local_snapshot=local_snapshot,
            cloud_snapshot=cloud_snapshot,
            last_sync_time=last_sync_time,
            provider=provider,
        )


class ConflictTracker:
    """Holds the conflict state between sync passes."""

    def __init__(self):
        self._state = ConflictState.SYNCED
        self._pending: Optional[SyncConflictError] = None

    @property
    def state(self) -> ConflictState:
        return self._state

    @property
    def pending(self) -> Optional[SyncConflictError]:
        return self._pending

    def enter_conflict(self, error: SyncConflictError) -> None:
        self._state = ConflictState.CONFLICT_PENDING
        self._pending = error

    def mark_resolved(self, resolution: Resolution) -> None:
        logger.info(f"Sync conflict resolved with {resolution.value}")
        self._state = ConflictState.RESOLVED
        self._pending = None

    def mark_synced(self) -> None:
        self._state = ConflictState.SYNCED
        self._pending = None

    def cancel(self) -> None:
        """Drop the pending conflict; the next pass will detect it again."""
        if self._pending is not None:
            logger.info("Pending sync conflict dismissed without resolution")
        self.mark_synced()
