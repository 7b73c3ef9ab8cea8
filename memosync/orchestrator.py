"""Sync orchestrator: the entry point the application calls after a mutation.

One pass is: load config, run the provider's adapter, merge the result
with whatever the store holds now, save. Only one pass runs at a time; a
trigger that arrives while a pass is in flight returns its input
unchanged and the caller decides whether to try again later.
"""

import contextlib
import logging
from typing import AsyncIterator, List, Optional, Sequence, Union

import httpx

from memosync.adapters import AdapterContext, SyncAdapter, create_adapter
from memosync.config import SyncConfig, parse_sync_config
from memosync.conflict import ConflictState, ConflictTracker, Resolution
from memosync.errors import MemoSyncError, SyncConflictError
from memosync.logging_config import log_sync
from memosync.merge import merge
from memosync.storage.base import EntityStore, SyncStateStore
from memosync.storage.snapshots import SnapshotManager
from memosync.types import Clock, Memo, SyncData, SyncSnapshot, system_clock

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class SyncOrchestrator:
    """Coordinates sync passes and conflict resolution for one device.

    Args:
        store: Local entity store, the only owner of entity state.
        state: Persisted sync state (config, watermarks, device id).
        snapshots: Snapshot manager used for pre-sync backups and restores.
        clock: Time source in epoch millis.
        client: Shared httpx client. When omitted, each pass opens and
            closes its own.
        timeout: Request timeout for clients the orchestrator opens.
    """

    def __init__(
        self,
        store: EntityStore,
        state: SyncStateStore,
        snapshots: Optional[SnapshotManager] = None,
        clock: Clock = system_clock,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.store = store
        self.state = state
        self.snapshots = snapshots
        self.clock = clock
        self.timeout = timeout
        self._client = client
        self._in_flight = False
        self._conflicts = ConflictTracker()

    @property
    def is_syncing(self) -> bool:
        return self._in_flight

    @property
    def conflict_state(self) -> ConflictState:
        return self._conflicts.state

    @property
    def pending_conflict(self) -> Optional[SyncConflictError]:
        return self._conflicts.pending

    def save_config(self, config: Union[SyncConfig, dict, str]) -> SyncConfig:
        """Validate and persist a new sync config.

        Stored entities are untouched; any pending conflict belonged to the
        old backend and is dropped.

        Raises:
            ConfigurationError: If the config does not validate
        """
        if not isinstance(config, SyncConfig):
            config = parse_sync_config(config)
        self.state.save_config(config)
        self._conflicts.cancel()
        return config

    @contextlib.asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _adapter(self, config: SyncConfig, client: httpx.AsyncClient) -> SyncAdapter:
        context = AdapterContext(
            client=client, state=self.state, snapshots=self.snapshots, clock=self.clock
        )
        return create_adapter(config.provider, context)

    async def _run_adapter(self, config: SyncConfig, entities: List[Memo]) -> List[Memo]:
        """Run one adapter pass and persist its result."""
        device_id = self.state.get_device_id()
        try:
            async with self._http_client() as client:
                result = await self._adapter(config, client).sync(config, entities)
        except SyncConflictError as e:
            self._conflicts.enter_conflict(e)
            raise
        except MemoSyncError as e:
            logger.warning(f"Sync with {config.provider} failed: {e}")
            log_sync(device_id, config.provider, "sync", 0, errors=1)
            raise

        # The store may have changed while the adapter was awaiting the network
        merged = merge(self.store.get_all(), result)
        self.store.bulk_save(merged)
        self.state.record_sync_success(self.clock())
        log_sync(device_id, config.provider, "sync", len(merged))
        return merged

    async def perform_sync(
        self, entities: Sequence[Memo], config: Optional[SyncConfig] = None
    ) -> List[Memo]:
        """Sync ``entities`` with the configured backend.

        Args:
            entities: Current local entities, tombstones included
            config: Overrides the stored config for this pass

        Returns:
            The merged entity list now in the store (tombstones included;
            use ``visible()`` for display). ``entities`` unchanged when sync
            is disabled or another pass is running.

        Raises:
            SyncConflictError: The cloud moved since the last sync. Raised
                again, without touching the network, until the conflict is
                resolved or cancelled.
            ConfigurationError, SyncHTTPError, NetworkError, IntegrityError,
            DecryptionError: The pass failed and nothing was saved.
        """
        if self._in_flight:
            logger.debug("Sync already in progress, ignoring trigger")
            return list(entities)

        config = config or self.state.load_config()
        if not config.enabled:
            return list(entities)

        pending = self._conflicts.pending
        if pending is not None:
            raise pending

        self._in_flight = True
        try:
            merged = await self._run_adapter(config, list(entities))
            self._conflicts.mark_synced()
            return merged
        finally:
            self._in_flight = False

    async def resolve_conflict(
        self,
        choice: Union[Resolution, str],
        local_snapshot: Optional[SyncSnapshot] = None,
        cloud_snapshot: Optional[SyncSnapshot] = None,
    ) -> List[Memo]:
        """Settle a conflict by picking a side.

        ``use_local`` moves the watermark up to the cloud snapshot and
        pushes this device's current state. ``use_cloud`` replaces the
        local store with the cloud snapshot's data; local-only entities
        are lost.

        Args:
            choice: ``Resolution`` or its string value
            local_snapshot: The snapshot the conflict was raised with. Not
                pushed as-is: ``use_local`` re-reads the store so edits made
                since the conflict are included
            cloud_snapshot: Defaults to the pending conflict's

        Returns:
            The entities in the store after resolution

        Raises:
            ValueError: Unknown choice, or no conflict to resolve
        """
        resolution = Resolution.parse(choice)
        pending = self._conflicts.pending
        if cloud_snapshot is None and pending is not None:
            cloud_snapshot = pending.cloud_snapshot
        if cloud_snapshot is None:
            raise ValueError("No sync conflict to resolve")

        if self._in_flight:
            logger.debug("Sync already in progress, ignoring conflict resolution")
            return self.store.get_all()

        config = self.state.load_config()
        watermark = cloud_snapshot.meta.updated_at
        self._in_flight = True
        try:
            if resolution is Resolution.USE_CLOUD:
                entities = self._restore(cloud_snapshot.data)
                self.state.set_last_sync_time(config.provider, watermark)
                self.state.record_sync_success(self.clock())
                log_sync(self.state.get_device_id(), config.provider, "pull", len(entities))
            else:
                self.state.set_last_sync_time(config.provider, watermark)
                entities = await self._run_adapter(config, self.store.get_all())
            self._conflicts.mark_resolved(resolution)
            return entities
        finally:
            self._in_flight = False

    def cancel_conflict(self) -> None:
        """Dismiss a pending conflict without choosing; the next pass re-detects it."""
        self._conflicts.cancel()

    def _restore(self, data: SyncData) -> List[Memo]:
        if self.snapshots is not None:
            return self.snapshots.restore_snapshot(data)
        self.store.replace_all(data.all())
        return self.store.get_all()
