"""Housekeeping on the local store: completed-task cleanup and JSON backups.

Cleanup soft-deletes rather than removing rows, so the deletions reach the
other devices on the next sync.
"""

import json
import logging
from typing import Any, Dict, List, Union

from memosync.errors import IntegrityError
from memosync.storage.base import EntityStore
from memosync.types import Clock, Memo, memos_from_dicts, memos_to_dicts, system_clock, tombstone

logger = logging.getLogger(__name__)

COMPLETED_RETENTION_MS = 2 * 24 * 60 * 60 * 1000


def purge_completed(
    store: EntityStore, clock: Clock = system_clock, max_age_ms: int = COMPLETED_RETENTION_MS
) -> List[Memo]:
    """Tombstone archived entities completed more than ``max_age_ms`` ago.

    Returns:
        The tombstones written
    """
    cutoff = clock() - max_age_ms
    expired = [
        m
        for m in store.get_all()
        if m.is_archived and not m.is_deleted and m.completed_at and m.completed_at < cutoff
    ]
    if not expired:
        return []

    tombstones = [tombstone(m, clock) for m in expired]
    store.bulk_save(tombstones)
    logger.info(f"Cleaned up {len(tombstones)} completed entities older than {max_age_ms} ms")
    return tombstones


def clear_archived(store: EntityStore, clock: Clock = system_clock) -> List[Memo]:
    """Tombstone every archived entity regardless of age."""
    tombstones = [tombstone(m, clock) for m in store.get_all() if m.is_archived and not m.is_deleted]
    if tombstones:
        store.bulk_save(tombstones)
        logger.info(f"Cleared {len(tombstones)} archived entities")
    return tombstones


def export_backup(store: EntityStore) -> List[Dict[str, Any]]:
    """Every entity in wire form, ready for ``json.dump``."""
    return memos_to_dicts(store.get_all())


def import_backup(store: EntityStore, backup: Union[str, bytes, List[Dict[str, Any]]]) -> int:
    """Add entities from a backup file that the store does not have yet.

    Entities whose id already exists are skipped, never overwritten.

    Args:
        backup: The backup's JSON text or its decoded array

    Returns:
        Number of entities added

    Raises:
        IntegrityError: If the backup is not an array of entities
    """
    if isinstance(backup, (str, bytes)):
        try:
            backup = json.loads(backup)
        except json.JSONDecodeError as e:
            raise IntegrityError(f"Backup is not valid JSON: {e}") from e
    if not isinstance(backup, list):
        raise IntegrityError("Backup must be a JSON array of entities")
    try:
        imported = memos_from_dicts(backup)
    except ValueError as e:
        raise IntegrityError(f"Backup contains an unreadable entity: {e}") from e

    existing = {m.id for m in store.get_all()}
    new = []
    for memo in imported:
        if memo.id not in existing:
            existing.add(memo.id)
            new.append(memo)
    if new:
        store.bulk_save(new)
    logger.info(f"Imported {len(new)} of {len(imported)} entities from backup")
    return len(new)
