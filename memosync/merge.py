"""Last-write-wins merge of two entity collections.

The merge is pure: it never touches storage and never reads the clock.
Precedence is decided by ``updated_at`` alone; on equal timestamps the
local version is kept. Entities are never dropped, tombstones included,
which is how deletions replicate between devices.

Known gap: the rule trusts device clocks. A device whose clock runs fast
keeps winning merges even when its edit is logically older; no skew
compensation is attempted.
"""

import logging
from typing import Dict, Iterable, List

from memosync.types import Memo

logger = logging.getLogger(__name__)


def merge(local: Iterable[Memo], remote: Iterable[Memo]) -> List[Memo]:
    """Reconcile two replicas by last-write-wins.

    Args:
        local: Entities from this device
        remote: Entities fetched from a backend

    Returns:
        One entity per distinct id in the union of both inputs, sorted by
        ``updated_at`` descending (ties by id, for a stable order).
    """
    by_id: Dict[str, Memo] = {m.id: m for m in local}
    replaced = 0
    for remote_memo in remote:
        current = by_id.get(remote_memo.id)
        if current is None or remote_memo.updated_at > current.updated_at:
            if current is not None:
                replaced += 1
            by_id[remote_memo.id] = remote_memo

    if replaced:
        logger.debug(f"Merge: {replaced} local entities superseded by newer remote versions")

    return sorted(by_id.values(), key=lambda m: (-m.updated_at, m.id))


def local_changes(local: Iterable[Memo], remote: Iterable[Memo]) -> List[Memo]:
    """Local entities the remote does not have yet.

    An entity counts when it is absent from ``remote`` or strictly newer
    than the remote copy. An empty result means a whole-document upload
    would not change anything.
    """
    remote_times = {m.id: m.updated_at for m in remote}
    return [
        m
        for m in local
        if m.id not in remote_times or m.updated_at > remote_times[m.id]
    ]
