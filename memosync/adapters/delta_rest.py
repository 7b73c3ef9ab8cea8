"""Delta sync against a PostgREST table (Supabase).

Only rows changed since the watermark travel in either direction. The
watermark is one millisecond before the clock reading taken when the pass
started. Anything a peer writes while this pass is in flight is fetched
again next time, and a local edit stamped in the same millisecond the pass
started is still above the watermark and gets pushed on the next pass.
Rows that come back unchanged are dropped from the push set.
"""

import logging
from typing import Dict, List

from memosync.config import PROVIDER_SUPABASE, DeltaRestSettings, SyncConfig
from memosync.merge import merge
from memosync.types import Memo, memos_to_dicts

from .base import SyncAdapter, parse_entity_list, raise_for_status, response_json

logger = logging.getLogger(__name__)


def select_push_set(
    merged: List[Memo], last_sync_time: int, fetched: List[Memo]
) -> List[Memo]:
    """Entities to upload after a delta fetch.

    Everything changed since ``last_sync_time``, minus entities the server
    just returned at exactly the same version.
    """
    received: Dict[str, int] = {m.id: m.updated_at for m in fetched}
    return [
        m
        for m in merged
        if m.updated_at > last_sync_time and received.get(m.id) != m.updated_at
    ]


class DeltaRestAdapter(SyncAdapter):
    provider = PROVIDER_SUPABASE

    def _headers(self, settings: DeltaRestSettings) -> Dict[str, str]:
        return {
            "apikey": settings.supabase_key,
            "Authorization": f"Bearer {settings.supabase_key}",
            "Content-Type": "application/json",
        }

    async def sync(self, config: SyncConfig, local_entities: List[Memo]) -> List[Memo]:
        settings = self._settings(config, DeltaRestSettings)
        pass_started_at = self.now()
        last_sync = self.state.get_last_sync_time(self.provider)
        table_url = f"{settings.supabase_url}/rest/v1/{settings.table}"
        headers = self._headers(settings)

        response = await self._request(
            "GET",
            table_url,
            operation="supabase fetch",
            params={"select": "*", "updatedAt": f"gt.{last_sync}"},
            headers=headers,
        )
        raise_for_status(response, "supabase fetch")
        fetched = parse_entity_list(response_json(response, "supabase fetch"), "supabase fetch")

        merged = merge(local_entities, fetched)
        to_push = select_push_set(merged, last_sync, fetched)

        if to_push:
            response = await self._request(
                "POST",
                table_url,
                operation="supabase push",
                params={"on_conflict": "id"},
                headers={**headers, "Prefer": "resolution=merge-duplicates"},
                json=memos_to_dicts(to_push),
            )
            raise_for_status(response, "supabase push")

        watermark = max(last_sync, pass_started_at - 1)
        self.state.set_last_sync_time(self.provider, watermark)
        logger.info(
            f"Supabase sync: fetched {len(fetched)}, pushed {len(to_push)}, "
            f"watermark {last_sync} -> {watermark}"
        )
        return merged
