"""Whole-document sync with a JSON file inside a private GitHub gist.

With no ``gistId`` configured the first pass creates the gist and stores
the id it was assigned, so later passes update the same document.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from memosync.config import PROVIDER_GIST, GistSettings, SyncConfig
from memosync.errors import IntegrityError
from memosync.merge import local_changes, merge
from memosync.types import Memo, memos_to_dicts

from .base import SyncAdapter, decode_json, parse_entity_list, raise_for_status, response_json

logger = logging.getLogger(__name__)

GIST_DESCRIPTION = "memosync data"


class GistAdapter(SyncAdapter):
    provider = PROVIDER_GIST

    def _headers(self, settings: GistSettings) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {settings.gist_token}",
            "Accept": "application/vnd.github+json",
        }

    async def _file_content(self, gist: Dict[str, Any], settings: GistSettings) -> Optional[str]:
        """The sync file's text, or None when the gist does not have it yet."""
        files = gist.get("files") if isinstance(gist, dict) else None
        if not isinstance(files, dict):
            raise IntegrityError("gist fetch: response has no files map")
        entry = files.get(settings.filename)
        if not entry:
            return None
        if entry.get("truncated") and entry.get("raw_url"):
            # Large files are cut off in the API response
            response = await self._request(
                "GET", entry["raw_url"], operation="gist raw fetch", headers=self._headers(settings)
            )
            raise_for_status(response, "gist raw fetch")
            return response.text
        return entry.get("content") or ""

    async def sync(self, config: SyncConfig, local_entities: List[Memo]) -> List[Memo]:
        settings = self._settings(config, GistSettings)
        headers = self._headers(settings)

        remote: List[Memo] = []
        if settings.gist_id:
            url = f"{settings.api_base}/gists/{settings.gist_id}"
            response = await self._request("GET", url, operation="gist fetch", headers=headers)
            raise_for_status(response, "gist fetch")
            text = await self._file_content(response_json(response, "gist fetch"), settings)
            if text and text.strip():
                remote = parse_entity_list(decode_json(text, "gist fetch"), "gist fetch")

        merged = merge(local_entities, remote)
        files = {settings.filename: {"content": json.dumps(memos_to_dicts(merged))}}

        if not settings.gist_id:
            response = await self._request(
                "POST",
                f"{settings.api_base}/gists",
                operation="gist create",
                headers=headers,
                json={"description": GIST_DESCRIPTION, "public": False, "files": files},
            )
            raise_for_status(response, "gist create")
            created = response_json(response, "gist create")
            gist_id = created.get("id") if isinstance(created, dict) else None
            if not gist_id:
                raise IntegrityError("gist create: response has no id")
            self.state.save_config(config.with_settings(gist_id=gist_id))
            logger.info(f"Created gist {gist_id} with {len(merged)} entities")
            return merged

        changed = local_changes(local_entities, remote)
        if not changed:
            logger.debug("Gist already up to date, skipping upload")
            return merged

        response = await self._request(
            "PATCH",
            f"{settings.api_base}/gists/{settings.gist_id}",
            operation="gist push",
            headers=headers,
            json={"files": files},
        )
        raise_for_status(response, "gist push")
        logger.info(f"Gist sync: {len(remote)} remote, uploaded {len(merged)} ({len(changed)} changed)")
        return merged
