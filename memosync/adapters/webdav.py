"""Whole-document sync with a JSON file on a WebDAV share."""

import json
import logging
from typing import List

from memosync.config import PROVIDER_WEBDAV, SingleFileSettings, SyncConfig
from memosync.merge import local_changes, merge
from memosync.types import Memo, memos_to_dicts

from .base import SyncAdapter, decode_json, parse_entity_list, raise_for_status

logger = logging.getLogger(__name__)


class WebDavAdapter(SyncAdapter):
    """Fetch the full array, merge, and write it back if this device added anything."""

    provider = PROVIDER_WEBDAV

    async def sync(self, config: SyncConfig, local_entities: List[Memo]) -> List[Memo]:
        settings = self._settings(config, SingleFileSettings)
        url = f"{settings.webdav_url}/{settings.filename}"
        auth = (settings.webdav_user, settings.webdav_pass)

        response = await self._request("GET", url, operation="webdav fetch", auth=auth)
        if response.status_code == 404:
            remote: List[Memo] = []
        else:
            raise_for_status(response, "webdav fetch")
            body = response.text
            remote = (
                parse_entity_list(decode_json(body, "webdav fetch"), "webdav fetch")
                if body.strip()
                else []
            )

        merged = merge(local_entities, remote)
        changed = local_changes(local_entities, remote)
        if not changed:
            logger.debug("WebDAV document already up to date, skipping upload")
            return merged

        response = await self._request(
            "PUT",
            url,
            operation="webdav push",
            auth=auth,
            headers={"Content-Type": "application/json"},
            content=json.dumps(memos_to_dicts(merged)),
        )
        raise_for_status(response, "webdav push")
        logger.info(f"WebDAV sync: {len(remote)} remote, uploaded {len(merged)} ({len(changed)} changed)")
        return merged
