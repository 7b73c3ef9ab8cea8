"""Encrypted snapshot stored in a GitHub repository via the contents API.

Unlike the other adapters this one never merges. The cloud holds one
encrypted ``SyncSnapshot``; if it was written after this device last
synced, the pass stops with ``SyncConflictError`` and a human picks a
side. Otherwise the local state is pushed with a compare-and-swap on the
file's ``sha``.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from memosync.config import PROVIDER_GITHUB, EncryptedBlobSettings, SyncConfig
from memosync.conflict import ConflictDetector
from memosync.crypto import EncryptedPayload, decrypt, encrypt
from memosync.errors import IntegrityError
from memosync.storage.snapshots import build_sync_snapshot, data_checksum
from memosync.types import Memo, SyncSnapshot

from .base import SyncAdapter, decode_json, raise_for_status, response_json

logger = logging.getLogger(__name__)


@dataclass
class RemoteBlob:
    """What a fetch observed: the decrypted snapshot and its version token."""

    snapshot: SyncSnapshot
    sha: str


def encode_snapshot(snapshot: SyncSnapshot, password: str) -> str:
    """Encrypt a snapshot and wrap it as the base64 file content."""
    payload = encrypt(json.dumps(snapshot.to_dict()), password)
    return base64.b64encode(json.dumps(payload.to_dict()).encode("utf-8")).decode("ascii")


def decode_snapshot(content: str, password: str) -> SyncSnapshot:
    """Inverse of ``encode_snapshot``.

    Raises:
        IntegrityError: If the file is not a base64 JSON payload, or the
            plaintext is not a snapshot
        DecryptionError: If the payload does not decrypt under ``password``
    """
    try:
        raw = base64.b64decode(content).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise IntegrityError(f"github fetch: file content is not base64 text ({e})") from e

    payload = EncryptedPayload.from_dict(decode_json(raw, "github fetch"))
    plaintext = decrypt(payload, password)
    try:
        return SyncSnapshot.from_dict(decode_json(plaintext, "github snapshot"))
    except ValueError as e:
        raise IntegrityError(f"github snapshot: {e}") from e


class GitHubAdapter(SyncAdapter):
    provider = PROVIDER_GITHUB

    def __init__(self, context, detector: Optional[ConflictDetector] = None):
        super().__init__(context)
        self.detector = detector or ConflictDetector()

    def _headers(self, settings: EncryptedBlobSettings) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {settings.github_token}",
            "Accept": "application/vnd.github+json",
        }

    def _contents_url(self, settings: EncryptedBlobSettings) -> str:
        return f"{settings.api_base}/repos/{settings.github_repo}/contents/{settings.path}"

    def _backup(self) -> None:
        snapshots = self._context.snapshots
        if snapshots is None:
            logger.warning("No snapshot manager configured, skipping pre-sync backup")
            return
        try:
            snapshots.save_history_snapshot(label="pre-sync")
        except Exception as e:
            # The backup is not on the sync's critical path
            logger.warning(f"Pre-sync backup failed, continuing: {e}")

    async def fetch_remote(self, settings: EncryptedBlobSettings) -> Optional[RemoteBlob]:
        """Read and decrypt the cloud snapshot; None when the file does not exist yet."""
        params = {"ref": settings.branch} if settings.branch else None
        response = await self._request(
            "GET",
            self._contents_url(settings),
            operation="github fetch",
            headers=self._headers(settings),
            params=params,
        )
        if response.status_code == 404:
            return None
        raise_for_status(response, "github fetch")

        body: Any = response_json(response, "github fetch")
        if not isinstance(body, dict) or not body.get("sha"):
            raise IntegrityError("github fetch: response is not a file")
        content = body.get("content") or ""
        if not content and body.get("download_url"):
            # Files over 1 MB come back without inline content
            raw = await self._request(
                "GET",
                body["download_url"],
                operation="github raw fetch",
                headers=self._headers(settings),
            )
            raise_for_status(raw, "github raw fetch")
            content = base64.b64encode(raw.content).decode("ascii")

        snapshot = decode_snapshot(content, settings.encryption_password)
        if snapshot.meta.checksum and snapshot.meta.checksum != data_checksum(snapshot.data):
            logger.warning(
                f"Cloud snapshot checksum mismatch (device {snapshot.meta.device_id}, "
                f"updated {snapshot.meta.updated_at})"
            )
        return RemoteBlob(snapshot=snapshot, sha=body["sha"])

    async def push(
        self, settings: EncryptedBlobSettings, snapshot: SyncSnapshot, sha: Optional[str]
    ) -> None:
        """Conditional write; ``sha`` is None only when creating the file."""
        body: Dict[str, Any] = {
            "message": f"memosync snapshot from {snapshot.meta.device_id[:8]}",
            "content": encode_snapshot(snapshot, settings.encryption_password),
        }
        if sha:
            body["sha"] = sha
        if settings.branch:
            body["branch"] = settings.branch
        response = await self._request(
            "PUT",
            self._contents_url(settings),
            operation="github push",
            headers=self._headers(settings),
            json=body,
        )
        raise_for_status(response, "github push", conditional_write=True)

    async def sync(self, config: SyncConfig, local_entities: List[Memo]) -> List[Memo]:
        settings = self._settings(config, EncryptedBlobSettings)
        self._backup()

        last_sync = self.state.get_last_sync_time(self.provider)
        local_snapshot = build_sync_snapshot(local_entities, self.state.get_device_id(), self.now())

        remote = await self.fetch_remote(settings)
        self.detector.check(
            local_snapshot,
            remote.snapshot if remote else None,
            last_sync,
            provider=self.provider,
        )

        await self.push(settings, local_snapshot, remote.sha if remote else None)
        self.state.set_last_sync_time(self.provider, local_snapshot.meta.updated_at)
        logger.info(
            f"GitHub sync: pushed snapshot of {local_snapshot.data.count()} entities "
            f"at {local_snapshot.meta.updated_at}"
        )
        return local_entities
