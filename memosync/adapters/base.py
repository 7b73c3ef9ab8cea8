"""Provider adapter interface and shared HTTP handling.

Every backend implements ``SyncAdapter.sync(config, local_entities)``:
observe the remote state, reconcile it with the local entities and push
whatever the remote is missing, in that order. Adapters may raise; they
never retry.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Type, TypeVar

import httpx

from memosync.config import SyncConfig
from memosync.errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    IntegrityError,
    NetworkError,
    RemoteVersionConflictError,
    ServerError,
)
from memosync.storage.base import SyncStateStore
from memosync.storage.snapshots import SnapshotManager
from memosync.types import Clock, Memo, memos_from_dicts, system_clock

logger = logging.getLogger(__name__)

# Statuses a backend uses to reject a write made against a stale version
VERSION_CONFLICT_STATUSES = frozenset({409, 412, 422})

S = TypeVar("S")


@dataclass
class AdapterContext:
    """Collaborators an adapter needs for one sync pass."""

    client: httpx.AsyncClient
    state: SyncStateStore
    snapshots: Optional[SnapshotManager] = None
    clock: Clock = system_clock


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body.get("msg") or "")[:200]
    return ""


def raise_for_status(
    response: httpx.Response, operation: str, *, conditional_write: bool = False
) -> None:
    """Classify a non-2xx response into the sync error taxonomy.

    Args:
        response: The backend's response
        operation: Short label for messages, e.g. "gist fetch"
        conditional_write: True for writes guarded by a version token, so
            409/412/422 mean "someone else wrote first"

    Raises:
        AuthenticationError: 401/403
        ServerError: 5xx
        RemoteVersionConflictError: Rejected conditional write
        ApiError: Anything else outside 2xx
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    detail = _error_detail(response)
    if status in (401, 403):
        raise AuthenticationError(operation, status, detail)
    if status >= 500:
        raise ServerError(operation, status, detail)
    if conditional_write and status in VERSION_CONFLICT_STATUSES:
        raise RemoteVersionConflictError(operation, status, detail)
    raise ApiError(operation, status, detail)


def parse_entity_list(payload: Any, source: str) -> List[Memo]:
    """Turn a decoded JSON document into entities.

    Raises:
        IntegrityError: If the document is not an array of entity objects
    """
    if not isinstance(payload, list):
        raise IntegrityError(f"{source}: expected a JSON array, got {type(payload).__name__}")
    try:
        return memos_from_dicts(payload)
    except ValueError as e:
        raise IntegrityError(f"{source}: {e}") from e


def decode_json(text: str, source: str) -> Any:
    """``json.loads`` with errors reported as ``IntegrityError``."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise IntegrityError(f"{source}: invalid JSON ({e})") from e


def response_json(response: httpx.Response, source: str) -> Any:
    return decode_json(response.text, source)


class SyncAdapter(ABC):
    """One backend's fetch / reconcile / push cycle.

    Args:
        context: HTTP client, persisted state, snapshot manager and clock.
    """

    provider: str = ""

    def __init__(self, context: AdapterContext):
        self._context = context

    @property
    def client(self) -> httpx.AsyncClient:
        return self._context.client

    @property
    def state(self) -> SyncStateStore:
        return self._context.state

    def now(self) -> int:
        return self._context.clock()

    @abstractmethod
    async def sync(self, config: SyncConfig, local_entities: List[Memo]) -> List[Memo]:
        """Run one pass and return the entity list to persist locally."""
        raise NotImplementedError

    def _settings(self, config: SyncConfig, expected: Type[S]) -> S:
        if config.provider != self.provider or not isinstance(config.settings, expected):
            raise ConfigurationError(
                f"{type(self).__name__} cannot use settings for provider {config.provider!r}"
            )
        return config.settings

    async def _request(self, method: str, url: str, *, operation: str, **kwargs) -> httpx.Response:
        """Send a request, turning transport failures into ``NetworkError``."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.debug(f"{operation} transport failure: {e}", exc_info=True)
            raise NetworkError(operation, str(e) or type(e).__name__) from e
        logger.debug(f"{operation}: {method} {url} -> {response.status_code}")
        return response
