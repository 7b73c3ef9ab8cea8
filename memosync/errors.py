"""Error taxonomy for memosync.

Configuration and HTTP failures are fatal to the current sync pass and are
never retried here; retry policy belongs to the caller. A conflict is not a
failure but a structured exceptional return carrying both snapshots.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from memosync.types import SyncSnapshot


class MemoSyncError(Exception):
    """Base for all memosync errors."""

    pass


class ConfigurationError(MemoSyncError):
    """Missing or invalid provider settings."""

    pass


class IntegrityError(MemoSyncError):
    """A remote document or snapshot could not be parsed into entities."""

    pass


class CryptoError(MemoSyncError):
    """Base exception for crypto errors."""

    pass


class DecryptionError(CryptoError):
    """Decryption failed.

    Deliberately opaque: a wrong password, a corrupted ciphertext and a
    tampered tag all produce the same message.
    """

    def __init__(self, message: str = "Decryption failed. Invalid password or corrupted data."):
        super().__init__(message)


class NetworkError(MemoSyncError):
    """The remote could not be reached (DNS, connect, timeout)."""

    error_class = "network"

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class SyncHTTPError(MemoSyncError):
    """A remote backend answered with a non-2xx status."""

    error_class = "api"

    def __init__(self, operation: str, status_code: int, detail: str = ""):
        message = f"{operation} failed with HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.detail = detail


class AuthenticationError(SyncHTTPError):
    """Credentials were rejected (401/403)."""

    error_class = "auth"


class ServerError(SyncHTTPError):
    """The backend failed (5xx)."""

    error_class = "server"


class ApiError(SyncHTTPError):
    """Any other non-2xx response."""

    error_class = "api"


class RemoteVersionConflictError(SyncHTTPError):
    """A conditional write was rejected because the remote version moved.

    The next pass re-reads the remote and starts from the new version.
    """

    error_class = "version_conflict"


class SyncConflictError(MemoSyncError):
    """The cloud snapshot is newer than this device's last sync.

    Raised instead of merging; the caller must pick a side with
    ``SyncOrchestrator.resolve_conflict``.
    """

    def __init__(
        self,
        local_snapshot: "SyncSnapshot",
        cloud_snapshot: "SyncSnapshot",
        last_sync_time: int = 0,
        provider: Optional[str] = None,
    ):
        super().__init__(
            f"Cloud snapshot from device {cloud_snapshot.meta.device_id!r} "
            f"at {cloud_snapshot.meta.updated_at} is newer than last sync at {last_sync_time}"
        )
        self.local_snapshot = local_snapshot
        self.cloud_snapshot = cloud_snapshot
        self.last_sync_time = last_sync_time
        self.provider = provider
