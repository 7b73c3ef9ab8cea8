"""Small shared helpers: data home resolution and URL safety checks."""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def get_memosync_home() -> Path:
    """Directory holding the local database and logs.

    ``MEMOSYNC_DATA_DIR`` overrides the default ``~/.memosync``.
    """
    override = os.environ.get("MEMOSYNC_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".memosync"


def validate_backend_url(url: str, *, allow_localhost_http: bool = True) -> Optional[str]:
    """Validate a backend URL for safe credential transmission.

    Rejects non-http/https schemes, URLs with no host, and remote HTTP
    endpoints (only loopback hosts are allowed over plaintext HTTP).

    Returns:
        The URL unchanged if valid, or ``None`` if rejected (with a
        warning logged for each rejection reason).
    """
    if not url:
        return None

    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"}:
        logger.warning("Invalid backend URL scheme; only http/https allowed.")
        return None
    if not parsed.netloc:
        logger.warning("Invalid backend URL; missing host.")
        return None
    if parsed.scheme == "http":
        if not allow_localhost_http:
            logger.warning("HTTP not allowed in this context.")
            return None
        if (parsed.hostname or "") not in LOCAL_HOSTS:
            logger.warning("Refusing non-local http backend URL for security.")
            return None
    return url
