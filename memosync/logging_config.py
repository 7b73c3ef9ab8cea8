"""Logging setup for memosync.

Library modules only call ``logging.getLogger(__name__)``; an application
that wants memosync's logs on disk calls ``setup_memosync_logging`` once.

Files live under ``<data home>/logs/``:

- ``local-YYYY-MM-DD.log``: everything the ``memosync`` logger emits
- ``memory-events-YYYY-MM-DD.log``: one line per sync event, for a quick
  audit of what this device pushed and pulled

Never pass tokens or passwords to these functions.
"""

import logging
from datetime import datetime
from pathlib import Path

from memosync.utils import get_memosync_home

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _log_dir() -> Path:
    log_dir = get_memosync_home() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _today() -> str:
    return datetime.now().strftime("%Y-%m-%d")


def setup_memosync_logging(level: str = "INFO") -> logging.Logger:
    """Attach a dated file handler (and a console handler at DEBUG).

    Safe to call more than once; handlers are only added the first time.

    Args:
        level: Level name, case-insensitive. Unknown names mean INFO.

    Returns:
        The ``memosync`` package logger
    """
    logger = logging.getLogger("memosync")
    log_level = getattr(logging, str(level).upper(), None)
    if not isinstance(log_level, int):
        log_level = logging.INFO
    logger.setLevel(log_level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = logging.FileHandler(_log_dir() / f"local-{_today()}.log", encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if log_level == logging.DEBUG:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger


def log_memory_event(event: str, details: str, device_id: str = "default") -> None:
    """Append one line to today's event log."""
    timestamp = datetime.now().isoformat(timespec="seconds")
    path = _log_dir() / f"memory-events-{_today()}.log"
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{timestamp} | {event} | device={device_id} | {details}\n")


def log_sync(device_id: str, provider: str, direction: str, count: int, errors: int = 0) -> None:
    log_memory_event(
        "sync",
        f"provider={provider}, direction={direction}, count={count}, errors={errors}",
        device_id=device_id,
    )
