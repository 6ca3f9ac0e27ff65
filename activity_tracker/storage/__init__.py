"""
Activity Tracker — Storage Backend Abstraction.

Pluggable persistence for per-user documents. The data manager never knows
which backend is active; it only calls the protocol methods.

Usage:
    ACTIVITY_TRACKER_STORAGE=local   → SQLite key-value file (default)
    ACTIVITY_TRACKER_STORAGE=remote  → REST document store
    ACTIVITY_TRACKER_STORAGE=memory  → in-process, nothing persisted
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

from activity_tracker import config
from activity_tracker.exceptions import ConfigError

logger = logging.getLogger("activity_tracker.storage")

# Receives the full new document (or None when it was removed)
ChangeHandler = Callable[[Optional[dict]], None]
Unsubscribe = Callable[[], None]


class StorageMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    MEMORY = "memory"


@runtime_checkable
class StorageBackend(Protocol):
    """Protocol for all storage backends.

    Documents are plain dicts shaped
    ``{"activities": [...], "lastUpdate": "...", "sessions": [...]}``.
    """

    async def load(self, username: str | None) -> dict | list | None:
        """Return the stored document, or None if there is none."""
        ...

    async def save(self, username: str | None, document: dict) -> None:
        """Overwrite the stored document. Raises StorageError on failure."""
        ...

    def subscribe(self, username: str | None, handler: ChangeHandler) -> Unsubscribe:
        """Call ``handler`` whenever the document changes elsewhere."""
        ...

    async def health_check(self) -> bool:
        """Return True if the backend is reachable."""
        ...

    async def close(self) -> None:
        """Release connections and stop listeners."""
        ...


def document_key(username: str | None) -> str:
    """Storage key of a user's document; no user means the legacy key."""
    if username:
        return f"{config.DATA_KEY_PREFIX}-{username}"
    return config.DATA_KEY_PREFIX


def get_storage_mode() -> StorageMode:
    """Detect storage mode from configuration."""
    raw = (config.STORAGE_MODE or "local").lower()
    try:
        return StorageMode(raw)
    except ValueError:
        logger.warning("Unknown ACTIVITY_TRACKER_STORAGE='%s', falling back to local", raw)
        return StorageMode.LOCAL


def get_storage_config() -> dict:
    """Gather all storage-related settings."""
    mode = get_storage_mode()
    settings: dict = {"mode": mode}

    if mode == StorageMode.REMOTE:
        if not config.REMOTE_URL:
            raise ConfigError(
                "ACTIVITY_TRACKER_REMOTE_URL is required when ACTIVITY_TRACKER_STORAGE=remote. "
                "Example: https://my-tracker.example-db.com"
            )
        settings["url"] = config.REMOTE_URL
        settings["token"] = config.REMOTE_TOKEN
    elif mode == StorageMode.LOCAL:
        settings["db_path"] = config.DB_PATH

    return settings


def create_backend(store=None) -> StorageBackend:
    """Build the backend selected by configuration.

    ``store`` is an already opened KeyValueStore to share with the local
    backend; other modes ignore it.
    """
    settings = get_storage_config()
    mode = settings["mode"]

    if mode == StorageMode.REMOTE:
        from activity_tracker.storage.remote import RemoteBackend

        return RemoteBackend(settings["url"], token=settings["token"])

    if mode == StorageMode.MEMORY:
        from activity_tracker.storage.memory import MemoryBackend

        return MemoryBackend()

    from activity_tracker.kvstore import KeyValueStore
    from activity_tracker.storage.local import LocalBackend

    return LocalBackend(store or KeyValueStore(settings["db_path"]))
