"""Local storage backend over the SQLite key-value store."""

from __future__ import annotations

import logging
import sqlite3

from activity_tracker.exceptions import StorageError
from activity_tracker.kvstore import KeyValueStore
from activity_tracker.storage import ChangeHandler, Unsubscribe, document_key

logger = logging.getLogger("activity_tracker.storage.local")


class LocalBackend:
    """Documents stored as JSON strings in a KeyValueStore.

    There is no cross-process notification: two processes sharing the file
    race and the last write wins. Subscribers only hear about saves made
    through this same instance by other data managers.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._handlers: dict[str, list[ChangeHandler]] = {}

    async def load(self, username: str | None) -> dict | list | None:
        try:
            return await self.store.get_json(document_key(username))
        except sqlite3.Error as e:
            raise StorageError(f"Local read failed: {e}") from e

    async def save(self, username: str | None, document: dict) -> None:
        key = document_key(username)
        try:
            await self.store.set_json(key, document)
        except sqlite3.Error as e:
            raise StorageError(f"Local write failed: {e}") from e
        logger.debug("Saved %s (%d activities)", key, len(document.get("activities", [])))
        for handler in list(self._handlers.get(key, [])):
            handler(document)

    def subscribe(self, username: str | None, handler: ChangeHandler) -> Unsubscribe:
        key = document_key(username)
        self._handlers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def health_check(self) -> bool:
        try:
            await self.store.get("__health__")
            return True
        except sqlite3.Error:
            return False

    async def close(self) -> None:
        self._handlers.clear()
        await self.store.close()

    def __repr__(self) -> str:
        return f"LocalBackend(store={self.store!r})"
