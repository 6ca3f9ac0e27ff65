"""In-process storage backend.

Every ``MemoryBackend`` created with the same ``shared`` dict sees the same
documents, and a save through one instance is pushed to subscribers of the
others. That makes it a stand-in for a remote store in tests and demos.
"""

from __future__ import annotations

import copy
import logging

from activity_tracker.exceptions import BackendUnavailable
from activity_tracker.storage import ChangeHandler, Unsubscribe, document_key

logger = logging.getLogger("activity_tracker.storage.memory")


class _Hub:
    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.handlers: dict[str, list[tuple[object, ChangeHandler]]] = {}


class MemoryBackend:
    def __init__(self, hub: _Hub | None = None):
        self.hub = hub or _Hub()
        self.online = True

    def connect_peer(self) -> MemoryBackend:
        """Another client of the same store."""
        return MemoryBackend(self.hub)

    def _check_online(self) -> None:
        if not self.online:
            raise BackendUnavailable(0, "memory backend set offline")

    async def load(self, username: str | None) -> dict | None:
        self._check_online()
        document = self.hub.documents.get(document_key(username))
        return copy.deepcopy(document)

    async def save(self, username: str | None, document: dict) -> None:
        self._check_online()
        key = document_key(username)
        self.hub.documents[key] = copy.deepcopy(document)
        for owner, handler in list(self.hub.handlers.get(key, [])):
            if owner is not self:
                handler(copy.deepcopy(document))

    def subscribe(self, username: str | None, handler: ChangeHandler) -> Unsubscribe:
        key = document_key(username)
        entry = (self, handler)
        self.hub.handlers.setdefault(key, []).append(entry)

        def unsubscribe() -> None:
            handlers = self.hub.handlers.get(key, [])
            if entry in handlers:
                handlers.remove(entry)

        return unsubscribe

    async def health_check(self) -> bool:
        return self.online

    async def close(self) -> None:
        for key, handlers in self.hub.handlers.items():
            self.hub.handlers[key] = [h for h in handlers if h[0] is not self]
