"""UserManager — the local list of known users and who is active."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from activity_tracker import config
from activity_tracker.kvstore import KeyValueStore
from activity_tracker.temporal import now_iso, now_ms

logger = logging.getLogger("activity_tracker.users")


@dataclass
class User:
    id: str
    name: str
    created_at: str


@dataclass
class UserResult:
    success: bool
    message: str = ""
    user: Optional[User] = None

    def __bool__(self) -> bool:
        return self.success


class UserManager:
    """Users, the current user and a short most-recent-first list.

    Deleting a user forgets the name only; their activity document stays.
    """

    def __init__(self, store: KeyValueStore, recent_limit: int | None = None):
        self._store = store
        self._recent_limit = recent_limit or config.RECENT_USERS_LIMIT
        self._users: list[User] = []

    async def load(self) -> list[User]:
        stored = await self._store.get_json(config.USERS_KEY, default=[])
        users = []
        for raw in stored if isinstance(stored, list) else []:
            if isinstance(raw, dict) and raw.get("name"):
                users.append(User(
                    id=str(raw.get("id", "")),
                    name=str(raw["name"]),
                    created_at=str(raw.get("createdAt") or raw.get("created_at") or ""),
                ))
        self._users = users
        return self.users()

    async def _save(self) -> None:
        await self._store.set_json(
            config.USERS_KEY,
            [{"id": u.id, "name": u.name, "createdAt": u.created_at} for u in self._users],
        )

    def users(self) -> list[User]:
        return list(self._users)

    def user_exists(self, name: str) -> bool:
        wanted = name.strip().lower()
        return any(u.name.lower() == wanted for u in self._users)

    async def create_user(self, name: str) -> UserResult:
        if not name or not name.strip():
            return UserResult(False, "User name cannot be empty")
        trimmed = name.strip()
        if self.user_exists(trimmed):
            return UserResult(False, "User already exists")
        user = User(id=str(now_ms()), name=trimmed, created_at=now_iso())
        self._users.append(user)
        await self._save()
        logger.info("Created user %r", trimmed)
        return UserResult(True, user=user)

    async def delete_user(self, name: str) -> bool:
        before = len(self._users)
        self._users = [u for u in self._users if u.name != name]
        if len(self._users) == before:
            return False
        await self._save()
        recent = [n for n in await self.recent_users() if n != name]
        await self._store.set_json(config.RECENT_USERS_KEY, recent)
        if await self.current_user() == name:
            await self._store.delete(config.CURRENT_USER_KEY)
        return True

    async def current_user(self) -> Optional[str]:
        name = await self._store.get_json(config.CURRENT_USER_KEY)
        return name if isinstance(name, str) and name else None

    async def set_current_user(self, name: str | None) -> None:
        """Remember the active user and move it to the front of the recent list."""
        if not name:
            await self._store.delete(config.CURRENT_USER_KEY)
            return
        await self._store.set_json(config.CURRENT_USER_KEY, name)
        recent = [n for n in await self.recent_users() if n != name]
        recent.insert(0, name)
        await self._store.set_json(config.RECENT_USERS_KEY, recent[: self._recent_limit])

    async def recent_users(self) -> list[str]:
        stored = await self._store.get_json(config.RECENT_USERS_KEY, default=[])
        if not isinstance(stored, list):
            return []
        return [n for n in stored if isinstance(n, str)]

