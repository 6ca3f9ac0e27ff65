"""
Activity Tracker — Application root.

Builds every service once and hands them out by reference. Front-ends talk
to these objects instead of module-level singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from activity_tracker import config
from activity_tracker.kvstore import KeyValueStore
from activity_tracker.manager import DataManager
from activity_tracker.models import Bucket
from activity_tracker.storage import StorageBackend, create_backend
from activity_tracker.timer import TimerManager
from activity_tracker.users import UserManager

logger = logging.getLogger("activity_tracker.app")


@dataclass
class Application:
    store: KeyValueStore
    backend: StorageBackend
    data: DataManager
    timers: TimerManager
    users: UserManager

    @classmethod
    async def create(
        cls,
        username: str | None = None,
        *,
        db_path: str | None = None,
        backend: StorageBackend | None = None,
    ) -> Application:
        """Open local state, pick the backend and restore timers.

        Without ``username`` the last active user is resumed.
        """
        if db_path is None:
            config.ensure_dirs()
        store = KeyValueStore(db_path or config.DB_PATH)
        await store.connect()
        backend = backend or create_backend(store)

        users = UserManager(store)
        await users.load()
        if username is None:
            username = await users.current_user()
        elif not users.user_exists(username):
            await users.create_user(username)
        if username:
            await users.set_current_user(username)

        timers = TimerManager(store)
        restored = await timers.load()
        if restored:
            logger.info("Restored %d running timer(s)", restored)

        data = DataManager(backend, username)
        return cls(store=store, backend=backend, data=data, timers=timers, users=users)

    async def switch_user(self, username: str | None) -> None:
        if username and not self.users.user_exists(username):
            await self.users.create_user(username)
        await self.users.set_current_user(username)
        await self.data.set_user(username)

    async def add_time(
        self, title: str, hours: float, bucket: Bucket | str = Bucket.DAY, note: str | None = None
    ) -> bool:
        """Manual entry: add hours, then record the session."""
        if hours <= 0:
            return False
        if not await self.data.add_hours_to_activity(title, bucket, hours):
            return False
        if note:
            await self.data.add_note(title, bucket, note)
        await self.data.log_time_session(title, hours, note)
        return True

    async def stop_timer(
        self, title: str, bucket: Bucket | str = Bucket.DAY, note: str | None = None
    ) -> Optional[float]:
        """Stop a timer and book its hours. None if no timer was running."""
        hours = await self.timers.stop(title)
        if hours is None:
            return None
        if not await self.data.add_hours_to_activity(title, bucket, hours):
            logger.warning("Timer for %r stopped but its hours were not added", title)
        await self.data.log_time_session(title, hours, note)
        if not self.timers.active_timers():
            self.timers.stop_ticker()
        return hours

    async def close(self) -> None:
        self.timers.stop_ticker()
        await self.data.close()
        await self.backend.close()
        if getattr(self.backend, "store", None) is not self.store:
            await self.store.close()
