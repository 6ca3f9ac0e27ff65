"""
Activity Tracker — Local key-value store.

The tracker's equivalent of browser local storage: string values under
string keys, kept in a single SQLite table. Timer state, the user list and
locally stored documents all live here.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import aiosqlite

logger = logging.getLogger("activity_tracker.kvstore")

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""


class KeyValueStore:
    """Async string store on SQLite.

    Usage::

        async with KeyValueStore("~/.activity-tracker/tracker.db") as kv:
            await kv.set_json("theme", "dark")
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> KeyValueStore:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._conn is not None:
            return
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.execute("PRAGMA journal_mode=WAL;")
        await self._conn.execute("PRAGMA busy_timeout=5000;")
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.debug("Key-value store opened at %s", self.db_path)

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.connect()
        return self._conn

    async def get(self, key: str) -> str | None:
        conn = await self._ensure_conn()
        async with conn.execute("SELECT value FROM kv WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        conn = await self._ensure_conn()
        await conn.execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')",
            (key, value),
        )
        await conn.commit()

    async def delete(self, key: str) -> bool:
        conn = await self._ensure_conn()
        cursor = await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await conn.commit()
        return cursor.rowcount > 0

    async def keys(self, prefix: str = "") -> list[str]:
        conn = await self._ensure_conn()
        async with conn.execute(
            "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        ) as cursor:
            rows = await cursor.fetchall()
        return [r[0] for r in rows]

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Decode a stored JSON value; corrupt values count as absent."""
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Corrupt JSON under %r, ignoring it", key)
            return default

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value, ensure_ascii=False))

    async def close(self) -> None:
        if self._conn is not None:
            try:
                await self._conn.close()
            except Exception as e:
                logger.warning("Error closing key-value store: %s", e)
            self._conn = None

    def __repr__(self) -> str:
        return f"KeyValueStore(db_path={self.db_path!r}, connected={self._conn is not None})"
