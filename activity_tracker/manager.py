"""
Activity Tracker — Data Manager.

Owns the canonical activity collection of one user. Every read goes through
rollover; every mutation works on a copy and only replaces the cached
document once the backend accepted the write.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from activity_tracker import config
from activity_tracker.cache import DocumentCache
from activity_tracker.exceptions import StorageError
from activity_tracker.models import (
    DEFAULT_COLOR, Activity, Bucket, Note, OperationResult, Session, UserDocument,
    migrate_notes,
)
from activity_tracker.rollover import apply_rollover
from activity_tracker.seeds import SeedLoader, load_default_activities, seed_activities
from activity_tracker.storage import StorageBackend, document_key
from activity_tracker.temporal import now, parse_iso

logger = logging.getLogger("activity_tracker.manager")

SyncCallback = Callable[[list[Activity]], None]

BACKEND_UNAVAILABLE = "Backend unavailable"


class DataManager:
    """Per-user activity state on top of a storage backend.

    Usage:
        manager = DataManager(LocalBackend(store), "ana")
        await manager.add_hours_to_activity("Trabajo", Bucket.DAY, 1.5)
        activities = await manager.get_data()
    """

    def __init__(
        self,
        backend: StorageBackend,
        username: str | None = None,
        *,
        seed_loader: SeedLoader = load_default_activities,
        cache_ttl: float | None = None,
        clock: Callable[[], datetime] = now,
        cache_clock: Callable[[], float] = time.monotonic,
    ):
        self._backend = backend
        self._username = username
        self._seed_loader = seed_loader
        self._clock = clock
        self._cache: DocumentCache[UserDocument] = DocumentCache(
            config.CACHE_TTL if cache_ttl is None else cache_ttl, clock=cache_clock
        )
        self._callbacks: list[SyncCallback] = []
        self._unsubscribe_backend: Optional[Callable[[], None]] = None
        self._syncing = False
        self._last_written: Optional[dict] = None

    @property
    def username(self) -> str | None:
        return self._username

    @property
    def key(self) -> str:
        return document_key(self._username)

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    async def set_user(self, username: str | None) -> None:
        """Switch to another user's document."""
        self._drop_backend_subscription()
        self._cache.invalidate()
        self._username = username
        self._last_written = None
        await self._ensure_subscribed()
        logger.info("Active user: %s", username or "(none)")

    async def close(self) -> None:
        self._drop_backend_subscription()

    # ─── Reads ────────────────────────────────────────────────────────

    async def get_data(self, force: bool = False) -> list[Activity]:
        """Current activities, rolled over to today."""
        document = await self._document(force=force)
        return document.activities

    async def get_activity(self, title: str) -> Optional[Activity]:
        document = await self._document()
        return document.find(title)

    async def get_time_sessions(
        self,
        activity: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Session]:
        """Session log, optionally filtered by activity and time range."""
        document = await self._document()
        sessions = document.sessions
        if activity:
            sessions = [s for s in sessions if s.activity == activity]
        if start or end:
            selected = []
            for session in sessions:
                stamp = parse_iso(session.timestamp)
                if stamp is None:
                    continue
                if start and stamp < _aware(start):
                    continue
                if end and stamp > _aware(end):
                    continue
                selected.append(session)
            sessions = selected
        return sessions

    # ─── Writes ───────────────────────────────────────────────────────

    async def save(self, activities: Iterable[Activity | dict]) -> bool:
        """Overwrite the whole activity collection."""
        document = await self._writable_document()
        if document is None:
            return False
        document.activities = [
            a if isinstance(a, Activity) else Activity.from_dict(a) for a in activities
        ]
        return await self._persist(document)

    async def add_hours_to_activity(self, title: str, bucket: Bucket | str, hours: float) -> bool:
        """Add (or, with a negative value, subtract) hours to ``current``."""
        target = Bucket.parse(bucket)
        if target is None or not _finite(hours):
            return False
        document = await self._writable_document()
        if document is None:
            return False
        activity = document.find(title)
        if activity is None:
            logger.debug("add_hours: no activity %r", title)
            return False
        frame = activity.timeframe(target)
        frame.current = max(0.0, frame.current + float(hours))
        return await self._persist(document)

    async def update_activity_hours(
        self, title: str, bucket: Bucket | str, current: float, previous: float
    ) -> bool:
        """Set both counters of one bucket."""
        target = Bucket.parse(bucket)
        if target is None or not _finite(current) or not _finite(previous):
            return False
        if current < 0 or previous < 0:
            return False
        document = await self._writable_document()
        if document is None:
            return False
        activity = document.find(title)
        if activity is None:
            return False
        frame = activity.timeframe(target)
        frame.current, frame.previous = float(current), float(previous)
        return await self._persist(document)

    async def reset_activity(self, title: str, bucket: Bucket | str | None = None) -> bool:
        """Zero ``current`` for one bucket, or for all of them."""
        targets = list(Bucket) if bucket is None else [Bucket.parse(bucket)]
        if None in targets:
            return False
        document = await self._writable_document()
        if document is None:
            return False
        activity = document.find(title)
        if activity is None:
            return False
        for target in targets:
            activity.timeframe(target).current = 0.0
        return await self._persist(document)

    async def add_note(self, title: str, bucket: Bucket | str, text: str) -> OperationResult:
        target = Bucket.parse(bucket)
        if target is None:
            return OperationResult.fail(f"Unknown timeframe: {bucket}")
        if not text or not text.strip():
            return OperationResult.fail("Note text cannot be empty")
        document = await self._writable_document()
        if document is None:
            return OperationResult.fail(BACKEND_UNAVAILABLE)
        activity = document.find(title)
        if activity is None:
            return OperationResult.fail(f"Activity not found: {title}")
        activity.timeframe(target).notes.append(Note(text.strip(), self._clock().isoformat()))
        if not await self._persist(document):
            return OperationResult.fail("Could not save the note")
        return OperationResult.ok(activity)

    async def create_activity(
        self, title: str, color: str | None = None, icon: str | None = None
    ) -> OperationResult:
        """Append a new activity with zeroed timeframes."""
        return await self.add_activity(
            Activity(title=(title or "").strip(), color=color or DEFAULT_COLOR, icon=icon)
        )

    async def add_activity(self, activity: Activity | dict) -> OperationResult:
        """Append a fully formed activity, keeping its hours."""
        if isinstance(activity, dict):
            activity = Activity.from_dict(activity)
        if not activity.title:
            return OperationResult.fail("Activity title cannot be empty")
        document = await self._writable_document()
        if document is None:
            return OperationResult.fail(BACKEND_UNAVAILABLE)
        if any(existing.matches(activity.title) for existing in document.activities):
            return OperationResult.fail("Activity already exists")
        document.activities.append(activity)
        if not await self._persist(document):
            return OperationResult.fail("Could not save the activity")
        logger.info("Created activity %r", activity.title)
        return OperationResult.ok(activity)

    async def delete_activity(self, title: str) -> OperationResult:
        document = await self._writable_document()
        if document is None:
            return OperationResult.fail(BACKEND_UNAVAILABLE)
        remaining = [a for a in document.activities if a.title != title]
        if len(remaining) == len(document.activities):
            return OperationResult.fail(f"Activity not found: {title}")
        document.activities = remaining
        if not await self._persist(document):
            return OperationResult.fail("Could not save the deletion")
        logger.info("Deleted activity %r", title)
        return OperationResult.ok()

    async def log_time_session(
        self, activity: str, hours: float, note: str | None = None
    ) -> Optional[Session]:
        """Append to the session log. Aggregate hours are left alone."""
        if not _finite(hours) or hours < 0:
            return None
        document = await self._writable_document()
        if document is None:
            return None
        session = Session.create(activity, float(hours), self._clock().isoformat(), note)
        document.sessions.append(session)
        if not await self._persist(document):
            return None
        return session

    async def reset_data(self) -> list[Activity]:
        """Replace every activity with the default set; sessions are kept."""
        document = await self._writable_document()
        if document is not None:
            document.activities = seed_activities(self._seed_loader)
            await self._persist(document)
        return await self.get_data()

    async def import_data(self, payload: Any) -> OperationResult:
        """Replace activities (and sessions, if given) from parsed JSON."""
        if isinstance(payload, list):
            raw_activities, raw_sessions = payload, None
        elif isinstance(payload, dict) and isinstance(payload.get("activities"), list):
            raw_activities, raw_sessions = payload["activities"], payload.get("sessions")
        else:
            return OperationResult.fail("Expected a list of activities")
        if not all(isinstance(a, dict) and str(a.get("title", "")).strip() for a in raw_activities):
            return OperationResult.fail("Every activity needs a title")
        titles = [str(a["title"]).strip().lower() for a in raw_activities]
        if len(set(titles)) != len(titles):
            return OperationResult.fail("Duplicate activity titles")

        migrate_notes(raw_activities, self._clock().isoformat())
        imported = UserDocument.from_dict({"activities": raw_activities, "sessions": raw_sessions})
        document = await self._writable_document()
        if document is None:
            return OperationResult.fail(BACKEND_UNAVAILABLE)
        document.activities = imported.activities
        if raw_sessions is not None:
            document.sessions = imported.sessions
        if not await self._persist(document):
            return OperationResult.fail("Could not save the imported data")
        return OperationResult.ok(message=f"Imported {len(imported.activities)} activities")

    # ─── Change notifications ─────────────────────────────────────────

    def on_data_sync(self, callback: SyncCallback) -> Callable[[], None]:
        """Register ``callback(activities)``; returns its unsubscribe function."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _notify(self, document: UserDocument) -> None:
        for callback in list(self._callbacks):
            try:
                callback(document.copy().activities)
            except Exception:
                logger.exception("Data sync callback %r failed", callback)

    def _on_backend_change(self, raw: dict | list | None) -> None:
        if raw is not None and raw == self._last_written:
            return  # echo of our own write
        if raw is None:
            logger.info("Document %s removed remotely", self.key)
            self._cache.invalidate(self.key)
            self._notify(UserDocument())
            return
        if isinstance(raw, list):
            raw = {"activities": raw}
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed remote document for %s", self.key)
            return
        migrate_notes(raw.get("activities") or [], self._clock().isoformat())
        document = UserDocument.from_dict(raw)
        self._cache.set(self.key, document)
        logger.debug("Remote change for %s (%d activities)", self.key, len(document.activities))
        self._notify(document)

    async def _ensure_subscribed(self) -> None:
        if self._unsubscribe_backend is None:
            self._unsubscribe_backend = self._backend.subscribe(
                self._username, self._on_backend_change
            )

    def _drop_backend_subscription(self) -> None:
        if self._unsubscribe_backend is not None:
            self._unsubscribe_backend()
            self._unsubscribe_backend = None

    # ─── Internal Helpers ─────────────────────────────────────────────

    async def _document(self, force: bool = False) -> UserDocument:
        """A private copy of the current document, rolled over to now.

        When the backend is unreachable this is the fallback copy, which is
        fine to show but must never be written back.
        """
        document, _ = await self._resolve(force)
        return document

    async def _writable_document(self) -> Optional[UserDocument]:
        """Like ``_document`` but None when only a fallback copy is available."""
        document, live = await self._resolve()
        if not live:
            logger.warning("Mutation on %s refused: backend unavailable", self.key)
            return None
        return document

    async def _resolve(self, force: bool = False) -> tuple[UserDocument, bool]:
        await self._ensure_subscribed()
        cached = None if force else self._cache.get(self.key)
        if cached is not None:
            document, dirty, fetched = cached.copy(), False, False
        else:
            loaded = await self._load()
            if loaded is None:
                return self._fallback(), False
            (document, dirty), fetched = loaded, True

        dirty = apply_rollover(document, self._clock()) or dirty
        if dirty:
            # Read triggers write; a failed write still serves the rolled data
            if not await self._persist(document):
                return document.copy(), True
        elif fetched:
            # Cache hits keep their original fetch time
            self._cache.set(self.key, document.copy())
        return document, True

    async def _load(self) -> Optional[tuple[UserDocument, bool]]:
        """Read from the backend. None means unreachable."""
        try:
            raw = await self._backend.load(self._username)
        except StorageError as e:
            logger.warning("Backend read failed for %s: %s", self.key, e)
            return None

        if isinstance(raw, list):
            raw = {"activities": raw}
        if not isinstance(raw, dict) or not isinstance(raw.get("activities"), list):
            if raw is not None:
                logger.warning("Malformed document under %s, loading defaults", self.key)
            document = UserDocument(activities=seed_activities(self._seed_loader))
            return document, True

        migrated = migrate_notes(raw["activities"], self._clock().isoformat())
        return UserDocument.from_dict(raw), migrated

    def _fallback(self) -> UserDocument:
        last_good = self._cache.last_good(self.key)
        if last_good is not None:
            logger.warning("Serving last good copy of %s", self.key)
            return last_good.copy()
        logger.warning("No cached copy of %s, serving defaults", self.key)
        return UserDocument(activities=seed_activities(self._seed_loader))

    async def _persist(self, document: UserDocument) -> bool:
        """Write the document; on success it becomes the cached state."""
        if self._syncing:
            logger.warning("Save rejected for %s: another save is in progress", self.key)
            return False
        self._syncing = True
        try:
            document.last_update = self._clock().isoformat()
            payload = document.to_dict()
            self._last_written = payload
            await self._backend.save(self._username, payload)
        except StorageError as e:
            self._last_written = None
            logger.error("Backend write failed for %s: %s", self.key, e)
            return False
        finally:
            self._syncing = False

        self._cache.set(self.key, document.copy())
        self._notify(document)
        return True

    def __repr__(self) -> str:
        return f"DataManager(user={self._username!r}, backend={self._backend!r})"


def _finite(value: Any) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.astimezone()
