"""TimerManager — per-activity stopwatches that survive a restart."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from activity_tracker import config
from activity_tracker.kvstore import KeyValueStore
from activity_tracker.models import TimerState
from activity_tracker.temporal import now_ms

logger = logging.getLogger("activity_tracker.timer")

MS_PER_HOUR = 1000 * 60 * 60

TickCallback = Callable[[dict[str, int]], None]


def format_time(milliseconds: int | float) -> str:
    """Format milliseconds as ``HH:MM:SS.CC`` (centiseconds)."""
    ms = max(0, int(milliseconds))
    total_seconds, rest = divmod(ms, 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{rest // 10:02d}"


class TimerManager:
    """Stopwatch state machine, one timer per activity title.

    Absent → start → Running → pause → Paused → start → Running → stop → Absent

    State is written to the key-value store after every change, so a
    Running timer keeps counting from its original start across a restart.

    Usage:
        timers = TimerManager(store)
        await timers.load()
        await timers.start("Trabajo")
        hours = await timers.stop("Trabajo")
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], int] = now_ms,
        storage_key: str | None = None,
    ):
        self._store = store
        self._clock = clock
        self._key = storage_key or config.TIMERS_KEY
        self._timers: dict[str, TimerState] = {}
        self._ticker: Optional[asyncio.Task] = None

    async def load(self) -> int:
        """Restore persisted timers. Returns how many were restored."""
        stored = await self._store.get_json(self._key, default={})
        self._timers.clear()
        if not isinstance(stored, dict):
            logger.warning("Ignoring malformed timer state")
            return 0
        for title, data in stored.items():
            try:
                self._timers[title] = TimerState.from_dict(data)
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning("Dropping unreadable timer for %r", title)
        return len(self._timers)

    async def _save(self) -> None:
        await self._store.set_json(
            self._key, {title: state.to_dict() for title, state in self._timers.items()}
        )

    # ─── Transitions ──────────────────────────────────────────────

    async def start(self, title: str) -> bool:
        """Start a new timer or resume a paused one."""
        now = self._clock()
        timer = self._timers.get(title)
        if timer is None:
            self._timers[title] = TimerState(start_time=now)
        elif timer.is_paused:
            timer.start_time = now - timer.paused_time
            timer.is_paused = False
        else:
            return True
        await self._save()
        logger.debug("Timer running: %s", title)
        return True

    async def pause(self, title: str) -> bool:
        """Freeze a running timer. False if absent or already paused."""
        timer = self._timers.get(title)
        if timer is None or timer.is_paused:
            return False
        timer.paused_time = self._clock() - timer.start_time
        timer.is_paused = True
        await self._save()
        logger.debug("Timer paused: %s at %d ms", title, timer.paused_time)
        return True

    async def stop(self, title: str) -> Optional[float]:
        """Remove a timer and return its elapsed time in hours.

        Logging the time against the activity is up to the caller.
        """
        timer = self._timers.get(title)
        if timer is None:
            return None
        elapsed = self._elapsed(timer)
        del self._timers[title]
        await self._save()
        logger.debug("Timer stopped: %s after %d ms", title, elapsed)
        return elapsed / MS_PER_HOUR

    # ─── Queries ──────────────────────────────────────────────────

    def _elapsed(self, timer: TimerState) -> int:
        if timer.is_paused:
            return timer.paused_time
        return max(0, self._clock() - timer.start_time)

    def elapsed(self, title: str) -> int:
        """Elapsed milliseconds; 0 when there is no timer."""
        timer = self._timers.get(title)
        return self._elapsed(timer) if timer else 0

    def has_timer(self, title: str) -> bool:
        return title in self._timers

    def is_paused(self, title: str) -> bool:
        timer = self._timers.get(title)
        return timer.is_paused if timer else False

    def active_timers(self) -> list[str]:
        return list(self._timers)

    def snapshot(self) -> dict[str, int]:
        """Elapsed milliseconds of every timer."""
        return {title: self._elapsed(state) for title, state in self._timers.items()}

    # ─── Display tick ─────────────────────────────────────────────

    async def run_ticker(self, on_tick: TickCallback, interval: float | None = None) -> None:
        """Call ``on_tick`` with elapsed times until no timer is left."""
        period = config.TICK_INTERVAL if interval is None else interval
        while self._timers:
            on_tick(self.snapshot())
            await asyncio.sleep(period)
        logger.debug("Ticker idle: no timers left")

    def start_ticker(self, on_tick: TickCallback, interval: float | None = None) -> asyncio.Task:
        """Run the ticker in the background, reusing one that is still alive."""
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.get_running_loop().create_task(
                self.run_ticker(on_tick, interval), name="timer-ticker"
            )
        return self._ticker

    def stop_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._ticker = None

    def __repr__(self) -> str:
        return f"TimerManager(active={len(self._timers)})"
