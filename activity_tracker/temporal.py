"""
Activity Tracker — Clock helpers.

Calendar comparisons use local time: a "new day" is the user's day.
"""

from __future__ import annotations

import time
from datetime import datetime


def now() -> datetime:
    """Return the current local time (timezone-aware)."""
    return datetime.now().astimezone()


def now_iso() -> str:
    """Return the current local timestamp in ISO 8601 format."""
    return now().isoformat()


def now_ms() -> int:
    """Wall-clock epoch milliseconds, the timer engine's unit."""
    return int(time.time() * 1000)


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, returning None when it is unusable.

    A trailing ``Z`` (as written by JavaScript's ``toISOString``) is accepted.
    Naive values are interpreted as local time.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def to_local(dt: datetime) -> datetime:
    """Convert an aware datetime to local time; naive values pass through."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone()
