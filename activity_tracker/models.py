"""Tracker data classes, bucket naming, and legacy-note migration."""

from __future__ import annotations

import copy
import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


DEFAULT_COLOR = "hsl(200, 50%, 50%)"


class Bucket(str, Enum):
    """Rolling aggregation windows.

    The values are the field names found in stored documents. They predate
    the current meaning of each window, so ``weekly`` holds the month and
    ``monthly`` holds the year.
    """

    DAY = "daily"
    MONTH = "weekly"
    YEAR = "monthly"

    @classmethod
    def parse(cls, value: "Bucket | str") -> Optional["Bucket"]:
        """Accept a Bucket, a stored key (``weekly``) or a name (``month``)."""
        if isinstance(value, Bucket):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for bucket in cls:
            if key in (bucket.value, bucket.name.lower()):
                return bucket
        return None


def _hours(value: Any) -> float:
    """Coerce a stored hour count; garbage and negatives become 0."""
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(hours) or math.isinf(hours) or hours < 0:
        return 0.0
    return hours


# ─── Data Classes ─────────────────────────────────────────────────────


@dataclass
class Note:
    """A dated free-text note attached to a timeframe."""
    text: str
    timestamp: str

    def to_dict(self) -> dict:
        return {"text": self.text, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        return cls(text=str(data.get("text", "")), timestamp=str(data.get("timestamp", "")))


@dataclass
class Timeframe:
    """Hours for one bucket: the running period and the one before it."""
    current: float = 0.0
    previous: float = 0.0
    notes: list[Note] = field(default_factory=list)

    def roll(self) -> None:
        self.previous = self.current
        self.current = 0.0

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "previous": self.previous,
            "notes": [n.to_dict() for n in self.notes],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Timeframe":
        data = data or {}
        notes = data.get("notes") or []
        return cls(
            current=_hours(data.get("current")),
            previous=_hours(data.get("previous")),
            notes=[Note.from_dict(n) for n in notes if isinstance(n, dict)],
        )


@dataclass
class Activity:
    """A named, tracked category of time."""
    title: str
    color: str = DEFAULT_COLOR
    icon: Optional[str] = None
    timeframes: dict[Bucket, Timeframe] = field(
        default_factory=lambda: {b: Timeframe() for b in Bucket}
    )

    def timeframe(self, bucket: Bucket) -> Timeframe:
        if bucket not in self.timeframes:
            self.timeframes[bucket] = Timeframe()
        return self.timeframes[bucket]

    def matches(self, title: str) -> bool:
        """Case-insensitive title comparison used for uniqueness."""
        return self.title.strip().lower() == title.strip().lower()

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "title": self.title,
            "color": self.color,
            "timeframes": {b.value: self.timeframe(b).to_dict() for b in Bucket},
        }
        if self.icon:
            data["icon"] = self.icon
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Activity":
        raw_frames = data.get("timeframes") or {}
        return cls(
            title=str(data.get("title", "")).strip(),
            color=data.get("color") or DEFAULT_COLOR,
            icon=data.get("icon"),
            timeframes={b: Timeframe.from_dict(raw_frames.get(b.value)) for b in Bucket},
        )


@dataclass(frozen=True)
class Session:
    """One immutable log entry of time spent on an activity."""
    id: str
    activity: str
    hours: float
    timestamp: str
    note: Optional[str] = None

    @classmethod
    def create(cls, activity: str, hours: float, timestamp: str, note: str | None = None) -> "Session":
        return cls(id=uuid.uuid4().hex[:12], activity=activity, hours=hours,
                   timestamp=timestamp, note=note or None)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "id": self.id,
            "activity": self.activity,
            "hours": self.hours,
            "timestamp": self.timestamp,
        }
        if self.note:
            data["note"] = self.note
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        # Older logs stored the moment under "date" and a numeric id
        return cls(
            id=str(data.get("id", "")),
            activity=str(data.get("activity", "")),
            hours=_hours(data.get("hours")),
            timestamp=str(data.get("timestamp") if isinstance(data.get("timestamp"), str)
                          else data.get("date", "")),
            note=data.get("note"),
        )


@dataclass
class TimerState:
    """Persisted stopwatch state, all values in epoch milliseconds."""
    start_time: int
    paused_time: int = 0
    is_paused: bool = False

    def to_dict(self) -> dict:
        return {"startTime": self.start_time, "pausedTime": self.paused_time,
                "isPaused": self.is_paused}

    @classmethod
    def from_dict(cls, data: dict) -> "TimerState":
        return cls(
            start_time=int(data["startTime"]),
            paused_time=int(data.get("pausedTime") or 0),
            is_paused=bool(data.get("isPaused", False)),
        )


@dataclass
class UserDocument:
    """Everything a backend stores under one username."""
    activities: list[Activity] = field(default_factory=list)
    last_update: Optional[str] = None
    sessions: list[Session] = field(default_factory=list)

    def find(self, title: str) -> Optional[Activity]:
        """Exact title lookup, as mutations address activities."""
        for activity in self.activities:
            if activity.title == title:
                return activity
        return None

    def copy(self) -> "UserDocument":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "activities": [a.to_dict() for a in self.activities],
            "lastUpdate": self.last_update,
            "sessions": [s.to_dict() for s in self.sessions],
        }

    @classmethod
    def from_dict(cls, data: dict | list | None) -> "UserDocument":
        """Parse a stored document.

        A bare list is the oldest local format (activities only).
        """
        if data is None:
            return cls()
        if isinstance(data, list):
            data = {"activities": data}
        activities = [Activity.from_dict(a) for a in data.get("activities") or []
                      if isinstance(a, dict) and str(a.get("title", "")).strip()]
        sessions = [Session.from_dict(s) for s in data.get("sessions") or []
                    if isinstance(s, dict)]
        return cls(activities=activities, last_update=data.get("lastUpdate"), sessions=sessions)


@dataclass
class OperationResult:
    """Outcome of a mutation. Truthy only on success."""
    success: bool
    message: str = ""
    activity: Optional[Activity] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, activity: Activity | None = None, message: str = "") -> "OperationResult":
        return cls(True, message, activity)

    @classmethod
    def fail(cls, message: str) -> "OperationResult":
        return cls(False, message)


# ─── Legacy Migration ─────────────────────────────────────────────────


def migrate_notes(raw_activities: list, timestamp: str) -> bool:
    """Convert single ``note`` strings into dated ``notes`` lists in place.

    Works on raw stored dicts. Returns True if anything changed; a second
    run over the same data returns False.
    """
    changed = False
    for raw in raw_activities:
        if not isinstance(raw, dict):
            continue
        for frame in (raw.get("timeframes") or {}).values():
            if not isinstance(frame, dict) or "note" not in frame:
                continue
            legacy = frame.pop("note")
            changed = True
            notes = frame.get("notes")
            if not isinstance(notes, list):
                notes = []
                frame["notes"] = notes
            text = str(legacy).strip() if legacy is not None else ""
            if text and not any(isinstance(n, dict) and n.get("text") == text for n in notes):
                notes.append({"text": text, "timestamp": timestamp})
    return changed
