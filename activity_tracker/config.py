"""
Activity Tracker — Configuration.
Shared settings and paths, read from the environment.

Call ``reload()`` after changing ``os.environ`` (tests do this between cases).
"""

import os
from pathlib import Path


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


def reload() -> None:
    """Re-read every setting from the environment."""
    global TRACKER_DIR, DB_PATH, STORAGE_MODE, REMOTE_URL, REMOTE_TOKEN
    global CACHE_TTL, TICK_INTERVAL, RECENT_USERS_LIMIT, LOG_LEVEL
    global DATA_KEY_PREFIX, TIMERS_KEY, USERS_KEY, CURRENT_USER_KEY, RECENT_USERS_KEY

    # Base Paths
    TRACKER_DIR = Path(os.environ.get("ACTIVITY_TRACKER_DIR", str(Path.home() / ".activity-tracker")))
    DB_PATH = os.environ.get("ACTIVITY_TRACKER_DB", str(TRACKER_DIR / "tracker.db"))

    # ─── Storage ─────────────────────────────────────────────────────
    # ACTIVITY_TRACKER_STORAGE: "local" (default) | "remote" | "memory"
    STORAGE_MODE = os.environ.get("ACTIVITY_TRACKER_STORAGE", "local")
    REMOTE_URL = os.environ.get("ACTIVITY_TRACKER_REMOTE_URL", "")
    REMOTE_TOKEN = os.environ.get("ACTIVITY_TRACKER_REMOTE_TOKEN", "")

    # Seconds a loaded document is served from memory before re-reading
    CACHE_TTL = _env_float("ACTIVITY_TRACKER_CACHE_TTL", "30")
    # Timer display refresh
    TICK_INTERVAL = _env_float("ACTIVITY_TRACKER_TICK_INTERVAL", "0.1")
    RECENT_USERS_LIMIT = int(os.environ.get("ACTIVITY_TRACKER_RECENT_USERS", "5"))
    LOG_LEVEL = os.environ.get("ACTIVITY_TRACKER_LOG_LEVEL", "WARNING").upper()

    # ─── Key-value names ─────────────────────────────────────────────
    DATA_KEY_PREFIX = "activity-tracker-data"
    TIMERS_KEY = "active-timers"
    USERS_KEY = "activity-tracker-users"
    CURRENT_USER_KEY = "activity-tracker-current-user"
    RECENT_USERS_KEY = "activity-tracker-recent-users"


def ensure_dirs() -> None:
    """Create the tracker directory if it is missing."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


reload()
