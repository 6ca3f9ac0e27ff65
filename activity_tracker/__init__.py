"""
Activity Tracker — hours per activity, rolled over by day, month and year.

Local-first state with optional remote document storage and live timers.
"""

__version__ = "1.0.0"

from activity_tracker.manager import DataManager  # noqa: E402
from activity_tracker.models import Activity, Bucket, Session  # noqa: E402
from activity_tracker.timer import TimerManager, format_time  # noqa: E402

__all__ = ["Activity", "Bucket", "DataManager", "Session", "TimerManager", "format_time", "__version__"]
