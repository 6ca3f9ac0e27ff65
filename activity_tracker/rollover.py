"""Calendar rollover of timeframe buckets."""

from __future__ import annotations

import logging
from datetime import datetime

from activity_tracker.models import Bucket, UserDocument
from activity_tracker.temporal import parse_iso, to_local

logger = logging.getLogger("activity_tracker.rollover")


def crossed_buckets(last: datetime, now: datetime) -> list[Bucket]:
    """Return the buckets whose calendar boundary lies between two instants.

    Crossing a year also crosses its month and day, so a gap of a year or
    more rolls all three.
    """
    last, now = to_local(last), to_local(now)
    if now.date() <= last.date():
        return []
    crossed = [Bucket.DAY]
    if (now.year, now.month) != (last.year, last.month):
        crossed.append(Bucket.MONTH)
    if now.year != last.year:
        crossed.append(Bucket.YEAR)
    return crossed


def apply_rollover(document: UserDocument, now: datetime) -> bool:
    """Roll every crossed bucket of every activity, then stamp ``now``.

    Returns True if the document changed. Calling again with the same
    ``now`` finds no boundary and returns False.
    """
    last = parse_iso(document.last_update)
    stamp = now.isoformat()
    if last is None:
        # Nothing to compare against: start counting from here
        document.last_update = stamp
        return True

    crossed = crossed_buckets(last, now)
    if not crossed:
        return False

    for activity in document.activities:
        for bucket in crossed:
            activity.timeframe(bucket).roll()
    document.last_update = stamp
    logger.info(
        "Rollover %s -> %s: %s",
        last.date(), to_local(now).date(), ", ".join(b.name for b in crossed),
    )
    return True
