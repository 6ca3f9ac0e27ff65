"""Default activity set for first-time users."""

from __future__ import annotations

import json
import logging
from importlib import resources
from typing import Callable

from activity_tracker.models import Activity

logger = logging.getLogger("activity_tracker.seeds")

SeedLoader = Callable[[], list[dict]]

DEFAULT_RESOURCE = "default_activities.json"


def load_default_activities(resource: str = DEFAULT_RESOURCE) -> list[dict]:
    """Read the packaged seed file as raw dicts.

    A missing or malformed resource yields an empty list.
    """
    try:
        text = resources.files("activity_tracker.data").joinpath(resource).read_text(encoding="utf-8")
        data = json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Error loading default activities: %s", e)
        return []
    if not isinstance(data, list):
        logger.error("Default activities must be a list, got %s", type(data).__name__)
        return []
    return data


def seed_activities(loader: SeedLoader = load_default_activities) -> list[Activity]:
    """Parse the seed set, skipping entries without a title."""
    return [Activity.from_dict(raw) for raw in loader()
            if isinstance(raw, dict) and str(raw.get("title", "")).strip()]
