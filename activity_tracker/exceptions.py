"""
Activity Tracker — Custom Exceptions.

Backends raise these; the data manager catches them at its boundary and
turns them into failure results so the render path never crashes.
"""


class TrackerError(Exception):
    """Base exception for all tracker errors."""


class ConfigError(TrackerError):
    """Raised when the environment describes an unusable configuration."""


class StorageError(TrackerError):
    """Raised when a storage backend cannot read or write a document."""


class BackendUnavailable(StorageError):
    """Raised when the backend cannot be reached at all."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Backend unavailable ({status_code}): {detail}")
