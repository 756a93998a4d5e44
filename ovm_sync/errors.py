"""Exceptions raised by the offline sync layer."""
from typing import Optional


class SyncError(Exception):
    """Base class for offline sync errors."""


class StoreNotInitializedError(SyncError):
    def __init__(self, name: str = "Queue store"):
        super().__init__(f"{name} not initialized. Call init() first.")


class EnqueueError(SyncError):
    """Local persistence failed; the captured item was not saved."""

    def __init__(self, message: str, item_id: Optional[str] = None):
        self.item_id = item_id
        super().__init__(message)


class ApiError(SyncError):
    """Remote API answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = "", url: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.url = url
        super().__init__(f"HTTP {status_code}: {reason}".rstrip(": "))
