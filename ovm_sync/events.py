"""Publish/subscribe fan-out of sync status to presentation code."""
import threading
from typing import Callable, List, Optional

from ovm_sync import settings
from ovm_sync.logging_conf import logger

# Aggregate pass status
IDLE = "idle"
SYNCING = "syncing"
COMPLETED = "completed"
FAILED = "failed"

# Per-job upload status
PENDING = "pending"
UPLOADING = "uploading"
SUCCESS = "success"

PASS_STATUSES = (IDLE, SYNCING, COMPLETED, FAILED)
UPLOAD_STATUSES = (PENDING, UPLOADING, SUCCESS, FAILED)


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() to detach."""

    def __init__(self, emitter: "EventEmitter", callback: Callable):
        self._emitter = emitter
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._emitter._remove(self._callback)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()


class EventEmitter:
    """Thread-safe list of listeners for one event."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Callable] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable) -> Subscription:
        with self._lock:
            self._listeners.append(callback)
        return Subscription(self, callback)

    def emit(self, *args) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"{self.name} listener failed: {e}", exc_info=True)

    def clear(self) -> None:
        with self._lock:
            self._listeners = []

    def __len__(self):
        with self._lock:
            return len(self._listeners)

    def _remove(self, callback: Callable) -> None:
        with self._lock:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass


class StatusNotifier:
    """Relays sync outcomes to subscribers.

    ``completed`` and ``failed`` are followed by ``idle`` after
    ``reset_delay`` seconds so a finished banner does not linger.
    Pass statuses are emitted under one lock, so a reset never lands after
    a newer status.
    """

    def __init__(self, reset_delay: Optional[float] = None):
        self.reset_delay = settings.STATUS_RESET_SECONDS if reset_delay is None else reset_delay
        self._status_events = EventEmitter("status")
        self._upload_events = EventEmitter("upload status")
        self._reset_timer: Optional[threading.Timer] = None
        self._publish_lock = threading.RLock()

    def on_status_change(self, callback: Callable[[str, int], None]) -> Subscription:
        return self._status_events.subscribe(callback)

    def on_upload_status_change(self, callback: Callable[[str, str], None]) -> Subscription:
        return self._upload_events.subscribe(callback)

    def publish_status(self, status: str, progress: int = 0) -> None:
        if status not in PASS_STATUSES:
            raise ValueError(f"Unknown sync status: {status}")
        with self._publish_lock:
            self._cancel_reset()
            self._status_events.emit(status, max(0, min(100, int(progress))))
            if status in (COMPLETED, FAILED):
                self._schedule_reset()

    def publish_upload_status(self, job_id: str, status: str) -> None:
        if status not in UPLOAD_STATUSES:
            raise ValueError(f"Unknown upload status: {status}")
        self._upload_events.emit(job_id, status)

    def dispose(self) -> None:
        self._cancel_reset()
        self._status_events.clear()
        self._upload_events.clear()

    def _schedule_reset(self) -> None:
        timer = threading.Timer(self.reset_delay, lambda: self._reset(timer))
        timer.daemon = True
        with self._publish_lock:
            self._reset_timer = timer
        timer.start()

    def _cancel_reset(self) -> None:
        with self._publish_lock:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None

    def _reset(self, timer: threading.Timer) -> None:
        with self._publish_lock:
            if self._reset_timer is not timer:
                return
            self._reset_timer = None
            self._status_events.emit(IDLE, 0)
