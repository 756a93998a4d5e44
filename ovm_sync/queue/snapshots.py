"""Crash-recovery snapshots of in-progress workflows."""
import json
import os
import threading
from datetime import timedelta
from pathlib import Path
from typing import Optional, Dict, Any

from ovm_sync import settings
from ovm_sync.errors import EnqueueError, StoreNotInitializedError
from ovm_sync.logging_conf import logger
from ovm_sync.queue.models import WORKFLOW_TYPES, WorkflowSnapshot, utcnow


class SnapshotStore:
    """Keeps the latest state of collection/delivery forms so a driver can
    resume after the app is killed mid-workflow."""

    def __init__(self, base_dir: Optional[Path] = None):
        base = Path(base_dir) if base_dir else settings.QUEUE_DIR
        self.snapshot_dir: Path = base / "snapshots"
        self._initialized = False
        self._timers: Dict[str, threading.Timer] = {}
        self._timer_lock = threading.Lock()

    def init(self) -> None:
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        self._initialized = True

    def dispose(self) -> None:
        """Drop pending auto-saves and close the store."""
        with self._timer_lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers = {}
        self._initialized = False

    def create(self, job_id: str, workflow_type: str, data: Dict[str, Any]) -> str:
        """Save a snapshot and return its id."""
        self._ensure_initialized()
        if workflow_type not in WORKFLOW_TYPES:
            raise ValueError(f"Unknown workflow type: {workflow_type}")

        snapshot = WorkflowSnapshot(job_id=job_id, workflow_type=workflow_type, data=data)
        path = self.snapshot_dir / f"{snapshot.id}.json"
        tmp_path = path.with_suffix(".tmp")
        try:
            text = json.dumps(snapshot.to_dict())
            with open(tmp_path, "w") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            logger.warning(f"Failed to save {workflow_type} snapshot for job {job_id}: {e}")
            raise EnqueueError(f"Could not save snapshot locally: {e}") from e

        logger.debug(f"Saved {workflow_type} snapshot for job {job_id}")
        return snapshot.id

    def auto_save(self, job_id: str, workflow_type: str, data: Dict[str, Any],
                  delay: Optional[float] = None) -> None:
        """Debounced create(): save ``data`` once no newer call for the same
        job and workflow arrives within ``delay`` seconds."""
        self._ensure_initialized()
        if workflow_type not in WORKFLOW_TYPES:
            raise ValueError(f"Unknown workflow type: {workflow_type}")
        delay = settings.AUTO_SAVE_DELAY if delay is None else delay

        key = f"{job_id}-{workflow_type}"
        timer = threading.Timer(delay, lambda: self._flush(key, timer, job_id, workflow_type, data))
        timer.daemon = True
        with self._timer_lock:
            pending = self._timers.pop(key, None)
            if pending is not None:
                pending.cancel()
            self._timers[key] = timer
        timer.start()

    def pending_auto_saves(self) -> int:
        with self._timer_lock:
            return len(self._timers)

    def latest(self, job_id: str) -> Optional[WorkflowSnapshot]:
        """Most recent snapshot for a job, or None."""
        self._ensure_initialized()
        found = [s for s in self._load_all() if s.job_id == job_id]
        if not found:
            return None
        snapshot = max(found, key=lambda s: s.timestamp)
        logger.info(f"Restored {snapshot.workflow_type} data for job {job_id} from {snapshot.timestamp.isoformat()}")
        return snapshot

    def cleanup(self, max_age_days: int = 30) -> int:
        """Delete snapshots older than max_age_days. Returns count deleted."""
        self._ensure_initialized()
        cutoff = utcnow() - timedelta(days=max_age_days)
        removed = 0
        for snapshot in self._load_all():
            if snapshot.timestamp < cutoff:
                try:
                    (self.snapshot_dir / f"{snapshot.id}.json").unlink(missing_ok=True)
                    removed += 1
                except OSError as e:
                    logger.error(f"Failed to delete snapshot {snapshot.id}: {e}")
        if removed:
            logger.info(f"Cleaned up {removed} old snapshots")
        return removed

    def _load_all(self):
        snapshots = []
        for path in self.snapshot_dir.glob("*.json"):
            try:
                with open(path, "r") as f:
                    snapshots.append(WorkflowSnapshot.from_dict(json.load(f)))
            except FileNotFoundError:
                continue
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable snapshot {path}: {e}")
        return snapshots

    def _flush(self, key: str, timer: threading.Timer, job_id: str, workflow_type: str,
               data: Dict[str, Any]) -> None:
        with self._timer_lock:
            if self._timers.get(key) is not timer:
                return
            del self._timers[key]
        try:
            self.create(job_id, workflow_type, data)
        except (EnqueueError, StoreNotInitializedError) as e:
            logger.warning(f"Auto-save of {workflow_type} for job {job_id} failed: {e}")

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise StoreNotInitializedError("Snapshot store")
