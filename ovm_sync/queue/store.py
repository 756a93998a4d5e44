"""Spool-directory based store for offline-captured work."""
import json
import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Dict, Any

from ovm_sync import settings
from ovm_sync.errors import EnqueueError, StoreNotInitializedError
from ovm_sync.logging_conf import logger
from ovm_sync.queue.models import ItemType, JobSubmission, QueueItem, new_id, utcnow


@dataclass
class QueueCounts:
    """Pending counts per category, for UI badges."""

    forms: int = 0
    photos: int = 0
    signatures: int = 0
    inspections: int = 0
    api_calls: int = 0

    @property
    def total(self) -> int:
        return self.forms + self.photos + self.signatures + self.inspections + self.api_calls

    def as_dict(self) -> Dict[str, int]:
        return {
            "forms": self.forms,
            "photos": self.photos,
            "signatures": self.signatures,
            "inspections": self.inspections,
            "api_calls": self.api_calls,
            "total": self.total,
        }


_COUNT_FIELDS = {
    ItemType.FORM: "forms",
    ItemType.PHOTO: "photos",
    ItemType.SIGNATURE: "signatures",
    ItemType.VEHICLE_INSPECTION: "inspections",
    ItemType.API_CALL: "api_calls",
}


@dataclass
class _IndexEntry:
    seq: int
    path: Path
    type: ItemType
    job_id: Optional[str]


class QueueStore:
    """Durable queue of pending uploads.

    Each item is one JSON file under ``<base_dir>/items`` named
    ``<sequence>-<id>.json``. The zero-padded sequence number gives the
    insertion order; files are written to a ``.tmp`` sibling first and then
    renamed so a crash never leaves a half-written item behind.
    """

    SUBMISSIONS_FILE = "submissions.json"

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir: Path = Path(base_dir) if base_dir else settings.QUEUE_DIR
        self.items_dir: Path = self.base_dir / "items"
        self.submissions_file: Path = self.base_dir / self.SUBMISSIONS_FILE

        self._lock = threading.RLock()
        self._index: Dict[str, _IndexEntry] = {}
        self._seq = 0
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self) -> None:
        """Create the spool layout and index the items already on disk."""
        with self._lock:
            if self._initialized:
                return
            self.items_dir.mkdir(parents=True, exist_ok=True)

            for stale in self.items_dir.glob("*.tmp"):
                stale.unlink(missing_ok=True)

            self._index = {}
            self._seq = 0
            for path in sorted(self.items_dir.glob("*.json")):
                item = self._read_item(path)
                if item is None:
                    continue
                seq = self._seq_from_path(path)
                self._index[item.id] = _IndexEntry(seq, path, item.type, item.job_id)
                self._seq = max(self._seq, seq)

            self._initialized = True
            logger.info(f"Queue store ready at {self.base_dir} ({len(self._index)} pending items)")

    def dispose(self) -> None:
        with self._lock:
            self._index = {}
            self._initialized = False

    def enqueue(self, item: QueueItem) -> QueueItem:
        """Persist an item. Raises EnqueueError if local storage fails."""
        with self._lock:
            self._ensure_initialized()
            if not item.id:
                item.id = new_id()
            if item.timestamp is None:
                item.timestamp = utcnow()
            if item.id in self._index:
                raise EnqueueError(f"Item {item.id} is already queued", item_id=item.id)

            seq = self._seq + 1
            path = self.items_dir / f"{seq:012d}-{self._safe_id(item.id)}.json"
            try:
                self._write_json(path, item.to_dict())
            except (OSError, TypeError, ValueError) as e:
                logger.warning(
                    f"Failed to save {item.type.value} for job {item.job_id}: {e}",
                    extra={"item_id": item.id, "job_id": item.job_id},
                )
                raise EnqueueError(f"Could not save {item.type.value} locally: {e}", item_id=item.id) from e

            self._seq = seq
            self._index[item.id] = _IndexEntry(seq, path, item.type, item.job_id)
            logger.info(
                f"Queued {item.type.value} {item.id} for job {item.job_id}",
                extra={"item_id": item.id, "job_id": item.job_id},
            )
            return item

    def list(self, type: Optional[ItemType] = None, job_id: Optional[str] = None) -> List[QueueItem]:
        """Return pending items in insertion order, optionally filtered."""
        with self._lock:
            self._ensure_initialized()
            entries = sorted(self._index.values(), key=lambda e: e.seq)

        if type is not None:
            type = ItemType(type)
            entries = [e for e in entries if e.type == type]
        if job_id is not None:
            entries = [e for e in entries if e.job_id == job_id]

        items = []
        for entry in entries:
            item = self._read_item(entry.path)
            if item is not None:
                items.append(item)
        return items

    def get(self, item_id: str) -> Optional[QueueItem]:
        with self._lock:
            self._ensure_initialized()
            entry = self._index.get(item_id)
        if entry is None:
            return None
        return self._read_item(entry.path)

    def remove(self, item_id: str) -> bool:
        """Delete a confirmed item. Returns False if it was not queued."""
        with self._lock:
            self._ensure_initialized()
            entry = self._index.get(item_id)
            if entry is None:
                return False
            try:
                entry.path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to delete spool file {entry.path}: {e}")
                return False
            del self._index[item_id]
            return True

    def mark_failed(self, item_id: str, error: str) -> None:
        """Record a failed attempt; the item stays queued for the next pass."""
        with self._lock:
            self._ensure_initialized()
            entry = self._index.get(item_id)
            if entry is None:
                return
            item = self._read_item(entry.path)
            if item is None:
                return
            item.attempts += 1
            item.last_error = error[:500]
            item.last_attempt_at = utcnow()
            try:
                self._write_json(entry.path, item.to_dict())
            except OSError as e:
                logger.error(f"Failed to record retry for {item_id}: {e}", exc_info=True)

    def count(self) -> QueueCounts:
        with self._lock:
            self._ensure_initialized()
            counts = QueueCounts()
            for entry in self._index.values():
                field_name = _COUNT_FIELDS[entry.type]
                setattr(counts, field_name, getattr(counts, field_name) + 1)
            return counts

    def pending_job_ids(self) -> List[str]:
        """Distinct job ids with queued items, in insertion order."""
        with self._lock:
            self._ensure_initialized()
            entries = sorted(self._index.values(), key=lambda e: e.seq)
        seen = []
        for entry in entries:
            if entry.job_id and entry.job_id not in seen:
                seen.append(entry.job_id)
        return seen

    # Job submissions

    def add_job_submission(self, job_id: str, type: str) -> JobSubmission:
        if type not in ("collection", "delivery"):
            raise ValueError(f"Unknown submission type: {type}")
        with self._lock:
            self._ensure_initialized()
            submissions = [s for s in self._load_submissions() if s.job_id != job_id]
            submission = JobSubmission(job_id=job_id, type=type)
            submissions.append(submission)
            try:
                self._save_submissions(submissions)
            except OSError as e:
                logger.warning(f"Failed to save job submission {job_id}: {e}")
                raise EnqueueError(f"Could not save job submission locally: {e}") from e
            return submission

    def job_submissions(self) -> List[JobSubmission]:
        with self._lock:
            self._ensure_initialized()
            return self._load_submissions()

    def remove_job_submission(self, job_id: str) -> bool:
        with self._lock:
            self._ensure_initialized()
            submissions = self._load_submissions()
            remaining = [s for s in submissions if s.job_id != job_id]
            if len(remaining) == len(submissions):
                return False
            try:
                self._save_submissions(remaining)
            except OSError as e:
                logger.error(f"Failed to update job submissions: {e}")
                return False
            return True

    def stats(self) -> Dict[str, Any]:
        """Storage statistics for the admin/driver dashboard."""
        with self._lock:
            self._ensure_initialized()
            paths = [e.path for e in self._index.values()]
            size = 0
            for path in paths:
                try:
                    size += path.stat().st_size
                except FileNotFoundError:
                    pass
            return {
                "pending": self.count().as_dict(),
                "pending_jobs": len(self.pending_job_ids()),
                "job_submissions": len(self._load_submissions()),
                "size_bytes": size,
            }

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise StoreNotInitializedError()

    def _safe_id(self, value: str) -> str:
        """Make a safe filename from an ID."""
        return re.sub(r"[^A-Za-z0-9._-]", "_", value)[:200]

    def _seq_from_path(self, path: Path) -> int:
        try:
            return int(path.stem.split("-", 1)[0])
        except ValueError:
            return 0

    def _read_item(self, path: Path) -> Optional[QueueItem]:
        try:
            with open(path, "r") as f:
                return QueueItem.from_dict(json.load(f))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Skipping unreadable spool file {path}: {e}")
            return None

    def _write_json(self, path: Path, data: Any) -> None:
        # Encode first so an unserializable payload never touches the disk
        text = json.dumps(data)
        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    def _load_submissions(self) -> List[JobSubmission]:
        try:
            with open(self.submissions_file, "r") as f:
                return [JobSubmission.from_dict(s) for s in json.load(f)]
        except FileNotFoundError:
            return []
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to read job submissions: {e}")
            return []

    def _save_submissions(self, submissions: List[JobSubmission]) -> None:
        self._write_json(self.submissions_file, [s.to_dict() for s in submissions])
