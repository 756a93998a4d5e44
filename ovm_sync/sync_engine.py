"""Sync engine that replays queued items against the remote API."""
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ovm_sync.api_client import ApiClient
from ovm_sync.connectivity import ConnectivityMonitor
from ovm_sync.events import COMPLETED, FAILED, PENDING, SUCCESS, SYNCING, UPLOADING, StatusNotifier
from ovm_sync.logging_conf import logger
from ovm_sync.queue.models import QueueItem
from ovm_sync.queue.store import QueueStore
from ovm_sync.uploads import build_request


@dataclass
class SyncResult:
    """Outcome of one sync pass. ``ran`` is False when the pass was skipped."""

    ran: bool = True
    synced: int = 0
    failed: int = 0
    failed_ids: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.ran and self.failed == 0


class SyncEngine:
    """Best-effort, at-least-once delivery of queued items.

    Only one pass runs at a time. A trigger that arrives while a pass is in
    flight is ignored; whatever is left is picked up by the next trigger.
    Failed items stay queued and are retried on the next pass, in order.
    """

    def __init__(self, store: QueueStore, client: ApiClient, notifier: StatusNotifier,
                 monitor: Optional[ConnectivityMonitor] = None):
        self.store = store
        self.client = client
        self.notifier = notifier
        self.monitor = monitor
        self._pass_lock = threading.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._pass_lock.locked()

    def sync_all(self) -> SyncResult:
        """Drain the items queued at call time."""
        return self._run_pass(job_id=None)

    def sync_job(self, job_id: str) -> bool:
        """Push one job's items right away, e.g. on job completion.

        Returns True when nothing for the job is left undelivered.
        """
        result = self._run_pass(job_id=job_id)
        return result.success

    def _run_pass(self, job_id: Optional[str]) -> SyncResult:
        if self.monitor is not None and not self.monitor.is_online:
            logger.info("Offline - sync pass skipped")
            return SyncResult(ran=False)

        if not self._pass_lock.acquire(blocking=False):
            logger.debug("Sync pass already running - request ignored")
            return SyncResult(ran=False)

        result = SyncResult()
        try:
            self.notifier.publish_status(SYNCING, 0)
            items = self.store.list(job_id=job_id)

            if not items:
                self.notifier.publish_status(COMPLETED, 100)
                return result

            scope = f" for job {job_id}" if job_id else ""
            logger.info(f"Syncing {len(items)} pending uploads{scope}")
            self._drain(items, result)

            logger.info(f"Sync completed: {result.synced} successful, {result.failed} failed")
            self.notifier.publish_status(COMPLETED if result.failed == 0 else FAILED, 100)
            return result

        except Exception as e:
            logger.error(f"Sync pass failed: {e}", exc_info=True)
            self.notifier.publish_status(FAILED, 0)
            return result

        finally:
            self._pass_lock.release()

    def _drain(self, items: List[QueueItem], result: SyncResult) -> None:
        last_index: Dict[str, int] = {}
        for index, item in enumerate(items):
            if item.job_id:
                last_index[item.job_id] = index

        # Jobs start out pending, in first-seen order
        for job_id in last_index:
            self.notifier.publish_upload_status(job_id, PENDING)

        started = set()
        failed_jobs = set()
        total = len(items)

        for index, item in enumerate(items):
            if item.job_id and item.job_id not in started:
                started.add(item.job_id)
                self.notifier.publish_upload_status(item.job_id, UPLOADING)

            if self._deliver(item):
                result.synced += 1
            else:
                result.failed += 1
                result.failed_ids.append(item.id)
                if item.job_id:
                    failed_jobs.add(item.job_id)

            if item.job_id and last_index[item.job_id] == index:
                self._finish_job(item.job_id, item.job_id not in failed_jobs)

            self.notifier.publish_status(SYNCING, round((index + 1) / total * 100))

    def _deliver(self, item: QueueItem) -> bool:
        try:
            self.client.send(build_request(item))
        except Exception as e:
            logger.error(
                f"Upload failed: {item.type.value} {item.id} for job {item.job_id}: {e}",
                extra={"item_id": item.id, "job_id": item.job_id},
            )
            self.store.mark_failed(item.id, str(e))
            return False

        if not self.store.remove(item.id):
            logger.warning(f"Uploaded {item.id} but could not remove it; it will be sent again")
        logger.info(f"Upload successful: {item.type.value} for job {item.job_id}")
        return True

    def _finish_job(self, job_id: str, succeeded: bool) -> None:
        if succeeded:
            self.store.remove_job_submission(job_id)
            self.notifier.publish_upload_status(job_id, SUCCESS)
        else:
            self.notifier.publish_upload_status(job_id, FAILED)
