"""Main application - wires the queue, connectivity monitor and sync engine."""
import argparse
import signal
import sys
import threading
from typing import Optional

from ovm_sync.logging_conf import logger
from ovm_sync import settings
from ovm_sync.api_client import ApiClient
from ovm_sync.connectivity import ConnectivityMonitor
from ovm_sync.events import StatusNotifier
from ovm_sync.queue.snapshots import SnapshotStore
from ovm_sync.queue.store import QueueStore
from ovm_sync.scheduler import PeriodicSync
from ovm_sync.sync_engine import SyncEngine, SyncResult


class Application:
    """Offline sync layer with an explicit init/dispose lifecycle.

    Every collaborator can be injected; the defaults are built from settings.
    """

    def __init__(self, store: Optional[QueueStore] = None, snapshots: Optional[SnapshotStore] = None,
                 client: Optional[ApiClient] = None, notifier: Optional[StatusNotifier] = None,
                 monitor: Optional[ConnectivityMonitor] = None, periodic: bool = True):
        self.store = store or QueueStore()
        self.snapshots = snapshots or SnapshotStore()
        self.client = client or ApiClient()
        self.notifier = notifier or StatusNotifier()
        self.monitor = monitor or ConnectivityMonitor()
        self.engine = SyncEngine(self.store, self.client, self.notifier, self.monitor)
        self.periodic = PeriodicSync(self.engine, self.monitor) if periodic else None
        self._subscriptions = []
        self._sync_threads = []
        self.running = False

    def init(self, watch: bool = True):
        """Open local storage and start listening for connectivity changes."""
        if self.running:
            return

        self.store.init()
        self.snapshots.init()
        self.snapshots.cleanup(settings.SNAPSHOT_RETENTION_DAYS)

        self._subscriptions = [
            self.monitor.on_change(self._on_connectivity_change),
            self.notifier.on_status_change(self._log_status),
        ]

        if watch:
            self.monitor.start()
            if self.periodic:
                self.periodic.start()

        self.running = True
        counts = self.store.count()
        logger.info(f"Offline sync ready - {counts.total} pending uploads, online={self.monitor.is_online}")

    def dispose(self):
        """Stop background threads and release resources."""
        if not self.running:
            return
        self.running = False

        if self.periodic:
            self.periodic.stop()
        self.monitor.stop()

        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

        # Let a reconnect pass finish before its store goes away
        for thread in self._sync_threads:
            thread.join()
        self._sync_threads = []

        self.notifier.dispose()
        self.snapshots.dispose()
        self.store.dispose()
        self.client.close()
        logger.info("Offline sync stopped")

    def sync_now(self) -> SyncResult:
        """User-initiated "sync now" / "try again"."""
        logger.info("Manual sync requested")
        return self.engine.sync_all()

    def pending_counts(self):
        return self.store.count()

    def _on_connectivity_change(self, online: bool):
        if online:
            # Keep the monitor thread free to report the next transition
            thread = threading.Thread(target=self.engine.sync_all, name="sync-on-reconnect", daemon=True)
            self._sync_threads = [t for t in self._sync_threads if t.is_alive()]
            self._sync_threads.append(thread)
            thread.start()

    def _log_status(self, status: str, progress: int):
        logger.debug(f"Sync status: {status} ({progress}%)")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="OVM offline upload queue")
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=("run", "sync", "status"),
        help="run: watch connectivity and sync in the background; "
             "sync: run one pass and exit; status: print pending counts",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Entry point."""
    args = parse_args(argv)

    try:
        settings.validate_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.command == "status":
        store = QueueStore()
        store.init()
        for name, value in store.count().as_dict().items():
            print(f"{name}: {value}")
        return 0

    app = Application(periodic=args.command == "run")

    if args.command == "sync":
        app.init(watch=False)
        try:
            result = app.sync_now()
        finally:
            app.dispose()
        if not result.ran:
            logger.warning("Sync did not run (offline)")
            return 1
        return 0 if result.success else 1

    stop = threading.Event()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        stop.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    app.init()
    try:
        app.sync_now()
        stop.wait()
    finally:
        app.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
