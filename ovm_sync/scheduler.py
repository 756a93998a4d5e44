"""Periodic background sync trigger."""
import threading
from typing import Optional

from ovm_sync import settings
from ovm_sync.connectivity import ConnectivityMonitor
from ovm_sync.logging_conf import logger
from ovm_sync.sync_engine import SyncEngine


class PeriodicSync:
    """Requests a sync pass every ``interval`` seconds while online."""

    def __init__(self, engine: SyncEngine, monitor: ConnectivityMonitor, interval: Optional[int] = None):
        self.engine = engine
        self.monitor = monitor
        self.interval = interval or settings.SYNC_INTERVAL
        self.running = False
        self.thread = None
        self._wake = threading.Event()

    def start(self):
        """Start the scheduler in a background thread."""
        if self.running:
            logger.warning("Periodic sync is already running")
            return

        self.running = True
        self._wake.clear()
        self.thread = threading.Thread(target=self._run, name="periodic-sync", daemon=True)
        self.thread.start()
        logger.info(f"Periodic sync started (interval: {self.interval}s)")

    def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        self.running = False
        self._wake.set()
        if self.thread:
            self.thread.join(timeout=10)
        logger.info("Periodic sync stopped")

    def tick(self):
        """Run one scheduled pass if online and nothing is syncing."""
        if not self.monitor.is_online or self.engine.is_syncing:
            return None
        return self.engine.sync_all()

    def _run(self):
        while self.running:
            self._wake.wait(self.interval)
            if not self.running:
                break
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Periodic sync error: {e}", exc_info=True)
