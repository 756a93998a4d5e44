"""Online/offline tracking from the platform's connectivity signal."""
import socket
import threading
from typing import Callable, Optional

from ovm_sync import settings
from ovm_sync.events import EventEmitter, Subscription
from ovm_sync.logging_conf import logger


def platform_online(probe_host: Optional[str] = None) -> bool:
    """Ask the OS whether a route to the internet exists.

    Connecting a UDP socket only consults the routing table; nothing is sent,
    so this is the equivalent of a browser's ``navigator.onLine`` rather than
    a server reachability probe. A captive portal still reports online.
    """
    host = probe_host or settings.CONNECTIVITY_PROBE_HOST
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect((host, 53))
        return True
    except OSError:
        return False
    finally:
        sock.close()


class ConnectivityMonitor:
    """Single source of truth for "can we reach the network".

    The monitor only reports transitions. Whoever subscribes decides what
    to do about them; an online transition is how a sync pass gets requested.
    """

    def __init__(self, signal: Optional[Callable[[], bool]] = None,
                 check_interval: Optional[int] = None, initial: Optional[bool] = None):
        self.signal = signal or platform_online
        self.check_interval = check_interval or settings.CONNECTIVITY_CHECK_INTERVAL
        self._online = self._read_signal() if initial is None else initial
        self._changes = EventEmitter("connectivity")
        self._lock = threading.Lock()
        self.running = False
        self.thread = None
        self._wake = threading.Event()

    @property
    def is_online(self) -> bool:
        return self._online

    def on_change(self, callback: Callable[[bool], None]) -> Subscription:
        return self._changes.subscribe(callback)

    def set_online(self, online: bool) -> None:
        """Feed a platform connectivity report; listeners fire on transitions only."""
        online = bool(online)
        with self._lock:
            if online == self._online:
                return
            self._online = online

        if online:
            logger.info("Connection restored - sync will be requested")
        else:
            logger.info("Gone offline - captures will be queued locally")
        self._changes.emit(online)

    def check(self) -> bool:
        """Sample the platform signal once."""
        self.set_online(self._read_signal())
        return self._online

    def start(self):
        """Start sampling the platform signal in a background thread."""
        if self.running:
            logger.warning("Connectivity monitor is already running")
            return

        self.running = True
        self._wake.clear()
        self.thread = threading.Thread(target=self._run, name="connectivity-monitor", daemon=True)
        self.thread.start()
        logger.info(f"Connectivity monitor started (interval: {self.check_interval}s)")

    def stop(self):
        """Stop the monitor."""
        if not self.running:
            return

        self.running = False
        self._wake.set()
        if self.thread:
            self.thread.join(timeout=10)
        logger.info("Connectivity monitor stopped")

    def _run(self):
        while self.running:
            try:
                self.check()
            except Exception as e:
                logger.error(f"Connectivity check error: {e}", exc_info=True)

            self._wake.wait(self.check_interval)

    def _read_signal(self) -> bool:
        try:
            return bool(self.signal())
        except Exception as e:
            logger.warning(f"Connectivity signal failed, assuming offline: {e}")
            return False
