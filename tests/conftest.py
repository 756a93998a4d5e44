"""Shared fixtures for the offline sync tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from ovm_sync.connectivity import ConnectivityMonitor
from ovm_sync.events import StatusNotifier
from ovm_sync.queue.store import QueueStore
from ovm_sync.sync_engine import SyncEngine
from tests.helpers import FakeClient


@pytest.fixture
def store(tmp_path: Path) -> QueueStore:
    s = QueueStore(base_dir=tmp_path / "queue")
    s.init()
    yield s
    s.dispose()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def notifier() -> StatusNotifier:
    n = StatusNotifier(reset_delay=0.3)
    yield n
    n.dispose()


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(signal=lambda: True, initial=True)


@pytest.fixture
def engine(store, client, notifier, monitor) -> SyncEngine:
    return SyncEngine(store, client, notifier, monitor)
