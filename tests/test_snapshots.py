"""Tests for workflow crash-recovery snapshots."""
from __future__ import annotations

import json
import time
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from ovm_sync.errors import EnqueueError, StoreNotInitializedError
from ovm_sync.queue.models import utcnow
from ovm_sync.queue.snapshots import SnapshotStore


@pytest.fixture
def snapshots(tmp_path: Path) -> SnapshotStore:
    s = SnapshotStore(base_dir=tmp_path)
    s.init()
    return s


def _age(snapshots: SnapshotStore, snapshot_id: str, days: int):
    path = snapshots.snapshot_dir / f"{snapshot_id}.json"
    data = json.loads(path.read_text())
    data["timestamp"] = (utcnow() - timedelta(days=days)).isoformat()
    path.write_text(json.dumps(data))


def test_latest_snapshot_wins(snapshots: SnapshotStore):
    old = snapshots.create("J1", "collection", {"step": 1})
    _age(snapshots, old, 1)
    snapshots.create("J1", "collection", {"step": 4})
    snapshots.create("J2", "delivery", {"step": 2})

    restored = snapshots.latest("J1")
    assert restored.data == {"step": 4}
    assert restored.workflow_type == "collection"


def test_missing_job_returns_none(snapshots: SnapshotStore):
    assert snapshots.latest("nope") is None


def test_cleanup_old(snapshots: SnapshotStore):
    stale = snapshots.create("J1", "delivery", {})
    fresh = snapshots.create("J1", "delivery", {"x": 1})
    _age(snapshots, stale, 31)

    assert snapshots.cleanup(30) == 1
    assert snapshots.latest("J1").id == fresh


def test_rejects_unknown_workflow(snapshots: SnapshotStore):
    with pytest.raises(ValueError):
        snapshots.create("J1", "expense", {})


def test_unserializable_data_rejected(snapshots: SnapshotStore):
    with pytest.raises(EnqueueError):
        snapshots.create("J1", "delivery", {"signed_at": datetime(2024, 5, 1)})
    assert list(snapshots.snapshot_dir.iterdir()) == []


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        time.sleep(0.01)
    return predicate()


def _saved(snapshots: SnapshotStore) -> int:
    return len(list(snapshots.snapshot_dir.glob("*.json")))


def test_auto_save_keeps_last_of_quick_edits(snapshots: SnapshotStore):
    snapshots.auto_save("J1", "collection", {"step": 1}, delay=0.1)
    snapshots.auto_save("J1", "collection", {"step": 2}, delay=0.1)

    assert _wait_for(lambda: _saved(snapshots) == 1)
    time.sleep(0.15)
    assert _saved(snapshots) == 1
    assert snapshots.latest("J1").data == {"step": 2}


def test_auto_save_keyed_by_job_and_workflow(snapshots: SnapshotStore):
    snapshots.auto_save("J1", "collection", {"step": 1}, delay=0.05)
    snapshots.auto_save("J1", "delivery", {"step": 1}, delay=0.05)
    snapshots.auto_save("J2", "collection", {"step": 1}, delay=0.05)

    assert _wait_for(lambda: _saved(snapshots) == 3)


def test_dispose_cancels_pending_auto_save(snapshots: SnapshotStore):
    snapshots.auto_save("J1", "delivery", {"step": 3}, delay=0.1)
    snapshots.dispose()
    time.sleep(0.25)

    assert _saved(snapshots) == 0
    assert snapshots.pending_auto_saves() == 0


def test_requires_init(tmp_path: Path):
    with pytest.raises(StoreNotInitializedError):
        SnapshotStore(base_dir=tmp_path).latest("J1")
