"""Tests for the status notifier."""
from __future__ import annotations

import threading
import time

import pytest

from ovm_sync.events import EventEmitter, StatusNotifier
from tests.helpers import Recorder


class TestEventEmitter:

    def test_unsubscribe(self):
        emitter = EventEmitter("test")
        rec = Recorder()
        sub = emitter.subscribe(rec)
        emitter.emit(1)
        sub.unsubscribe()
        sub.unsubscribe()
        emitter.emit(2)
        assert rec.calls == [(1,)]
        assert len(emitter) == 0

    def test_context_manager_unsubscribes(self):
        emitter = EventEmitter("test")
        rec = Recorder()
        with emitter.subscribe(rec):
            emitter.emit("a")
        emitter.emit("b")
        assert rec.calls == [("a",)]

    def test_failing_listener_does_not_block_others(self):
        emitter = EventEmitter("test")
        rec = Recorder()

        def broken(*args):
            raise RuntimeError("boom")

        emitter.subscribe(broken)
        emitter.subscribe(rec)
        emitter.emit("x")
        assert rec.calls == [("x",)]


class TestStatusNotifier:

    def test_completed_resets_to_idle(self, notifier: StatusNotifier):
        rec = Recorder()
        notifier.on_status_change(rec)
        notifier.publish_status("completed", 100)

        deadline = time.monotonic() + 2
        while len(rec.calls) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)

        assert rec.calls == [("completed", 100), ("idle", 0)]

    def test_failed_resets_to_idle(self, notifier: StatusNotifier):
        rec = Recorder()
        notifier.on_status_change(rec)
        notifier.publish_status("failed", 40)

        deadline = time.monotonic() + 2
        while len(rec.calls) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)

        assert rec.calls[-1] == ("idle", 0)

    def test_new_pass_cancels_pending_reset(self):
        notifier = StatusNotifier(reset_delay=0.2)
        rec = Recorder()
        notifier.on_status_change(rec)
        notifier.publish_status("completed", 100)
        notifier.publish_status("syncing", 0)
        time.sleep(0.4)
        notifier.dispose()
        assert rec.calls == [("completed", 100), ("syncing", 0)]

    def test_dispose_cancels_reset(self):
        notifier = StatusNotifier(reset_delay=0.1)
        rec = Recorder()
        notifier.on_status_change(rec)
        notifier.publish_status("completed", 100)
        notifier.dispose()
        time.sleep(0.25)
        assert rec.calls == [("completed", 100)]

    def test_idle_never_follows_newer_status(self):
        notifier = StatusNotifier(reset_delay=0.01)
        calls = []
        entered = threading.Event()
        gate = threading.Event()

        def slow_listener(status, progress):
            calls.append((status, progress))
            if status == "idle":
                entered.set()
                gate.wait(2)

        notifier.on_status_change(slow_listener)
        notifier.publish_status("completed", 100)
        assert entered.wait(2)

        publisher = threading.Thread(target=notifier.publish_status, args=("syncing", 0))
        publisher.start()
        time.sleep(0.05)
        assert calls[-1] == ("idle", 0)

        gate.set()
        publisher.join(2)
        notifier.dispose()
        assert calls == [("completed", 100), ("idle", 0), ("syncing", 0)]

    def test_progress_clamped(self, notifier: StatusNotifier):
        rec = Recorder()
        notifier.on_status_change(rec)
        notifier.publish_status("syncing", 140)
        assert rec.calls == [("syncing", 100)]

    def test_upload_status(self, notifier: StatusNotifier):
        rec = Recorder()
        notifier.on_upload_status_change(rec)
        notifier.publish_upload_status("J1", "uploading")
        notifier.publish_upload_status("J1", "success")
        assert rec.calls == [("J1", "uploading"), ("J1", "success")]

    def test_unknown_status_rejected(self, notifier: StatusNotifier):
        with pytest.raises(ValueError):
            notifier.publish_status("partial", 50)
        with pytest.raises(ValueError):
            notifier.publish_upload_status("J1", "done")
