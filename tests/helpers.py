"""Test doubles shared across the test modules."""
from __future__ import annotations

import threading

import requests

from ovm_sync.errors import ApiError


class FakeClient:
    """Stands in for ApiClient; records requests and fails on demand."""

    def __init__(self):
        self.sent = []
        self.fail_status = None
        self.fail_urls = set()
        self.network_down = False
        self.gate = None  # threading.Event that send() waits on
        self.entered = threading.Event()
        self.closed = False

    def send(self, upload):
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        self.sent.append(upload)
        if self.network_down:
            raise requests.ConnectionError("Network is unreachable")
        if self.fail_status is not None or upload.url in self.fail_urls:
            raise ApiError(self.fail_status or 500, "Internal Server Error", upload.url)
        return None

    def close(self):
        self.closed = True


class Recorder:
    """Collects callback invocations."""

    def __init__(self):
        self.calls = []
        self.event = threading.Event()

    def __call__(self, *args):
        self.calls.append(args)
        self.event.set()
