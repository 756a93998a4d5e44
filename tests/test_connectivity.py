"""Tests for the connectivity monitor."""
from __future__ import annotations

import socket
from unittest import mock

from ovm_sync.connectivity import ConnectivityMonitor, platform_online
from tests.helpers import Recorder


def test_transitions_only():
    monitor = ConnectivityMonitor(signal=lambda: False, initial=False)
    rec = Recorder()
    monitor.on_change(rec)

    monitor.set_online(False)
    monitor.set_online(True)
    monitor.set_online(True)
    monitor.set_online(False)

    assert rec.calls == [(True,), (False,)]
    assert monitor.is_online is False


def test_check_samples_signal():
    state = {"online": False}
    monitor = ConnectivityMonitor(signal=lambda: state["online"], initial=False)
    rec = Recorder()
    monitor.on_change(rec)

    assert monitor.check() is False
    state["online"] = True
    assert monitor.check() is True
    assert rec.calls == [(True,)]


def test_broken_signal_reads_offline():
    def broken():
        raise OSError("no interfaces")

    monitor = ConnectivityMonitor(signal=broken, initial=True)
    assert monitor.check() is False


def test_initial_state_from_signal():
    assert ConnectivityMonitor(signal=lambda: True).is_online is True
    assert ConnectivityMonitor(signal=lambda: False).is_online is False


def test_background_watcher_reports_transition():
    state = {"online": False}
    monitor = ConnectivityMonitor(signal=lambda: state["online"], check_interval=0.02, initial=False)
    rec = Recorder()
    monitor.on_change(rec)

    monitor.start()
    try:
        state["online"] = True
        assert rec.event.wait(2)
    finally:
        monitor.stop()

    assert rec.calls[0] == (True,)
    assert monitor.running is False


def test_platform_online_uses_routing_only():
    sock = mock.Mock()
    with mock.patch("ovm_sync.connectivity.socket.socket", return_value=sock) as factory:
        assert platform_online("192.0.2.1") is True
    factory.assert_called_once_with(socket.AF_INET, socket.SOCK_DGRAM)
    sock.connect.assert_called_once_with(("192.0.2.1", 53))
    sock.send.assert_not_called()
    sock.close.assert_called_once()


def test_platform_online_without_route():
    sock = mock.Mock()
    sock.connect.side_effect = OSError("Network is unreachable")
    with mock.patch("ovm_sync.connectivity.socket.socket", return_value=sock):
        assert platform_online("192.0.2.1") is False
