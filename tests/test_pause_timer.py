import threading

import pytest

from ctxservice import background
from ctxservice.pause import DefaultManager, IntervalTicker, register_ticker


class FakeTicker:
    def __init__(self):
        self.calls = []

    def stop(self):
        self.calls.append("stop")

    def reset(self, interval):
        self.calls.append(("reset", interval))


def test_register_ticker_stops_immediately_when_paused():
    mgr = DefaultManager(background())
    mgr.device_pause()
    ticker = FakeTicker()
    register_ticker(mgr, ticker, 1.5)
    assert ticker.calls == ["stop"]


def test_register_ticker_follows_pause_and_wake():
    mgr = DefaultManager(background())
    ticker = FakeTicker()
    resumed = []
    register_ticker(mgr, ticker, 2.0, resume=lambda: resumed.append(True))
    assert ticker.calls == []
    mgr.network_pause()
    mgr.network_wake()
    assert ticker.calls == ["stop", ("reset", 2.0)]
    assert resumed == [True]


def test_register_ticker_handle_unregisters():
    mgr = DefaultManager(background())
    ticker = FakeTicker()
    handle = register_ticker(mgr, ticker, 1.0)
    mgr.unregister_callback(handle)
    mgr.device_pause()
    assert ticker.calls == []


def test_interval_ticker_ticks_and_stops():
    ticked = threading.Event()
    ticker = IntervalTicker(0.01, ticked.set)
    try:
        assert ticked.wait(2.0)
        assert ticker.running
    finally:
        ticker.stop()
    assert not ticker.running


def test_interval_ticker_reset_changes_interval():
    ticker = IntervalTicker(10, lambda: None, start=False)
    assert not ticker.running
    ticker.reset(5)
    try:
        assert ticker.running
        assert ticker.interval == 5
    finally:
        ticker.stop()


def test_interval_ticker_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        IntervalTicker(0, lambda: None)
    ticker = IntervalTicker(1, lambda: None, start=False)
    with pytest.raises(ValueError):
        ticker.reset(-1)
