"""Pause-aware periodic tickers.

``register_ticker`` couples a ticker to a pause manager: the ticker is stopped
while paused and re-armed (optionally after a ``resume`` hook) on wake.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

from .manager import CallbackHandle, Manager, PauseEvent

__all__ = ["Ticker", "IntervalTicker", "register_ticker"]

_log = logging.getLogger(__name__)

_PAUSE_EVENTS = (PauseEvent.DEVICE_PAUSED, PauseEvent.NETWORK_PAUSE)
_WAKE_EVENTS = (PauseEvent.DEVICE_WAKE, PauseEvent.NETWORK_WAKE)


class Ticker(Protocol):
    def stop(self) -> None: ...  # pragma: no cover - structural

    def reset(self, interval: float) -> None: ...  # pragma: no cover


class IntervalTicker:
    """Calls ``on_tick`` every ``interval`` seconds on a daemon timer thread.

    ``stop`` halts ticking; ``reset`` restarts it with a new interval.
    """

    def __init__(self, interval: float, on_tick: Callable[[], None], *, start: bool = True) -> None:
        if interval <= 0:
            raise ValueError("ticker interval must be positive")
        self._interval = interval
        self._on_tick = on_tick
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        if start:
            self.reset(interval)

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _schedule(self, generation: int) -> None:
        timer = threading.Timer(self._interval, self._fire, args=(generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._schedule(generation)
        try:
            self._on_tick()
        except Exception:
            _log.exception("ticker callback %r failed", self._on_tick)

    def stop(self) -> None:
        with self._lock:
            self._generation += 1
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def reset(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("ticker interval must be positive")
        self.stop()
        with self._lock:
            self._interval = interval
            self._schedule(self._generation)


def register_ticker(
    manager: Manager,
    ticker: Ticker,
    interval: float,
    resume: Optional[Callable[[], None]] = None,
) -> CallbackHandle:
    """Stop ``ticker`` while ``manager`` is paused and re-arm it on wake."""
    if manager.is_paused():
        ticker.stop()

    def _on_event(event: PauseEvent) -> None:
        if event in _PAUSE_EVENTS:
            ticker.stop()
        elif event in _WAKE_EVENTS:
            if resume is not None:
                resume()
            ticker.reset(interval)

    return manager.register_callback(_on_event)
