"""Default pause manager bound to a context.

Thread-safety: state and callback list are guarded by a condition's lock.
Callbacks are invoked after the lock is released (copy-first, as in the
event bus) so they may register/unregister callbacks or flip state again.
A failing callback is logged and does not stop the remaining ones.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

from ..context import Context, after_func
from ..service import context_with, from_context
from .manager import Callback, CallbackHandle, Manager, PauseEvent

__all__ = [
    "DefaultManager",
    "with_default_manager",
    "context_with_default_manager",
    "manager_from_context",
    "context_with_manager",
]

_log = logging.getLogger(__name__)


class DefaultManager:
    def __init__(self, ctx: Context) -> None:
        self._ctx = ctx
        self._cond = threading.Condition(threading.RLock())
        self._device_paused = False
        self._network_paused = False
        self._callbacks: List[CallbackHandle] = []

    # Transitions ------------------------------------------------------
    def device_pause(self) -> None:
        self._transition("_device_paused", True, PauseEvent.DEVICE_PAUSED)

    def device_wake(self) -> None:
        self._transition("_device_paused", False, PauseEvent.DEVICE_WAKE)

    def network_pause(self) -> None:
        self._transition("_network_paused", True, PauseEvent.NETWORK_PAUSE)

    def network_wake(self) -> None:
        self._transition("_network_paused", False, PauseEvent.NETWORK_WAKE)

    def _transition(self, attr: str, paused: bool, event: PauseEvent) -> None:
        with self._cond:
            if getattr(self, attr) == paused:
                return
            setattr(self, attr, paused)
            handles = list(self._callbacks)
            if not paused:
                self._cond.notify_all()
        _log.debug("pause manager emitting %s", event.value)
        self._emit(handles, event)

    def _emit(self, handles: List[CallbackHandle], event: PauseEvent) -> None:
        for handle in handles:
            if not handle.active:
                continue
            try:
                handle.callback(event)
            except Exception:
                _log.exception("pause callback %r failed for %s", handle.callback, event.value)

    # Queries ----------------------------------------------------------
    def is_device_paused(self) -> bool:
        with self._cond:
            return self._device_paused

    def is_network_paused(self) -> bool:
        with self._cond:
            return self._network_paused

    def is_paused(self) -> bool:
        with self._cond:
            return self._device_paused or self._network_paused

    def wait_active(self, timeout: Optional[float] = None) -> bool:
        """Block until neither flag is set or the manager's context is done.

        Returns True when active, False on timeout or context cancellation.
        """
        stop = after_func(self._ctx, self._wake_waiters)
        try:
            deadline = None if timeout is None else time.monotonic() + timeout
            with self._cond:
                while self._device_paused or self._network_paused:
                    if self._ctx.err() is not None:
                        return False
                    remaining = None if deadline is None else deadline - time.monotonic()
                    if remaining is not None and remaining <= 0:
                        return False
                    self._cond.wait(remaining)
                return True
        finally:
            stop()

    def _wake_waiters(self) -> None:
        with self._cond:
            self._cond.notify_all()

    # Callbacks --------------------------------------------------------
    def register_callback(self, callback: Callback) -> CallbackHandle:
        handle = CallbackHandle(callback=callback)
        with self._cond:
            self._callbacks.append(handle)
        return handle

    def unregister_callback(self, handle: CallbackHandle) -> None:
        with self._cond:
            for i, existing in enumerate(self._callbacks):
                if existing is handle:
                    self._callbacks.pop(i)
                    break
        handle.active = False

    def __repr__(self) -> str:
        return (
            f"<DefaultManager device_paused={self._device_paused} "
            f"network_paused={self._network_paused} callbacks={len(self._callbacks)}>"
        )


def manager_from_context(ctx: Context) -> Optional[Manager]:
    return from_context(ctx, Manager)


def context_with_manager(ctx: Context, manager: Manager) -> Context:
    return context_with(ctx, Manager, manager)


def with_default_manager(ctx: Context) -> Context:
    """Register a ``DefaultManager`` unless the context already has a Manager."""
    if manager_from_context(ctx) is not None:
        return ctx
    return context_with_manager(ctx, DefaultManager(ctx))


def context_with_default_manager(ctx: Context) -> Context:
    """Alias of :func:`with_default_manager`."""
    return with_default_manager(ctx)
