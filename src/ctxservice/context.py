"""Call-chain context carrying values, cancellation and deadlines.

A context is an immutable node in a parent chain. Deriving a context never
mutates its parent:

 - ``with_value`` adds a key/value association visible to the subtree
 - ``with_cancel`` / ``with_deadline`` / ``with_timeout`` add a cancellation
   signal that also fires when any ancestor is cancelled

Values survive cancellation; a cancelled context still answers ``value()``.

Example:
    ctx, cancel = with_cancel(background())
    ctx = with_value(ctx, "request_id", "abc")
    ...
    cancel()
    assert ctx.err() is not None and ctx.value("request_id") == "abc"

Thread-safety: cancellation state is guarded per node; values are immutable.

Contexts implemented outside this module are followed by a daemon watcher
thread that polls the parent's done event every ``WATCH_POLL_INTERVAL``
seconds and exits as soon as the derived context (or ``after_func`` node)
finishes on its own.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol, Set, Tuple, runtime_checkable

__all__ = [
    "Context",
    "Canceled",
    "DeadlineExceeded",
    "CancelFunc",
    "background",
    "todo",
    "with_value",
    "with_cancel",
    "with_deadline",
    "with_timeout",
    "after_func",
]

_log = logging.getLogger(__name__)

CancelFunc = Callable[[], None]

# Seconds between checks made by threads watching a foreign parent context
WATCH_POLL_INTERVAL = 0.05


class Canceled(RuntimeError):
    """Reported by ``err()`` once a context was cancelled explicitly."""


class DeadlineExceeded(Canceled, TimeoutError):
    """Reported by ``err()`` once a context's deadline passed."""


@runtime_checkable
class Context(Protocol):
    def value(self, key: Any) -> Any: ...  # pragma: no cover - structural

    def done(self) -> Optional[threading.Event]: ...  # pragma: no cover

    def err(self) -> Optional[BaseException]: ...  # pragma: no cover

    def deadline(self) -> Optional[float]: ...  # pragma: no cover


class _EmptyContext:
    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def value(self, key: Any) -> Any:
        return None

    def done(self) -> Optional[threading.Event]:
        return None

    def err(self) -> Optional[BaseException]:
        return None

    def deadline(self) -> Optional[float]:
        return None

    def __repr__(self) -> str:
        return f"context.{self._name}"


_BACKGROUND = _EmptyContext("background")
_TODO = _EmptyContext("todo")


def background() -> Context:
    """Root context: no values, never cancelled, no deadline."""
    return _BACKGROUND


def todo() -> Context:
    """Placeholder root for call sites that have not been given a context yet."""
    return _TODO


class _ValueContext:
    __slots__ = ("_parent", "_key", "_val")

    def __init__(self, parent: Context, key: Any, val: Any) -> None:
        self._parent = parent
        self._key = key
        self._val = val

    def value(self, key: Any) -> Any:
        ctx: Any = self
        # Iterative walk over the value chain.
        while isinstance(ctx, _ValueContext):
            if ctx._key == key:
                return ctx._val
            ctx = ctx._parent
        return ctx.value(key)

    def done(self) -> Optional[threading.Event]:
        return self._parent.done()

    def err(self) -> Optional[BaseException]:
        return self._parent.err()

    def deadline(self) -> Optional[float]:
        return self._parent.deadline()

    def __repr__(self) -> str:
        return f"{self._parent!r}.with_value({self._key!r}, {type(self._val).__name__})"


def with_value(ctx: Context, key: Any, value: Any) -> Context:
    """Return a child of ``ctx`` that associates ``key`` with ``value``."""
    if ctx is None:
        raise ValueError("cannot derive from a None context")
    if key is None:
        raise ValueError("context key must not be None")
    hash(key)  # unhashable keys fail here rather than on lookup
    return _ValueContext(ctx, key, value)


class _CancelContext:
    """Cancellable node; cancellation cascades to registered children."""

    def __init__(self, parent: Context) -> None:
        self._parent = parent
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._err: Optional[BaseException] = None
        self._children: Set[Any] = set()

    def value(self, key: Any) -> Any:
        return self._parent.value(key)

    def done(self) -> Optional[threading.Event]:
        return self._done

    def err(self) -> Optional[BaseException]:
        with self._lock:
            return self._err

    def deadline(self) -> Optional[float]:
        return self._parent.deadline()

    # Tree maintenance -------------------------------------------------
    def _add_child(self, child: Any) -> bool:
        """Attach ``child``; returns False (and cancels it) if already done."""
        with self._lock:
            err = self._err
            if err is None:
                self._children.add(child)
                return True
        child._cancel(err, detach=False)
        return False

    def _remove_child(self, child: Any) -> None:
        with self._lock:
            self._children.discard(child)

    def _finished(self) -> bool:
        return self._done.is_set()

    def _cancel(self, err: BaseException, detach: bool = True) -> None:
        with self._lock:
            if self._err is not None:
                return
            self._err = err
            children = self._children
            self._children = set()
            self._done.set()
        for child in children:
            child._cancel(err, detach=False)
        if detach:
            ancestor = _cancel_ancestor(self._parent)
            if ancestor is not None:
                ancestor._remove_child(self)

    def __repr__(self) -> str:
        return f"{self._parent!r}.with_cancel"


class _TimerContext(_CancelContext):
    def __init__(self, parent: Context, when: float) -> None:
        super().__init__(parent)
        self._deadline = when
        self._timer: Optional[threading.Timer] = None

    def deadline(self) -> Optional[float]:
        return self._deadline

    def _arm(self) -> None:
        delay = self._deadline - time.monotonic()
        if delay <= 0:
            self._cancel(DeadlineExceeded("context deadline exceeded"))
            return
        with self._lock:
            if self._err is not None:
                return
            timer = threading.Timer(
                delay, self._cancel, args=(DeadlineExceeded("context deadline exceeded"),)
            )
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _cancel(self, err: BaseException, detach: bool = True) -> None:
        super()._cancel(err, detach)
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def __repr__(self) -> str:
        return f"{self._parent!r}.with_deadline({self._deadline:.3f})"


def _cancel_ancestor(ctx: Context) -> Optional[_CancelContext]:
    while isinstance(ctx, _ValueContext):
        ctx = ctx._parent
    if isinstance(ctx, _CancelContext):
        return ctx
    return None


def _propagate(parent: Context, child: Any) -> None:
    done = parent.done()
    if done is None:
        return
    ancestor = _cancel_ancestor(parent)
    if ancestor is not None:
        ancestor._add_child(child)
        return
    # Foreign Context implementation: watch its done event from a thread.
    # The watcher exits once the child is finished on its own (cancelled or
    # stopped), so it does not outlive a parent that is never cancelled.
    def _watch() -> None:
        while not done.wait(WATCH_POLL_INTERVAL):
            if child._finished():
                return
        child._cancel(parent.err() or Canceled("context canceled"), detach=False)

    threading.Thread(target=_watch, name="ctxservice-context-watch", daemon=True).start()


def with_cancel(ctx: Context) -> Tuple[Context, CancelFunc]:
    """Return a cancellable child of ``ctx`` and the function that cancels it."""
    if ctx is None:
        raise ValueError("cannot derive from a None context")
    child = _CancelContext(ctx)
    _propagate(ctx, child)

    def cancel() -> None:
        child._cancel(Canceled("context canceled"))

    return child, cancel


def with_deadline(ctx: Context, when: float) -> Tuple[Context, CancelFunc]:
    """Child of ``ctx`` cancelled at ``when`` (``time.monotonic()`` seconds).

    A deadline later than the parent's is ignored; the parent governs.
    """
    if ctx is None:
        raise ValueError("cannot derive from a None context")
    current = ctx.deadline()
    if current is not None and current <= when:
        return with_cancel(ctx)
    child = _TimerContext(ctx, when)
    _propagate(ctx, child)
    child._arm()

    def cancel() -> None:
        child._cancel(Canceled("context canceled"))

    return child, cancel


def with_timeout(ctx: Context, seconds: float) -> Tuple[Context, CancelFunc]:
    return with_deadline(ctx, time.monotonic() + seconds)


class _AfterFunc:
    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._lock = threading.Lock()
        self._state = "pending"  # pending | stopped | fired

    def _cancel(self, err: BaseException, detach: bool = True) -> None:
        with self._lock:
            if self._state != "pending":
                return
            self._state = "fired"
        threading.Thread(target=self._run, name="ctxservice-after-func", daemon=True).start()

    def _run(self) -> None:
        try:
            self._fn()
        except Exception:
            _log.exception("after_func callback %r failed", self._fn)

    def _finished(self) -> bool:
        with self._lock:
            return self._state != "pending"

    def stop(self) -> bool:
        with self._lock:
            if self._state != "pending":
                return False
            self._state = "stopped"
            return True


def after_func(ctx: Context, fn: Callable[[], None]) -> Callable[[], bool]:
    """Arrange for ``fn`` to run in its own thread once ``ctx`` is done.

    Returns ``stop``; calling it returns True if it prevented ``fn`` from
    running, False if ``fn`` already started or ``stop`` was called before.
    """
    node = _AfterFunc(fn)
    _propagate(ctx, node)
    ancestor = _cancel_ancestor(ctx)

    def stop() -> bool:
        stopped = node.stop()
        if stopped and ancestor is not None:
            ancestor._remove_child(node)
        return stopped

    return stop
