"""Pause manager contract.

A pause manager tracks two independent pause flags (device and network) and
notifies registered callbacks when either flips. Background loops consult it
through the context registry instead of receiving it as an argument.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

__all__ = ["PauseEvent", "Callback", "CallbackHandle", "Manager"]


class PauseEvent(str, Enum):
    DEVICE_PAUSED = "device_paused"
    DEVICE_WAKE = "device_wake"
    NETWORK_PAUSE = "network_pause"
    NETWORK_WAKE = "network_wake"


Callback = Callable[[PauseEvent], None]


@dataclass(eq=False)
class CallbackHandle:
    """Returned by ``register_callback``; pass back to ``unregister_callback``."""

    callback: Callback
    active: bool = True


@runtime_checkable
class Manager(Protocol):
    def device_pause(self) -> None: ...  # pragma: no cover - structural

    def device_wake(self) -> None: ...  # pragma: no cover

    def network_pause(self) -> None: ...  # pragma: no cover

    def network_wake(self) -> None: ...  # pragma: no cover

    def is_device_paused(self) -> bool: ...  # pragma: no cover

    def is_network_paused(self) -> bool: ...  # pragma: no cover

    def is_paused(self) -> bool: ...  # pragma: no cover

    def wait_active(self, timeout: Optional[float] = None) -> bool: ...  # pragma: no cover

    def register_callback(self, callback: Callback) -> CallbackHandle: ...  # pragma: no cover

    def unregister_callback(self, handle: CallbackHandle) -> None: ...  # pragma: no cover
