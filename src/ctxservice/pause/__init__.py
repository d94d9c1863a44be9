"""Context-registered pause manager.

Exports:
 - ``Manager`` protocol and ``PauseEvent`` notifications
 - ``DefaultManager`` plus context helpers (``with_default_manager`` ...)
 - ``register_ticker`` / ``IntervalTicker`` for pause-aware periodic work
"""

from .manager import Callback, CallbackHandle, Manager, PauseEvent  # noqa: F401
from .default import (  # noqa: F401
    DefaultManager,
    context_with_default_manager,
    context_with_manager,
    manager_from_context,
    with_default_manager,
)
from .timer import IntervalTicker, Ticker, register_ticker  # noqa: F401

__all__ = [
    "Callback",
    "CallbackHandle",
    "Manager",
    "PauseEvent",
    "DefaultManager",
    "context_with_manager",
    "manager_from_context",
    "with_default_manager",
    "context_with_default_manager",
    "IntervalTicker",
    "Ticker",
    "register_ticker",
]
