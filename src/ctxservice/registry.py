"""Type-indexed service registry.

Services are stored under a :class:`TypeToken` derived from the type the
caller wants to retrieve them by, not from the runtime type of the instance.
That lets an implementation be registered under an interface (Protocol) and
fetched back by the same interface deep in the call stack.

Usage pattern:
    registry = new_registry()
    registry.register(type_token(Logger), StreamLogger())
    logger = registry.get(type_token(Logger))

Design notes:
- Tokens are memoised per type expression, so deriving one is a dict hit.
- ``None`` doubles as the "absent" sentinel; registering ``None`` therefore
  reads back as absent.
- Last write wins. A replaced service is dropped from the registry but not
  closed or otherwise touched; its owner manages its lifecycle.
- Thread-safety: ``ServiceRegistry`` guards its map with an ``RLock`` so
  concurrent ``register``/``get`` from worker threads is safe. The usual
  pattern is still to populate during single-threaded setup and only read
  afterwards.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from threading import RLock
from typing import (
    Annotated,
    Any,
    Dict,
    Hashable,
    List,
    Optional,
    Protocol,
    get_args,
    get_origin,
    runtime_checkable,
)

__all__ = [
    "TypeToken",
    "type_token",
    "Registry",
    "ServiceRegistry",
    "new_registry",
    "zero_value",
    "REGISTRY_KEY",
]

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypeToken:
    """Runtime identity of a static type, usable as a dict or context key."""

    tp: Hashable

    def __repr__(self) -> str:
        return f"TypeToken({_type_name(self.tp)})"


def _type_name(tp: Any) -> str:
    name = getattr(tp, "__qualname__", None)
    if isinstance(tp, type) and name:
        return f"{tp.__module__}.{name}"
    return repr(tp)


@functools.lru_cache(maxsize=None)
def _token_for(tp: Hashable) -> TypeToken:
    return TypeToken(tp)


def type_token(tp: Any) -> TypeToken:
    """Return the token for ``tp``.

    Equal type expressions yield the same token object; a token is never
    equal to anything that is not a token for the same type.
    """
    if tp is None:
        raise TypeError("cannot derive a type token from None")
    try:
        return _token_for(tp)
    except TypeError as exc:
        raise TypeError(f"type {tp!r} is not hashable and cannot key a registry") from exc


@runtime_checkable
class Registry(Protocol):
    """Mapping from type token to service value."""

    def register(self, token: TypeToken, service: Any) -> None: ...  # pragma: no cover

    def get(self, token: TypeToken) -> Any: ...  # pragma: no cover


class ServiceRegistry:
    """Default ``Registry``: a lock-guarded dict keyed by ``TypeToken``."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._services: Dict[TypeToken, Any] = {}

    def register(self, token: TypeToken, service: Any) -> None:
        if not isinstance(token, TypeToken):
            raise TypeError(f"registry keys must be TypeToken instances, got {token!r}")
        with self._lock:
            if token in self._services:
                _log.debug("replacing service registered for %r", token)
            self._services[token] = service

    def get(self, token: TypeToken) -> Optional[Any]:
        with self._lock:
            return self._services.get(token)

    def tokens(self) -> List[TypeToken]:
        with self._lock:
            return list(self._services.keys())

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._services

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)

    def __repr__(self) -> str:
        return f"<ServiceRegistry services={len(self)}>"


def new_registry() -> Registry:
    return ServiceRegistry()


# Slot under which a context carries its registry.
REGISTRY_KEY: TypeToken = type_token(Registry)


_ZERO_CONSTRUCTIBLE = (int, float, complex, bool, str, bytes, tuple, frozenset)


def zero_value(tp: Any) -> Any:
    """Default value handed out when a service is unavailable.

    Immutable builtin scalars and containers get their empty instance
    (``0``, ``""``, ``()``...), parameterised and ``Annotated`` forms
    included; every other type gets ``None``.
    """
    origin = get_origin(tp)
    if origin is Annotated:
        return zero_value(get_args(tp)[0])
    base = origin if origin is not None else tp
    if base in _ZERO_CONSTRUCTIBLE:
        return base()
    return None
