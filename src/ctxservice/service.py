"""Context binding helpers for the type-indexed service registry.

Setup code attaches a registry to a context and registers services by the
type consumers will ask for; code deep in the call stack pulls them back out
by that type without any explicit plumbing:

    ctx = context_with(background(), Logger, StreamLogger())
    ...
    logger = from_context(ctx, Logger)

Responsibilities:
 - Place / locate the registry under ``REGISTRY_KEY``
 - Typed reads (``from_context`` / ``ptr_from_context``)
 - Typed writes that create a registry on demand (``context_with`` / ``context_with_ptr``)
 - Strict writes that refuse to create one (``must_register`` / ``must_register_ptr``)

Shadowing vs sharing: ``context_with`` on a context that already carries a
registry mutates that (shared) registry. Bind a fresh registry with
``context_with_registry`` first when a subtree needs isolation.

Readers never raise for a missing registry or entry; they return the type's
zero value (``from_context``) or ``None`` (``ptr_from_context``).
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin

try:
    from types import UnionType as _UnionType
except ImportError:  # Python < 3.10
    _UnionType = None

from . import settings
from .context import Context, with_value
from .registry import REGISTRY_KEY, Registry, new_registry, type_token, zero_value

__all__ = [
    "ServiceError",
    "MissingRegistryError",
    "ServiceTypeError",
    "context_with_registry",
    "context_with_default_registry",
    "registry_from_context",
    "from_context",
    "ptr_from_context",
    "context_with",
    "context_with_ptr",
    "must_register",
    "must_register_ptr",
]

T = TypeVar("T")

_log = logging.getLogger(__name__)

MISSING_REGISTRY_MESSAGE = "missing service registry in context"


class ServiceError(RuntimeError):
    """Base class for registry misuse errors."""


class MissingRegistryError(ServiceError):
    """Raised by the must-register helpers when the context has no registry."""


class ServiceTypeError(ServiceError, TypeError):
    """Raised when a stored value does not match the type it was fetched by."""


# Registry placement ---------------------------------------------------
def context_with_registry(ctx: Context, registry: Registry) -> Context:
    """Derive a context carrying ``registry``; shadows any inherited one."""
    return with_value(ctx, REGISTRY_KEY, registry)


def context_with_default_registry(ctx: Context) -> Context:
    """Return ``ctx`` if it already carries a registry, else a child with a new one."""
    if registry_from_context(ctx) is not None:
        return ctx
    _log.debug("binding default service registry")
    return with_value(ctx, REGISTRY_KEY, new_registry())


def registry_from_context(ctx: Context) -> Optional[Registry]:
    registry = ctx.value(REGISTRY_KEY)
    if registry is None:
        return None
    if not isinstance(registry, Registry):
        raise ServiceTypeError(
            f"context registry slot holds {type(registry)!r}, expected a Registry"
        )
    return registry


# Typed access ---------------------------------------------------------
_NONE_TYPE = type(None)

# Implicit numeric promotion accepted by type checkers (PEP 484).
_PROMOTIONS = {
    float: (float, int),
    complex: (complex, float, int),
}


def _runtime_classes(service_type: Any) -> Optional[Tuple[type, ...]]:
    """Classes a stored value may be an instance of, or None if uncheckable."""
    if service_type is None or service_type is _NONE_TYPE:
        return (_NONE_TYPE,)
    origin = get_origin(service_type)
    if origin is Annotated:
        return _runtime_classes(get_args(service_type)[0])
    if origin is Union or (_UnionType is not None and origin is _UnionType):
        classes: Tuple[type, ...] = ()
        for arg in get_args(service_type):
            arg_classes = _runtime_classes(arg)
            if arg_classes is None:
                return None
            classes += arg_classes
        return classes
    candidate = origin if origin is not None else service_type
    if not isinstance(candidate, type):
        return None
    return _PROMOTIONS.get(candidate, (candidate,))


def _checked(service: Any, service_type: Any) -> Any:
    if not settings.STRICT_TYPE_CHECKS:
        return service
    classes = _runtime_classes(service_type)
    if classes is None:
        return service
    try:
        matches = isinstance(service, classes)
    except TypeError:
        # Protocols without @runtime_checkable cannot be checked.
        return service
    if not matches:
        raise ServiceTypeError(
            f"service registered for {service_type!r} is {type(service)!r}"
        )
    return service


def _lookup(ctx: Context, service_type: Any) -> Optional[Any]:
    registry = registry_from_context(ctx)
    if registry is None:
        return None
    service = registry.get(type_token(service_type))
    if service is None:
        return None
    return _checked(service, service_type)


def from_context(ctx: Context, service_type: Type[T]) -> T:
    """Service registered for ``service_type`` or that type's zero value."""
    service = _lookup(ctx, service_type)
    if service is None:
        return zero_value(service_type)
    return service


def ptr_from_context(ctx: Context, service_type: Type[T]) -> Optional[T]:
    """Handle registered for ``service_type`` or ``None``."""
    return _lookup(ctx, service_type)


# Writes ---------------------------------------------------------------
def _ensure_registry(ctx: Context) -> tuple[Context, Registry]:
    registry = registry_from_context(ctx)
    if registry is None:
        registry = new_registry()
        _log.debug("creating service registry on first write")
        ctx = context_with_registry(ctx, registry)
    return ctx, registry


def context_with(ctx: Context, service_type: Type[T], service: T) -> Context:
    """Register ``service`` under ``service_type``; may derive a new context."""
    ctx, registry = _ensure_registry(ctx)
    registry.register(type_token(service_type), service)
    return ctx


def context_with_ptr(ctx: Context, service_type: Type[T], handle: Optional[T]) -> Context:
    """Register a mutable handle under ``service_type``.

    Python objects are already references, so the handle is the object
    itself; mutations through it are visible to every later reader.
    """
    ctx, registry = _ensure_registry(ctx)
    registry.register(type_token(service_type), handle)
    return ctx


def _require_registry(ctx: Context) -> Registry:
    registry = registry_from_context(ctx)
    if registry is None:
        raise MissingRegistryError(MISSING_REGISTRY_MESSAGE)
    return registry


def must_register(ctx: Context, service_type: Type[T], service: T) -> None:
    """Register into the context's existing registry; raise if there is none."""
    _require_registry(ctx).register(type_token(service_type), service)


def must_register_ptr(ctx: Context, service_type: Type[T], handle: Optional[T]) -> None:
    _require_registry(ctx).register(type_token(service_type), handle)
