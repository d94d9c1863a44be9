"""Type-indexed service registry carried through a call-chain context.

Exports:
 - Context primitives (``background``, ``with_value``, ``with_cancel`` ...)
 - ``Registry`` / ``ServiceRegistry`` and ``type_token``
 - Binding helpers (``context_with``, ``from_context``, ``must_register`` ...)

Stability: the binding helpers are the public surface; ``ServiceRegistry``
internals (lock, storage) may change.
"""

from .context import (  # noqa: F401
    Canceled,
    Context,
    DeadlineExceeded,
    after_func,
    background,
    todo,
    with_cancel,
    with_deadline,
    with_timeout,
    with_value,
)
from .registry import (  # noqa: F401
    REGISTRY_KEY,
    Registry,
    ServiceRegistry,
    TypeToken,
    new_registry,
    type_token,
    zero_value,
)
from .service import (  # noqa: F401
    MissingRegistryError,
    ServiceError,
    ServiceTypeError,
    context_with,
    context_with_default_registry,
    context_with_ptr,
    context_with_registry,
    from_context,
    must_register,
    must_register_ptr,
    ptr_from_context,
    registry_from_context,
)
from .logging_setup import configure_logging  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "Canceled",
    "Context",
    "DeadlineExceeded",
    "after_func",
    "background",
    "todo",
    "with_cancel",
    "with_deadline",
    "with_timeout",
    "with_value",
    "REGISTRY_KEY",
    "Registry",
    "ServiceRegistry",
    "TypeToken",
    "new_registry",
    "type_token",
    "zero_value",
    "MissingRegistryError",
    "ServiceError",
    "ServiceTypeError",
    "context_with",
    "context_with_default_registry",
    "context_with_ptr",
    "context_with_registry",
    "from_context",
    "must_register",
    "must_register_ptr",
    "ptr_from_context",
    "registry_from_context",
    "configure_logging",
]
