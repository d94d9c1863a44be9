from typing import Protocol

import pytest

from ctxservice import settings
from ctxservice.context import with_cancel, with_value
from ctxservice.registry import REGISTRY_KEY, ServiceRegistry, new_registry, type_token
from ctxservice.service import (
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


class Counter:
    def __init__(self, n: int = 0) -> None:
        self.n = n


class Logger:
    def __init__(self, name: str) -> None:
        self.name = name


class Store(Protocol):
    def load(self) -> str: ...


class MemoryStore:
    def load(self) -> str:
        return "memory"


# Scenarios ------------------------------------------------------------
def test_empty_context_reads_zero_and_absent(ctx0):
    assert from_context(ctx0, int) == 0
    assert ptr_from_context(ctx0, int) is None
    assert registry_from_context(ctx0) is None


def test_context_with_string_leaves_other_types_zero(ctx0):
    ctx1 = context_with(ctx0, str, "hello")
    assert from_context(ctx1, str) == "hello"
    assert from_context(ctx1, int) == 0


def test_handle_mutation_visible_to_later_readers(ctx0):
    ctx1 = context_with(ctx0, str, "hello")
    c = Counter()
    ctx2 = context_with_ptr(ctx1, Counter, c)

    def callee(ctx):
        ptr_from_context(ctx, Counter).n = 5

    callee(ctx2)
    assert ptr_from_context(ctx2, Counter).n == 5
    assert ptr_from_context(ctx2, Counter) is c


def test_default_registry_is_idempotent(ctx0):
    ctx3 = context_with_default_registry(ctx0)
    ctx4 = context_with_default_registry(ctx3)
    assert ctx4 is ctx3
    assert registry_from_context(ctx3) is registry_from_context(ctx4)
    assert registry_from_context(ctx3) is not None


def test_must_register_without_registry_raises(ctx0):
    with pytest.raises(MissingRegistryError, match="missing service registry"):
        must_register(ctx0, Logger, Logger("lg"))
    with pytest.raises(MissingRegistryError):
        must_register_ptr(ctx0, Counter, Counter())


def test_second_write_reuses_registry(ctx0):
    lg1, lg2 = Logger("one"), Logger("two")
    ctx5 = context_with(ctx0, Logger, lg1)
    ctx6 = context_with(ctx5, Logger, lg2)
    assert ctx6 is ctx5
    assert from_context(ctx6, Logger) is lg2
    assert from_context(ctx5, Logger) is lg2
    assert registry_from_context(ctx5) is registry_from_context(ctx6)


# Properties -----------------------------------------------------------
def test_type_isolation(ctx0):
    ctx = context_with(ctx0, int, 42)
    ctx = context_with(ctx, str, "x")
    ctx = context_with(ctx, Logger, Logger("a"))
    assert from_context(ctx, int) == 42
    assert from_context(ctx, str) == "x"
    assert from_context(ctx, Logger).name == "a"


def test_shadowing_does_not_touch_ancestor(ctx0):
    ctx1 = context_with(ctx0, Logger, Logger("outer"))
    r2 = new_registry()
    ctx2 = context_with_registry(ctx1, r2)
    assert registry_from_context(ctx2) is r2
    assert from_context(ctx2, Logger) is None
    context_with(ctx2, Logger, Logger("inner"))
    assert from_context(ctx2, Logger).name == "inner"
    assert from_context(ctx1, Logger).name == "outer"


def test_derivation_does_not_mutate_input(ctx0):
    ctx2 = context_with(ctx0, int, 1)
    assert ctx2 is not ctx0
    assert registry_from_context(ctx0) is None
    ctx3 = context_with_ptr(ctx0, Counter, Counter())
    assert registry_from_context(ctx0) is None
    assert registry_from_context(ctx3) is not registry_from_context(ctx2)


def test_zero_value_policy_without_registry(ctx0):
    assert from_context(ctx0, str) == ""
    assert from_context(ctx0, float) == 0.0
    assert from_context(ctx0, Logger) is None
    assert ptr_from_context(ctx0, Logger) is None


def test_zero_value_policy_with_registry_but_no_entry(ctx0):
    ctx = context_with_default_registry(ctx0)
    assert from_context(ctx, int) == 0
    assert ptr_from_context(ctx, Counter) is None


def test_shared_registry_visible_through_derived_contexts(ctx0):
    parent = context_with_default_registry(ctx0)
    child_a = with_value(parent, "k", "a")
    child_b = context_with_default_registry(with_value(parent, "k", "b"))
    must_register(child_a, Logger, Logger("shared"))
    assert from_context(child_b, Logger).name == "shared"
    assert from_context(parent, Logger).name == "shared"


def test_must_register_uses_existing_registry(ctx0):
    reg = ServiceRegistry()
    ctx = context_with_registry(ctx0, reg)
    c = Counter(3)
    must_register_ptr(ctx, Counter, c)
    must_register(ctx, int, 9)
    assert reg.get(type_token(Counter)) is c
    assert from_context(ctx, int) == 9


def test_register_under_protocol_type(ctx0):
    ctx = context_with(ctx0, Store, MemoryStore())
    assert from_context(ctx, Store).load() == "memory"
    assert from_context(ctx, MemoryStore) is None


def test_registry_survives_cancellation(ctx0):
    cctx, cancel = with_cancel(ctx0)
    ctx = context_with(cctx, Logger, Logger("kept"))
    cancel()
    assert ctx.err() is not None
    assert from_context(ctx, Logger).name == "kept"


def test_caller_keys_do_not_collide_with_registry_slot(ctx0):
    from ctxservice.registry import Registry

    ctx = with_value(ctx0, Registry, "caller value")
    ctx = with_value(ctx, "registry", "another")
    assert registry_from_context(ctx) is None
    ctx = context_with(ctx, int, 1)
    assert ctx.value(Registry) == "caller value"
    assert from_context(ctx, int) == 1


# Errors ---------------------------------------------------------------
def test_wrong_typed_entry_fails_fast(ctx0):
    ctx = context_with_default_registry(ctx0)
    registry_from_context(ctx).register(type_token(Logger), Counter())
    with pytest.raises(ServiceTypeError):
        from_context(ctx, Logger)
    with pytest.raises(TypeError):
        ptr_from_context(ctx, Logger)


def test_type_checks_can_be_disabled(ctx0, monkeypatch):
    monkeypatch.setattr(settings, "STRICT_TYPE_CHECKS", False)
    ctx = context_with_default_registry(ctx0)
    bogus = Counter()
    registry_from_context(ctx).register(type_token(Logger), bogus)
    assert from_context(ctx, Logger) is bogus


def test_non_registry_in_slot_is_rejected(ctx0):
    ctx = with_value(ctx0, REGISTRY_KEY, {"not": "a registry"})
    with pytest.raises(ServiceTypeError):
        registry_from_context(ctx)


def test_error_hierarchy():
    assert issubclass(MissingRegistryError, ServiceError)
    assert issubclass(MissingRegistryError, RuntimeError)
    assert issubclass(ServiceTypeError, TypeError)


def test_generic_alias_service(ctx0):
    ctx = context_with(ctx0, list[str], ["a", "b"])
    assert from_context(ctx, list[str]) == ["a", "b"]
    assert from_context(ctx, list[int]) is None


def test_union_service_types(ctx0):
    from typing import Optional, Union

    ctx = context_with(ctx0, Union[int, str], "x")
    assert from_context(ctx, Union[int, str]) == "x"
    ctx = context_with(ctx, Optional[Logger], Logger("opt"))
    assert ptr_from_context(ctx, Optional[Logger]).name == "opt"


def test_pep604_union_service_type(ctx0):
    import sys

    if sys.version_info < (3, 10):
        pytest.skip("PEP 604 unions need Python 3.10")
    ctx = context_with(ctx0, int | str, "x")
    assert from_context(ctx, int | str) == "x"


def test_union_mismatch_still_fails_fast(ctx0):
    from typing import Union

    ctx = context_with_default_registry(ctx0)
    registry_from_context(ctx).register(type_token(Union[int, str]), Counter())
    with pytest.raises(ServiceTypeError):
        from_context(ctx, Union[int, str])


def test_union_with_uncheckable_member_is_not_checked(ctx0):
    from typing import Union

    ctx = context_with(ctx0, Union[Store, int], MemoryStore())
    assert from_context(ctx, Union[Store, int]).load() == "memory"


def test_annotated_service_type(ctx0):
    from typing import Annotated

    ctx = context_with(ctx0, Annotated[int, "port"], 8080)
    assert from_context(ctx, Annotated[int, "port"]) == 8080
    assert from_context(ctx, int) == 0
    registry_from_context(ctx).register(type_token(Annotated[int, "port"]), "8080")
    with pytest.raises(ServiceTypeError):
        from_context(ctx, Annotated[int, "port"])


def test_numeric_promotion(ctx0):
    ctx = context_with(ctx0, float, 1)
    assert from_context(ctx, float) == 1
    ctx = context_with(ctx, complex, 2.5)
    assert from_context(ctx, complex) == 2.5
    registry_from_context(ctx).register(type_token(float), "1.0")
    with pytest.raises(ServiceTypeError):
        from_context(ctx, float)
