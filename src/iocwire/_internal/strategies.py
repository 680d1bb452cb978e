from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from iocwire._internal.descriptors import ABSENT, SlotPath
from iocwire._internal.type_checks import is_protocol_class, is_runtime_class, type_identifier
from iocwire.exceptions import IocWireCoercionError, IocWireConstructorError


class ConstructionStrategy(Protocol):
    """Build an instance from arguments resolved in dependency declaration order."""

    def build(self, args: Sequence[Any]) -> Any: ...


@dataclass(frozen=True, slots=True)
class FieldSlot:
    """Target attribute path of one dependency and the type the value must satisfy."""

    path: SlotPath
    expected_type: Any = None


@dataclass(frozen=True, slots=True)
class FieldConstructionStrategy:
    """Allocate an instance without calling ``__init__`` and assign fields.

    The instance starts zero-valued: dataclass defaults and default factories
    are applied, ``Nested`` sub-structures are allocated the same way, and
    every other field is left to the class attribute default. Each resolved
    argument is then written along its slot path. Frozen dataclasses are
    supported because assignment bypasses ``__setattr__``.
    """

    kind: type[Any]
    slots: tuple[FieldSlot, ...] = ()
    nested: tuple[tuple[SlotPath, type[Any]], ...] = ()
    """Sub-structures to allocate, parents before children."""

    def build(self, args: Sequence[Any]) -> Any:
        if len(args) != len(self.slots):
            msg = (
                f"{type_identifier(self.kind)} expects {len(self.slots)} field arguments, "
                f"got {len(args)}."
            )
            raise IocWireCoercionError(msg)

        instance = allocate(self.kind)
        for path, nested_kind in self.nested:
            _assign(instance, path, allocate(nested_kind))

        for slot, arg in zip(self.slots, args, strict=True):
            if arg is ABSENT:
                _ensure_attribute(instance, slot.path)
                continue
            _check_assignable(self.kind, slot, arg)
            _assign(instance, slot.path, arg)
        return instance


@dataclass(frozen=True, slots=True)
class ParameterBinding:
    """Describe how one factory parameter is filled from the flat argument list."""

    name: str
    kind: Any
    arg_count: int = 1
    group: FieldConstructionStrategy | None = None
    """Re-assembles a grouped parameter from its ``arg_count`` arguments."""
    default: Any = inspect.Parameter.empty


@dataclass(frozen=True, slots=True)
class FactoryConstructionStrategy:
    """Call a user constructor with resolved arguments mapped to its parameters."""

    kind: type[Any]
    factory: Callable[..., Any]
    parameters: tuple[ParameterBinding, ...] = ()

    def build(self, args: Sequence[Any]) -> Any:
        positional: list[Any] = []
        keywords: dict[str, Any] = {}
        cursor = 0

        for binding in self.parameters:
            chunk = args[cursor : cursor + binding.arg_count]
            cursor += binding.arg_count
            if binding.group is not None:
                value = binding.group.build(chunk)
            elif binding.arg_count == 1 and chunk[0] is not ABSENT:
                value = chunk[0]
            elif binding.default is not inspect.Parameter.empty:
                value = binding.default
            else:
                value = None

            if binding.kind is inspect.Parameter.KEYWORD_ONLY:
                keywords[binding.name] = value
            else:
                positional.append(value)

        factory_name = getattr(self.factory, "__qualname__", repr(self.factory))
        try:
            instance = self.factory(*positional, **keywords)
        except Exception as error:
            msg = (
                f"Constructor '{factory_name}' for {type_identifier(self.kind)} failed: {error}"
            )
            raise IocWireConstructorError(msg) from error

        if not isinstance(instance, self.kind):
            msg = (
                f"Constructor '{factory_name}' returned {type(instance).__qualname__}, "
                f"expected {type_identifier(self.kind)}."
            )
            raise IocWireConstructorError(msg)
        return instance


def allocate(kind: type[Any]) -> Any:
    """Create a zero-valued instance of kind without running its ``__init__``."""
    instance = kind.__new__(kind)
    if dataclasses.is_dataclass(kind):
        for dataclass_field in dataclasses.fields(kind):
            if dataclass_field.default is not dataclasses.MISSING:
                object.__setattr__(instance, dataclass_field.name, dataclass_field.default)
            elif dataclass_field.default_factory is not dataclasses.MISSING:
                object.__setattr__(
                    instance,
                    dataclass_field.name,
                    dataclass_field.default_factory(),
                )
    return instance


def _assign(instance: Any, path: SlotPath, value: Any) -> None:
    owner = instance
    for attribute in path[:-1]:
        owner = getattr(owner, str(attribute))
    object.__setattr__(owner, str(path[-1]), value)


def _ensure_attribute(instance: Any, path: SlotPath) -> None:
    owner = instance
    for attribute in path[:-1]:
        owner = getattr(owner, str(attribute))
    try:
        getattr(owner, str(path[-1]))
    except AttributeError:
        object.__setattr__(owner, str(path[-1]), None)


def _check_assignable(kind: type[Any], slot: FieldSlot, value: Any) -> None:
    expected = slot.expected_type
    if not is_runtime_class(expected) or is_protocol_class(expected):
        return
    if isinstance(value, expected):
        return
    field_path = ".".join(str(part) for part in slot.path)
    msg = (
        f"Cannot assign {type(value).__qualname__} to field '{field_path}' of "
        f"{type_identifier(kind)}: expected {type_identifier(expected)}."
    )
    raise IocWireCoercionError(msg)


__all__ = [
    "ConstructionStrategy",
    "FactoryConstructionStrategy",
    "FieldConstructionStrategy",
    "FieldSlot",
    "ParameterBinding",
    "allocate",
]
