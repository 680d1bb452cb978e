from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeAlias

from iocwire._internal.type_checks import is_capability, type_identifier

if TYPE_CHECKING:
    from iocwire._internal.strategies import ConstructionStrategy

SlotPath: TypeAlias = tuple[str | int, ...]
"""Where a resolved argument lands.

Attribute names for fields; for factories the parameter index comes first.
"""


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()
"""Argument passed to a strategy for an optional dependency that resolved to nothing."""


class DependencyKind(Enum):
    """Define the shape of a declared dependency."""

    SINGLE_OBJECT = "single_object"
    """Exactly one matching object; zero is an error unless optional."""

    OBJECT_LIST = "object_list"
    """Every matching object, in registration order."""

    OBJECT_MAP = "object_map"
    """Every matching object keyed by its declared name."""

    VALUE = "value"
    """A configuration value read through the value bridge."""


class ObjectStatus(Enum):
    """Define the per-object resolution state machine."""

    UNINITIALIZED = 0
    INITIALIZING = 1
    INITIALIZED = 2


@dataclass(frozen=True, slots=True, kw_only=True)
class DependencyDescriptor:
    """Describe one required input of an object.

    For object dependencies ``target`` is the requested concrete kind or
    capability. For value dependencies it is the type the raw value is
    coerced into and ``name_expr`` holds the value key.
    """

    kind: DependencyKind
    target: Any
    name_expr: str = ""
    pattern: bool = True
    optional: bool = False
    container: type[Any] | None = None
    """Collection type built for list and map dependencies."""
    slot: SlotPath = ()

    @property
    def is_collection(self) -> bool:
        return self.kind in (DependencyKind.OBJECT_LIST, DependencyKind.OBJECT_MAP)

    @property
    def is_capability(self) -> bool:
        return self.kind is not DependencyKind.VALUE and is_capability(self.target)

    def __str__(self) -> str:
        if self.kind is DependencyKind.VALUE:
            return f"value <{self.name_expr}>"
        name = f"@{self.name_expr}" if self.name_expr else ""
        return f"{type_identifier(self.target)}{name}"


@dataclass(eq=False, kw_only=True)
class ObjectDescriptor:
    """Represent one registrable unit and its runtime resolution state.

    Identity is ``(kind, name)``. Everything except ``status`` and ``instance``
    is fixed at registration; those two fields are advanced only by the
    resolver and never move backwards.
    """

    kind: type[Any]
    name: str = ""
    aliases: tuple[str, ...] = ()
    implements: tuple[type[Any], ...] = ()
    dependencies: tuple[DependencyDescriptor, ...] = ()
    condition: str = ""
    optional: bool = False
    strategy: ConstructionStrategy

    status: ObjectStatus = field(default=ObjectStatus.UNINITIALIZED, init=False)
    instance: Any = field(default=None, init=False, repr=False)

    @property
    def key(self) -> tuple[type[Any], str]:
        return (self.kind, self.name)

    @property
    def identifier(self) -> str:
        """Return ``module.Kind`` or ``module.Kind@name`` for messages."""
        kind_id = type_identifier(self.kind)
        return f"{kind_id}@{self.name}" if self.name else kind_id

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    @property
    def is_initialized(self) -> bool:
        return self.status is ObjectStatus.INITIALIZED

    def start_initialization(self) -> None:
        self._advance(ObjectStatus.INITIALIZING)

    def complete_initialization(self, instance: Any) -> None:
        self._advance(ObjectStatus.INITIALIZED)
        self.instance = instance

    def _advance(self, status: ObjectStatus) -> None:
        if status.value <= self.status.value:
            msg = f"Object {self.identifier} cannot move from {self.status.name} to {status.name}."
            raise RuntimeError(msg)
        self.status = status

    def __str__(self) -> str:
        return self.identifier


__all__ = [
    "ABSENT",
    "DependencyDescriptor",
    "DependencyKind",
    "ObjectDescriptor",
    "ObjectStatus",
    "SlotPath",
]
