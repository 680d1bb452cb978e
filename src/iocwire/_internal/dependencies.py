from __future__ import annotations

import collections.abc
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from inspect import Parameter
from typing import Any, get_args, get_origin, get_type_hints

from iocwire._internal.descriptors import DependencyDescriptor, DependencyKind, SlotPath
from iocwire._internal.markers import Inject, Nested, Value, find_marker, strip_optional
from iocwire._internal.strategies import (
    FactoryConstructionStrategy,
    FieldConstructionStrategy,
    FieldSlot,
    ParameterBinding,
)
from iocwire._internal.type_checks import is_capability, is_runtime_class, type_identifier
from iocwire.exceptions import IocWireInvalidRegistrationError

_LIST_ORIGINS: dict[Any, type[Any]] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
}
_MAP_ORIGINS: dict[Any, type[Any]] = {
    dict: dict,
    collections.abc.Mapping: dict,
    collections.abc.MutableMapping: dict,
}
_VARIADIC_PARAMETER_KINDS = (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)


@dataclass(slots=True)
class _FieldLayout:
    dependencies: list[DependencyDescriptor] = field(default_factory=list)
    slots: list[FieldSlot] = field(default_factory=list)
    nested: list[tuple[SlotPath, type[Any]]] = field(default_factory=list)


@dataclass(slots=True)
class DependencyExtractor:
    """Turn marked fields and constructor signatures into dependency descriptors.

    Both extraction paths return the flat dependency list together with the
    construction strategy that consumes arguments in the same order, so the
    resolver never needs to know how an object is assembled.
    """

    def extract_from_fields(
        self,
        kind: type[Any],
    ) -> tuple[tuple[DependencyDescriptor, ...], FieldConstructionStrategy]:
        """Extract dependencies declared on the fields of a class.

        Args:
            kind: Concrete class whose ``Inject``/``Value``/``Nested`` fields are inspected.

        Raises:
            IocWireInvalidRegistrationError: If a marked field has an unsupported type.

        """
        layout = _FieldLayout()
        self._collect_fields(kind=kind, prefix=(), owner=kind, layout=layout, seen=(kind,))
        strategy = FieldConstructionStrategy(
            kind=kind,
            slots=tuple(layout.slots),
            nested=tuple(layout.nested),
        )
        return tuple(layout.dependencies), strategy

    def extract_from_factory(
        self,
        kind: type[Any],
        factory: Callable[..., Any],
    ) -> tuple[tuple[DependencyDescriptor, ...], FactoryConstructionStrategy]:
        """Extract dependencies from the parameters of a constructor function.

        Parameters annotated with a class that declares marked fields are
        grouped: their fields are flattened into the dependency list and the
        parameter is re-assembled before the call.

        Args:
            kind: Registered kind the constructor must return.
            factory: Constructor callable to inspect.

        Raises:
            IocWireInvalidRegistrationError: If the constructor is not callable,
                declares a different return type, or has a required parameter
                that cannot be injected.

        """
        factory_name = getattr(factory, "__qualname__", repr(factory))
        if not callable(factory):
            msg = f"Constructor for {type_identifier(kind)} must be callable, got {factory!r}."
            raise IocWireInvalidRegistrationError(msg)

        try:
            signature = inspect.signature(factory)
        except (TypeError, ValueError) as error:
            msg = f"Cannot inspect constructor '{factory_name}': {error}"
            raise IocWireInvalidRegistrationError(msg) from error
        hints = self._type_hints(factory, owner_name=factory_name)

        return_annotation = hints.get("return", Parameter.empty)
        if return_annotation is not Parameter.empty and return_annotation is not kind:
            msg = (
                f"Constructor '{factory_name}' must return {type_identifier(kind)}, "
                f"declared {return_annotation!r}."
            )
            raise IocWireInvalidRegistrationError(msg)

        dependencies: list[DependencyDescriptor] = []
        bindings: list[ParameterBinding] = []

        for index, parameter in enumerate(signature.parameters.values()):
            if parameter.kind in _VARIADIC_PARAMETER_KINDS:
                continue
            annotation = hints.get(parameter.name, parameter.annotation)
            owner_name = f"parameter '{parameter.name}' of '{factory_name}'"
            inner, marker = find_marker(annotation)

            if marker is None and self._declares_markers(inner):
                layout = _FieldLayout()
                self._collect_fields(
                    kind=inner,
                    prefix=(index,),
                    owner=inner,
                    layout=layout,
                    seen=(inner,),
                )
                group_slots = tuple(
                    FieldSlot(path=slot.path[1:], expected_type=slot.expected_type)
                    for slot in layout.slots
                )
                group_nested = tuple((path[1:], nested) for path, nested in layout.nested)
                dependencies.extend(layout.dependencies)
                bindings.append(
                    ParameterBinding(
                        name=parameter.name,
                        kind=parameter.kind,
                        arg_count=len(layout.dependencies),
                        group=FieldConstructionStrategy(
                            kind=inner,
                            slots=group_slots,
                            nested=group_nested,
                        ),
                        default=parameter.default,
                    ),
                )
                continue

            dependency = self._parameter_dependency(
                parameter=parameter,
                inner=inner,
                marker=marker,
                slot=(index,),
                owner_name=owner_name,
            )
            if dependency is None:
                bindings.append(
                    ParameterBinding(
                        name=parameter.name,
                        kind=parameter.kind,
                        arg_count=0,
                        default=parameter.default,
                    ),
                )
                continue

            dependencies.append(dependency)
            bindings.append(
                ParameterBinding(
                    name=parameter.name,
                    kind=parameter.kind,
                    default=parameter.default,
                ),
            )

        strategy = FactoryConstructionStrategy(
            kind=kind,
            factory=factory,
            parameters=tuple(bindings),
        )
        return tuple(dependencies), strategy

    def extract_injected_parameters(
        self,
        function: Callable[..., Any],
    ) -> tuple[tuple[str, DependencyDescriptor], ...]:
        """Return ``(parameter name, dependency)`` for parameters annotated with ``Inject``.

        Parameters without an ``Inject`` marker are ignored, so the function
        may mix injected objects with ordinary arguments.
        """
        function_name = getattr(function, "__qualname__", repr(function))
        hints = self._type_hints(function, owner_name=function_name)
        injected: list[tuple[str, DependencyDescriptor]] = []
        for index, parameter in enumerate(inspect.signature(function).parameters.values()):
            inner, marker = find_marker(hints.get(parameter.name, parameter.annotation))
            if not isinstance(marker, Inject):
                continue
            dependency = self._object_dependency(
                inner=inner,
                marker=marker,
                slot=(index,),
                owner_name=f"parameter '{parameter.name}' of '{function_name}'",
                default_optional=parameter.default is not Parameter.empty,
            )
            injected.append((parameter.name, dependency))
        return tuple(injected)

    def _collect_fields(
        self,
        *,
        kind: type[Any],
        prefix: SlotPath,
        owner: type[Any],
        layout: _FieldLayout,
        seen: tuple[type[Any], ...],
    ) -> None:
        hints = self._type_hints(kind, owner_name=type_identifier(owner))
        for attribute, annotation in hints.items():
            inner, marker = find_marker(annotation)
            if marker is None:
                continue
            path = (*prefix, attribute)
            dotted = ".".join(str(part) for part in path)
            owner_name = f"field '{dotted}' of {type_identifier(owner)}"

            if isinstance(marker, Nested):
                if not is_runtime_class(inner) or is_capability(inner):
                    msg = f"Nested {owner_name} must be annotated with a concrete class."
                    raise IocWireInvalidRegistrationError(msg)
                if inner in seen:
                    msg = f"Nested {owner_name} refers back to {type_identifier(inner)}."
                    raise IocWireInvalidRegistrationError(msg)
                layout.nested.append((path, inner))
                self._collect_fields(
                    kind=inner,
                    prefix=path,
                    owner=owner,
                    layout=layout,
                    seen=(*seen, inner),
                )
                continue

            if isinstance(marker, Value):
                dependency = self._value_dependency(inner=inner, marker=marker, slot=path)
                layout.dependencies.append(dependency)
                layout.slots.append(FieldSlot(path=path))
                continue

            dependency = self._object_dependency(
                inner=inner,
                marker=marker,
                slot=path,
                owner_name=owner_name,
                default_optional=False,
            )
            layout.dependencies.append(dependency)
            layout.slots.append(FieldSlot(path=path, expected_type=_expected_type(dependency)))

    def _parameter_dependency(
        self,
        *,
        parameter: Parameter,
        inner: Any,
        marker: Inject | Value | Nested | None,
        slot: SlotPath,
        owner_name: str,
    ) -> DependencyDescriptor | None:
        has_default = parameter.default is not Parameter.empty

        if isinstance(marker, Value):
            return self._value_dependency(inner=inner, marker=marker, slot=slot)
        if isinstance(marker, Nested):
            msg = f"{owner_name} cannot use Nested; annotate the parameter with the class itself."
            raise IocWireInvalidRegistrationError(msg)
        if isinstance(marker, Inject):
            return self._object_dependency(
                inner=inner,
                marker=marker,
                slot=slot,
                owner_name=owner_name,
                default_optional=has_default,
            )

        if inner is Parameter.empty or self._classify(strip_optional(inner)[0]) is None:
            if has_default:
                return None
            msg = (
                f"Unable to infer dependency for required {owner_name}. "
                "Annotate it with a class, a capability, or an Inject/Value marker."
            )
            raise IocWireInvalidRegistrationError(msg)

        return self._object_dependency(
            inner=inner,
            marker=Inject(),
            slot=slot,
            owner_name=owner_name,
            default_optional=has_default,
        )

    def _object_dependency(
        self,
        *,
        inner: Any,
        marker: Inject,
        slot: SlotPath,
        owner_name: str,
        default_optional: bool,
    ) -> DependencyDescriptor:
        target, is_optional = strip_optional(inner)
        classified = self._classify(target)
        if classified is None:
            msg = (
                f"Unsupported injection type {inner!r} on {owner_name}. Use a class, a "
                "capability, a list/tuple/set of them, or dict[str, ...] of them."
            )
            raise IocWireInvalidRegistrationError(msg)

        dependency_kind, element, container = classified
        return DependencyDescriptor(
            kind=dependency_kind,
            target=element,
            name_expr=marker.name,
            pattern=marker.pattern,
            optional=marker.optional or is_optional or default_optional,
            container=container,
            slot=slot,
        )

    def _value_dependency(
        self,
        *,
        inner: Any,
        marker: Value,
        slot: SlotPath,
    ) -> DependencyDescriptor:
        if not marker.key:
            msg = f"Value marker at {slot!r} requires a non-empty key."
            raise IocWireInvalidRegistrationError(msg)
        return DependencyDescriptor(
            kind=DependencyKind.VALUE,
            target=inner,
            name_expr=marker.key,
            pattern=False,
            optional=marker.optional,
            slot=slot,
        )

    def _classify(self, target: Any) -> tuple[DependencyKind, Any, type[Any] | None] | None:
        if is_runtime_class(target):
            if target in _LIST_ORIGINS or target in _MAP_ORIGINS or target.__module__ == "builtins":
                return None
            return DependencyKind.SINGLE_OBJECT, target, None

        origin = get_origin(target)
        arguments = get_args(target)
        if origin in _LIST_ORIGINS:
            element_args = [argument for argument in arguments if argument is not Ellipsis]
            if len(element_args) != 1:
                return None
            element_kind = self._classify(element_args[0])
            if element_kind is None or element_kind[0] is not DependencyKind.SINGLE_OBJECT:
                return None
            return DependencyKind.OBJECT_LIST, element_args[0], _LIST_ORIGINS[origin]
        if origin in _MAP_ORIGINS:
            if len(arguments) != 2 or arguments[0] is not str:  # noqa: PLR2004
                return None
            element = arguments[1]
            element_kind = self._classify(element)
            if element_kind is None or element_kind[0] is not DependencyKind.SINGLE_OBJECT:
                return None
            return DependencyKind.OBJECT_MAP, element, _MAP_ORIGINS[origin]
        return None

    def _declares_markers(self, candidate: Any) -> bool:
        if not is_runtime_class(candidate) or candidate.__module__ == "builtins":
            return False
        try:
            hints = get_type_hints(candidate, include_extras=True)
        except (AttributeError, NameError, TypeError):
            return False
        return any(find_marker(annotation)[1] is not None for annotation in hints.values())

    def _type_hints(self, target: Any, *, owner_name: str) -> dict[str, Any]:
        try:
            return get_type_hints(target, include_extras=True)
        except (AttributeError, NameError, TypeError) as error:
            msg = f"Unable to resolve type annotations of {owner_name}: {error}"
            raise IocWireInvalidRegistrationError(msg) from error


def _expected_type(dependency: DependencyDescriptor) -> Any:
    if dependency.is_collection:
        return dependency.container
    if dependency.is_capability:
        return None
    return dependency.target


__all__ = ["DependencyExtractor"]
