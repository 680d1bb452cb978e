from __future__ import annotations

import logging
from typing import Any

from iocwire._internal.descriptors import (
    ABSENT,
    DependencyDescriptor,
    DependencyKind,
    ObjectDescriptor,
    ObjectStatus,
)
from iocwire._internal.registry import ObjectRegistry
from iocwire._internal.type_checks import type_identifier
from iocwire._internal.values import ValueBridge
from iocwire.exceptions import (
    IocWireAmbiguousMapKeyError,
    IocWireCircularDependencyError,
    IocWireConstructorError,
    IocWireInitializationFailedError,
    IocWireMissingImplementationError,
    IocWireMissingObjectError,
    IocWireMissingValueError,
)

logger = logging.getLogger(__name__)

_ON_READY_HOOK = "on_ready"


class Resolver:
    """Build registered objects depth-first in dependency order.

    Dependencies are initialised before their dependents (post-order) and
    each object is constructed at most once. The stack of objects being
    initialised is used to report cycles with their full path.
    """

    def __init__(self, registry: ObjectRegistry, value_bridge: ValueBridge) -> None:
        self._registry = registry
        self._value_bridge = value_bridge
        self._stack: list[ObjectDescriptor] = []

    def resolve(self) -> int:
        """Initialise every active, non-optional object not built yet.

        A pass requested while another object is being initialised (a
        constructor retrieving objects from the container) builds nothing, so
        only the objects that constructor asks for are initialised.

        Returns:
            Number of objects constructed by this pass, dependencies included.

        """
        if self._stack:
            logger.debug(
                "Resolution pass skipped while initialising %s",
                self._stack[-1].identifier,
            )
            return 0

        constructed = 0
        for descriptor in self._registry.list_active():
            if descriptor.optional or descriptor.is_initialized:
                continue
            constructed += self.init_object(descriptor)
        log = logger.info if constructed else logger.debug
        log(
            "Resolution pass completed: %d object(s) constructed, %d registered",
            constructed,
            len(self._registry),
        )
        return constructed

    def init_object(self, descriptor: ObjectDescriptor) -> int:
        """Initialise descriptor and its dependencies.

        Returns:
            Number of objects constructed, zero when descriptor was already built.

        Raises:
            IocWireCircularDependencyError: If descriptor is already being initialised
                on the current path.
            IocWireInitializationFailedError: If an earlier attempt to build
                descriptor failed.

        """
        if descriptor.status is ObjectStatus.INITIALIZED:
            return 0
        if descriptor.status is ObjectStatus.INITIALIZING:
            if descriptor in self._stack:
                start = self._stack.index(descriptor)
                cycle = [item.identifier for item in self._stack[start:]]
                cycle.append(descriptor.identifier)
                raise IocWireCircularDependencyError(cycle)
            msg = (
                f"Object {descriptor.identifier} failed to initialise earlier and cannot be used. "
                "Fix the original error and build a new container."
            )
            raise IocWireInitializationFailedError(msg)

        descriptor.start_initialization()
        self._stack.append(descriptor)
        try:
            constructed = 0
            args: list[Any] = []
            for dependency in descriptor.dependencies:
                value, built = self.resolve_dependency(
                    dependency,
                    requested_by=descriptor.identifier,
                )
                constructed += built
                args.append(value)
            instance = descriptor.strategy.build(args)
            _run_on_ready(descriptor, instance)
        finally:
            self._stack.pop()

        descriptor.complete_initialization(instance)
        logger.debug("Constructed %s", descriptor.identifier)
        return constructed + 1

    def collect(
        self,
        target: type[Any],
        name_expr: str,
        *,
        pattern: bool = True,
        as_map: bool = False,
    ) -> tuple[list[Any] | dict[str, Any], int]:
        """Initialise every match of target and return the instances.

        Map results are keyed by the declared name of each object.

        Raises:
            IocWireAmbiguousMapKeyError: If two matches share a declared name.

        """
        matches = self._registry.find_all(target, name_expr, pattern=pattern)
        constructed = 0
        for match in matches:
            constructed += self.init_object(match)

        if not as_map:
            return [match.instance for match in matches], constructed

        instances: dict[str, Any] = {}
        for match in matches:
            if match.name in instances:
                msg = (
                    f"Objects of {type_identifier(target)} share the map key '{match.name}'. "
                    "Give every object collected into a mapping a distinct name."
                )
                raise IocWireAmbiguousMapKeyError(msg)
            instances[match.name] = match.instance
        return instances, constructed

    def resolve_dependency(
        self,
        dependency: DependencyDescriptor,
        *,
        requested_by: str,
    ) -> tuple[Any, int]:
        """Resolve one dependency, initialising the objects it selects.

        Returns:
            The argument for the dependency (``ABSENT`` for a missing optional one)
            and the number of objects constructed.

        """
        if dependency.kind is DependencyKind.VALUE:
            value, found = self._value_bridge.resolve(dependency)
            if found:
                return value, 0
            if dependency.optional:
                return ABSENT, 0
            msg = (
                f"Missing value '{dependency.name_expr}' required by {requested_by}. "
                "Add it to a value provider or mark it optional."
            )
            raise IocWireMissingValueError(msg)

        if dependency.is_collection:
            instances, constructed = self.collect(
                dependency.target,
                dependency.name_expr,
                pattern=dependency.pattern,
                as_map=dependency.kind is DependencyKind.OBJECT_MAP,
            )
            container = dependency.container or type(instances)
            return container(instances), constructed

        match = self._registry.find_one(
            dependency.target,
            dependency.name_expr,
            pattern=dependency.pattern,
        )
        if match is None:
            if dependency.optional:
                return ABSENT, 0
            raise _missing_object_error(requested_by, dependency)
        constructed = self.init_object(match)
        return match.instance, constructed


def _missing_object_error(requested_by: str, dependency: DependencyDescriptor) -> Exception:
    if dependency.is_capability:
        msg = (
            f"No implementation of {dependency} found for {requested_by}. "
            "Register an object satisfying the capability or mark the dependency optional."
        )
        return IocWireMissingImplementationError(msg)
    msg = (
        f"No object {dependency} found for {requested_by}. "
        "Register it, check its condition, or mark the dependency optional."
    )
    return IocWireMissingObjectError(msg)


def _run_on_ready(descriptor: ObjectDescriptor, instance: Any) -> None:
    hook = getattr(instance, _ON_READY_HOOK, None)
    if hook is None or not callable(hook):
        return
    try:
        hook()
    except Exception as error:
        msg = f"on_ready hook of {descriptor.identifier} failed: {error}"
        raise IocWireConstructorError(msg) from error


__all__ = ["Resolver"]
