from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeVar, cast, overload

from iocwire._internal.conditions import (
    ConditionEvaluator,
    ConditionGate,
    ExpressionConditionEvaluator,
)
from iocwire._internal.dependencies import DependencyExtractor
from iocwire._internal.descriptors import ABSENT, DependencyDescriptor, ObjectDescriptor
from iocwire._internal.lock_mode import LockMode
from iocwire._internal.registry import ObjectRegistry
from iocwire._internal.resolver import Resolver
from iocwire._internal.type_checks import is_capability, is_runtime_class, type_identifier
from iocwire._internal.values import ValueBridge, ValueProvider, ValueSource, coerce_value
from iocwire.exceptions import (
    IocWireInvalidRegistrationError,
    IocWireMissingImplementationError,
    IocWireMissingObjectError,
)

if TYPE_CHECKING:
    from typing_extensions import Self

T = TypeVar("T")
C = TypeVar("C", bound=type[Any])

logger = logging.getLogger(__name__)


class Container:
    """Register objects, wire their dependencies and hand out built instances.

    Objects are registered by kind (a concrete class) and an optional name.
    Their dependencies are declared with ``Inject``, ``Value`` and ``Nested``
    markers on fields, or inferred from the parameters of a constructor
    function. Every object is a singleton: it is built at most once, after all
    of its dependencies, and cycles are reported with their full path.

    Configuration values come from value providers merged into the
    container's value source. Registrations can be made conditional on those
    values with boolean expressions such as ``"#cache.enabled == true"``.
    """

    def __init__(
        self,
        *,
        value_source: ValueSource | None = None,
        condition_evaluator: ConditionEvaluator | None = None,
        lock_mode: LockMode = LockMode.THREAD,
    ) -> None:
        """Initialize an empty container.

        Args:
            value_source: Source of configuration values. A new empty source
                is created when omitted.
            condition_evaluator: Evaluator for registration conditions.
                Defaults to an expression evaluator reading ``value_source``.
            lock_mode: ``LockMode.THREAD`` serialises every operation with a
                re-entrant lock; ``LockMode.NONE`` skips locking.

        Examples:
            .. code-block:: python

                container = Container()
                container.add_value_provider(FileValueProvider("config.yaml"))
                single_threaded = Container(lock_mode=LockMode.NONE)

        """
        self._value_source = value_source if value_source is not None else ValueSource()
        self._condition_evaluator = condition_evaluator or ExpressionConditionEvaluator(
            self._value_source,
        )
        self._lock_mode = lock_mode
        self._lock: AbstractContextManager[Any] = (
            threading.RLock() if lock_mode is LockMode.THREAD else nullcontext()
        )

        self._dependency_extractor = DependencyExtractor()
        self._registry = ObjectRegistry(ConditionGate(self._condition_evaluator))
        self._resolver = Resolver(self._registry, ValueBridge(self._value_source))

    # region Registration Methods
    @overload
    def register(
        self,
        kind: type[Any],
        *,
        name: str = "",
        aliases: Iterable[str] = (),
        implements: Iterable[type[Any]] = (),
        optional: bool = False,
        constructor: Callable[..., Any] | None = None,
        condition: str = "",
    ) -> None: ...

    @overload
    def register(
        self,
        kind: Literal["from_decorator"] = "from_decorator",
        *,
        name: str = "",
        aliases: Iterable[str] = (),
        implements: Iterable[type[Any]] = (),
        optional: bool = False,
        constructor: Callable[..., Any] | None = None,
        condition: str = "",
    ) -> RegistrationDecorator: ...

    def register(
        self,
        kind: type[Any] | Literal["from_decorator"] = "from_decorator",
        *,
        name: str = "",
        aliases: Iterable[str] = (),
        implements: Iterable[type[Any]] = (),
        optional: bool = False,
        constructor: Callable[..., Any] | None = None,
        condition: str = "",
    ) -> None | RegistrationDecorator:
        """Register an object kind.

        Supports direct calls and decorator form. Without ``constructor`` the
        instance is allocated without calling ``__init__`` and its marked
        fields are assigned. With ``constructor`` the function is called with
        arguments inferred from its parameters.

        Args:
            kind: Concrete class to register, or ``"from_decorator"`` to return
                a decorator.
            name: Registration name. ``(kind, name)`` must be unique.
            aliases: Extra names the object can be looked up by.
            implements: Capabilities the object satisfies even when the kind
                does not subclass or structurally match them.
            optional: Skip the object during ``resolve`` unless something
                depends on it or it is retrieved directly.
            constructor: Function returning a ``kind`` instance.
            condition: Boolean expression over configuration values; the
                object is only visible while it evaluates to true.

        Returns:
            ``None`` in direct mode or a decorator in decorator mode.

        Raises:
            IocWireInvalidRegistrationError: If kind, constructor or markers are
                not supported.
            IocWireDuplicateRegistrationError: If ``(kind, name)`` is already registered.
            IocWireInvalidConditionError: If condition cannot be parsed.

        Examples:
            .. code-block:: python

                container.register(SqlRepository, name="primary", implements=[Repository])


                @container.register(condition="#cache.enabled == true")
                class RedisCache:
                    url: Annotated[str, Value("cache.url")]

        """
        alias_names = tuple(aliases)
        capabilities = tuple(implements)
        decorator = RegistrationDecorator(
            container=self,
            name=name,
            aliases=alias_names,
            implements=capabilities,
            optional=optional,
            constructor=constructor,
            condition=condition,
        )
        if kind == "from_decorator":
            return decorator

        descriptor = self._build_descriptor(
            kind=kind,
            name=name,
            aliases=alias_names,
            implements=capabilities,
            optional=optional,
            constructor=constructor,
            condition=condition,
        )
        with self._lock:
            self._registry.add(descriptor)
        logger.debug(
            "Registered %s with %d dependencies",
            descriptor.identifier,
            len(descriptor.dependencies),
        )
        return None

    # endregion Registration Methods

    # region Resolution Methods
    def resolve(self) -> None:
        """Build every active, non-optional object that is not built yet.

        Calling it again only builds objects registered or activated since
        the previous call.

        Raises:
            IocWireMissingObjectError: If a required dependency is not registered.
            IocWireMultipleMatchesError: If a single-object dependency is ambiguous.
            IocWireCircularDependencyError: If objects depend on each other in a cycle.
            IocWireMissingValueError: If a required configuration value is missing.
            IocWireConstructorError: If a constructor or ``on_ready`` hook raises.

        """
        with self._lock:
            self._resolver.resolve()

    def get_object(self, kind: type[T], name: str = "") -> T:
        """Return the single object of kind registered under name.

        Runs a resolution pass first unless called from a constructor. ``kind``
        may be a concrete class or a capability; ``name`` follows the usual
        matching rules, so an empty name only selects unnamed objects.

        Raises:
            IocWireMissingObjectError: If nothing matches.
            IocWireMissingImplementationError: If nothing satisfies the capability.
            IocWireMultipleMatchesError: If more than one object matches.

        Examples:
            .. code-block:: python

                repository = container.get_object(Repository, "primary")

        """
        with self._lock:
            self._resolver.resolve()
            descriptor = self._registry.find_one(kind, name)
            if descriptor is None:
                raise _missing_object_error(kind, name)
            self._resolver.init_object(descriptor)
            return cast("T", descriptor.instance)

    def get_object_list(self, kind: type[T], name: str = "*") -> list[T]:
        """Return every object of kind matching name, in registration order.

        An empty result is not an error.
        """
        with self._lock:
            self._resolver.resolve()
            instances, _ = self._resolver.collect(kind, name)
            return cast("list[T]", instances)

    def get_object_map(self, kind: type[T], name: str = "*") -> dict[str, T]:
        """Return every object of kind matching name keyed by its registration name.

        Raises:
            IocWireAmbiguousMapKeyError: If two matching objects share a name.

        """
        with self._lock:
            self._resolver.resolve()
            instances, _ = self._resolver.collect(kind, name, as_map=True)
            return cast("dict[str, T]", instances)

    def get_dependency(self, dependency: DependencyDescriptor, *, requested_by: str) -> Any:
        """Return the argument a dependency descriptor resolves to.

        Missing optional dependencies resolve to ``None``.
        """
        with self._lock:
            self._resolver.resolve()
            value, _ = self._resolver.resolve_dependency(dependency, requested_by=requested_by)
            return None if value is ABSENT else value

    # endregion Resolution Methods

    # region Value Methods
    @property
    def values(self) -> ValueSource:
        """Return the value source backing ``Value`` dependencies and conditions."""
        return self._value_source

    def add_value_provider(self, provider: ValueProvider) -> Self:
        """Add a value provider; it takes precedence over providers added earlier."""
        self._value_source.add_provider(provider)
        return self

    def get_value(self, key: str, target: Any = object) -> Any:
        """Return the configuration value under key, coerced into target.

        Returns ``None`` when the key is not set.

        Raises:
            IocWireCoercionError: If the value cannot be converted to target.

        """
        value, found = self._value_source.get_value(key)
        if not found:
            return None
        return coerce_value(key, value, target)

    def set_value(self, key: str, value: Any) -> None:
        """Override a configuration value for lookups made after this call.

        Objects that were already built keep the value they captured.
        """
        self._value_source.set_value(key, value)

    # endregion Value Methods

    def _build_descriptor(
        self,
        *,
        kind: Any,
        name: str,
        aliases: tuple[str, ...],
        implements: tuple[type[Any], ...],
        optional: bool,
        constructor: Callable[..., Any] | None,
        condition: str,
    ) -> ObjectDescriptor:
        if not is_runtime_class(kind):
            msg = f"Registered kind must be a class, got {kind!r}."
            raise IocWireInvalidRegistrationError(msg)
        if is_capability(kind):
            msg = (
                f"Cannot register {type_identifier(kind)}: it is a capability. Register a "
                "concrete class and declare the capability through 'implements'."
            )
            raise IocWireInvalidRegistrationError(msg)
        for capability in implements:
            if not is_runtime_class(capability):
                msg = (
                    f"'implements' of {type_identifier(kind)} must contain classes, "
                    f"got {capability!r}."
                )
                raise IocWireInvalidRegistrationError(msg)
        for alias in aliases:
            if not alias:
                msg = f"Aliases of {type_identifier(kind)} must be non-empty strings."
                raise IocWireInvalidRegistrationError(msg)

        if condition and isinstance(self._condition_evaluator, ExpressionConditionEvaluator):
            self._condition_evaluator.validate(condition)

        if constructor is None:
            dependencies, strategy = self._dependency_extractor.extract_from_fields(kind)
        else:
            dependencies, strategy = self._dependency_extractor.extract_from_factory(
                kind,
                constructor,
            )

        return ObjectDescriptor(
            kind=kind,
            name=name,
            aliases=aliases,
            implements=implements,
            dependencies=dependencies,
            condition=condition,
            optional=optional,
            strategy=strategy,
        )

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, kind: object) -> bool:
        if isinstance(kind, tuple):
            return kind in self._registry
        return (kind, "") in self._registry

    def __repr__(self) -> str:
        return f"Container(objects={len(self._registry)}, lock_mode={self._lock_mode.name})"


@dataclass(slots=True, kw_only=True)
class RegistrationDecorator:
    """A decorator for registering a class in the container."""

    container: Container
    name: str = ""
    aliases: tuple[str, ...] = ()
    implements: tuple[type[Any], ...] = ()
    optional: bool = False
    constructor: Callable[..., Any] | None = None
    condition: str = ""

    def __call__(self, kind: C) -> C:
        """Register the decorated class in the container."""
        self.container.register(
            kind,
            name=self.name,
            aliases=self.aliases,
            implements=self.implements,
            optional=self.optional,
            constructor=self.constructor,
            condition=self.condition,
        )
        return kind


def _missing_object_error(kind: Any, name: str) -> Exception:
    requested = f"{type_identifier(kind)}@{name}" if name else type_identifier(kind)
    if is_capability(kind):
        msg = (
            f"No implementation of {requested} is registered or active. "
            "Register an object satisfying it, or declare it with 'implements'."
        )
        return IocWireMissingImplementationError(msg)
    msg = f"No object {requested} is registered or active. Register it or check its condition."
    return IocWireMissingObjectError(msg)


__all__ = ["Container", "RegistrationDecorator"]
