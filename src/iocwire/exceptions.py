from __future__ import annotations

from collections.abc import Sequence


class IocWireError(Exception):
    """Represent a base class for all iocwire-specific failures.

    Catch this type when you want to handle any iocwire error path without
    matching each concrete exception class individually.
    """


class IocWireInvalidRegistrationError(IocWireError):
    """Signal an unsupported registration shape.

    Raised by ``Container.register`` when the registered kind is not a concrete
    class, when a constructor is not callable or declares a return annotation
    other than the registered kind, or when a marked field or parameter has a
    type that cannot receive an object dependency (for example
    ``Annotated[int, Inject()]`` or ``Annotated[dict[int, Service], Inject()]``).
    """


class IocWireDuplicateRegistrationError(IocWireError):
    """Signal that a ``(kind, name)`` pair was registered twice.

    Typical fix is giving one of the registrations a distinct ``name``.
    """


class IocWireMissingObjectError(IocWireError):
    """Signal that a required single-object dependency has no active match.

    Objects excluded by a false condition are invisible, so a dependency on
    them fails with this error. Mark the dependency ``optional=True`` to receive
    ``None`` (or the declared default) instead.
    """


class IocWireMissingImplementationError(IocWireMissingObjectError):
    """Signal that no active object satisfies a required capability.

    Raised instead of ``IocWireMissingObjectError`` when the dependency targets
    a protocol or abstract base class.
    """


class IocWireMultipleMatchesError(IocWireError):
    """Signal that more than one active object matches a single-object lookup.

    Ambiguity is never resolved silently. Typical fixes are registering the
    candidates under distinct names and requesting one by name, or excluding
    all but one of them with conditions.
    """


class IocWireAmbiguousMapKeyError(IocWireMultipleMatchesError):
    """Signal that a map dependency matched two objects with the same name."""


class IocWireCircularDependencyError(IocWireError):
    """Signal that an object was reached again during its own initialization.

    The ``cycle`` attribute holds the identifiers of the objects along the
    detected cycle, starting and ending with the same object.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class IocWireInitializationFailedError(IocWireError):
    """Signal that an object is unusable because its earlier initialization failed.

    Object status never moves backwards, so an object whose construction
    raised stays half-initialized for the lifetime of the container. Build a
    new container after fixing the original failure.
    """


class IocWireMissingValueError(IocWireError):
    """Signal that a required value key is absent from every value provider."""


class IocWireCoercionError(IocWireError):
    """Signal that a value or argument cannot be converted into the target type."""


class IocWireConstructorError(IocWireError):
    """Signal that a factory constructor or an ``on_ready`` hook failed.

    The original exception is available as ``__cause__``.
    """


class IocWireInvalidConditionError(IocWireError):
    """Signal a condition expression that cannot be parsed or evaluated."""


class IocWireNonBooleanConditionError(IocWireInvalidConditionError):
    """Signal a condition expression that evaluated to a non-boolean value."""


class IocWireInvalidValueSourceError(IocWireError):
    """Signal a value provider that cannot be loaded.

    Raised for unreadable files, unsupported file suffixes and documents whose
    top level is not a mapping.
    """
