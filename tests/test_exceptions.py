"""Tests for custom exception hierarchy."""

from typing import Annotated, Protocol

import pytest

from iocwire import (
    Container,
    Inject,
    IocWireAmbiguousMapKeyError,
    IocWireCircularDependencyError,
    IocWireCoercionError,
    IocWireConstructorError,
    IocWireDuplicateRegistrationError,
    IocWireError,
    IocWireInitializationFailedError,
    IocWireInvalidConditionError,
    IocWireInvalidRegistrationError,
    IocWireInvalidValueSourceError,
    IocWireMissingImplementationError,
    IocWireMissingObjectError,
    IocWireMissingValueError,
    IocWireMultipleMatchesError,
    IocWireNonBooleanConditionError,
)


class Plugin(Protocol):
    def run(self) -> None: ...


@pytest.mark.parametrize(
    "error_type",
    [
        IocWireAmbiguousMapKeyError,
        IocWireCircularDependencyError,
        IocWireCoercionError,
        IocWireConstructorError,
        IocWireDuplicateRegistrationError,
        IocWireInitializationFailedError,
        IocWireInvalidConditionError,
        IocWireInvalidRegistrationError,
        IocWireInvalidValueSourceError,
        IocWireMissingImplementationError,
        IocWireMissingObjectError,
        IocWireMissingValueError,
        IocWireMultipleMatchesError,
        IocWireNonBooleanConditionError,
    ],
)
def test_every_error_derives_from_base(error_type: type[Exception]) -> None:
    assert issubclass(error_type, IocWireError)


def test_specialised_errors_can_be_caught_by_their_parent() -> None:
    assert issubclass(IocWireMissingImplementationError, IocWireMissingObjectError)
    assert issubclass(IocWireAmbiguousMapKeyError, IocWireMultipleMatchesError)
    assert issubclass(IocWireNonBooleanConditionError, IocWireInvalidConditionError)


class TestIocWireCircularDependencyError:
    def test_cycle_is_exposed_and_formatted(self) -> None:
        error = IocWireCircularDependencyError(["app.A", "app.B", "app.A"])

        assert error.cycle == ("app.A", "app.B", "app.A")
        assert str(error) == "Circular dependency detected: app.A -> app.B -> app.A"


class TestIocWireMissingImplementationError:
    def test_raised_for_unsatisfied_capability(self, container: Container) -> None:
        class Host:
            plugin: Annotated[Plugin, Inject()]

        container.register(Host)

        with pytest.raises(IocWireMissingImplementationError) as exc_info:
            container.resolve()

        assert "No implementation of" in str(exc_info.value)
        assert "Plugin" in str(exc_info.value)


class TestIocWireConstructorError:
    def test_original_exception_is_chained(self, container: Container) -> None:
        class Service:
            pass

        def make_service() -> Service:
            msg = "bad credentials"
            raise PermissionError(msg)

        container.register(Service, constructor=make_service)

        with pytest.raises(IocWireConstructorError) as exc_info:
            container.get_object(Service)

        assert isinstance(exc_info.value.__cause__, PermissionError)
        assert "make_service" in str(exc_info.value)


class TestIocWireNonBooleanConditionError:
    def test_raised_for_non_boolean_condition(self, container: Container) -> None:
        class Service:
            pass

        container.set_value("workers", 4)
        container.register(Service, condition="#workers + 1")

        with pytest.raises(IocWireNonBooleanConditionError, match="expected a boolean"):
            container.resolve()
