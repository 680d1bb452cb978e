from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Iterator, Mapping
from typing import Any, cast, get_type_hints

import pytest

from iocwire._internal.container import Container
from iocwire._internal.dependencies import DependencyExtractor
from iocwire._internal.descriptors import DependencyDescriptor
from iocwire._internal.markers import Inject, find_marker
from iocwire._internal.values import MapValueProvider

_IOCWIRE_CONTAINER_ATTR = "_iocwire_container"
_IOCWIRE_INJECTED_PARAMETERS_ATTR = "__iocwire_pytest_injected_parameters__"
_DEPENDENCY_EXTRACTOR = DependencyExtractor()

InjectedParameters = tuple[tuple[str, DependencyDescriptor], ...]


@pytest.fixture()
def iocwire_values() -> Mapping[str, Any]:
    """Configuration values fed into the plugin-managed container.

    Override this fixture to provide values for ``Value`` dependencies and
    registration conditions.
    """
    return {}


@pytest.fixture()
def iocwire_container(iocwire_values: Mapping[str, Any]) -> Container:
    """Create a per-test container used to inject test parameters.

    Override this fixture to add registrations; request ``iocwire_values`` in
    the override to keep the configured values.

    Returns:
        A new ``Container`` reading ``iocwire_values``.

    """
    container = Container()
    container.add_value_provider(MapValueProvider(iocwire_values))
    return container


@pytest.fixture(autouse=True)
def _iocwire_state(
    request: pytest.FixtureRequest,
    iocwire_container: Container,
) -> None:
    """Store plugin state on the test node for hook access."""
    node = cast("Any", request.node)
    setattr(node, _IOCWIRE_CONTAINER_ATTR, iocwire_container)


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide ``Inject``-annotated parameters from pytest fixture name matching.

    Pytest treats test function parameters as fixture names. This hook
    rewrites the signature of test functions that declare injected
    parameters so they are not reported as missing fixtures.

    Args:
        collector: Pytest collector instance.
        name: Collected object name.
        obj: Candidate object.

    Returns:
        ``None`` to continue default collection flow.

    """
    if not inspect.isfunction(obj):
        return None
    if not collector.istestfunction(obj, name):
        return None

    injected_parameters = _inspect_injected_parameters(obj)
    if not injected_parameters:
        return None

    signature = inspect.signature(obj)
    injected_names = {parameter_name for parameter_name, _ in injected_parameters}
    public_signature = signature.replace(
        parameters=[
            parameter
            for parameter in signature.parameters.values()
            if parameter.name not in injected_names
        ],
    )
    obj_as_any = cast("Any", obj)
    obj_as_any.__dict__[_IOCWIRE_INJECTED_PARAMETERS_ATTR] = injected_parameters
    obj_as_any.__signature__ = public_signature
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Wrap test function execution to inject ``Inject``-annotated parameters.

    Injected arguments are resolved from the ``iocwire_container`` fixture
    right before the test body runs. Without plugin state on the item this
    hook is a no-op.

    Args:
        pyfuncitem: Collected pytest function item.

    Yields:
        Control back to pytest around test execution.

    """
    original_callable = cast("Callable[..., Any]", pyfuncitem.obj)
    original_callable_as_any = cast("Any", original_callable)
    injected_parameters = cast(
        "InjectedParameters | None",
        getattr(original_callable_as_any, _IOCWIRE_INJECTED_PARAMETERS_ATTR, None),
    )
    if injected_parameters is None and inspect.isfunction(original_callable):
        injected_parameters = _inspect_injected_parameters(original_callable)
    if not injected_parameters:
        yield
        return

    item = cast("Any", pyfuncitem)
    container = cast("Container | None", getattr(item, _IOCWIRE_CONTAINER_ATTR, None))
    if container is None:
        yield
        return

    requested_by = f"test '{original_callable.__name__}'"

    @functools.wraps(original_callable)
    def _invoke_with_injected(*args: Any, **kwargs: Any) -> Any:
        for parameter_name, dependency in injected_parameters:
            if parameter_name in kwargs:
                continue
            kwargs[parameter_name] = container.get_dependency(
                dependency,
                requested_by=requested_by,
            )
        return original_callable(*args, **kwargs)

    pyfuncitem.obj = _invoke_with_injected
    try:
        yield
    finally:
        pyfuncitem.obj = original_callable


def _inspect_injected_parameters(function: Callable[..., Any]) -> InjectedParameters:
    try:
        hints = get_type_hints(function, include_extras=True)
    except (AttributeError, NameError, TypeError):
        # Annotations that only resolve under TYPE_CHECKING cannot carry markers.
        return ()
    if not any(isinstance(find_marker(hint)[1], Inject) for hint in hints.values()):
        return ()
    return _DEPENDENCY_EXTRACTOR.extract_injected_parameters(function)


__all__ = [
    "iocwire_container",
    "iocwire_values",
    "pytest_pycollect_makeitem",
    "pytest_pyfunc_call",
]
