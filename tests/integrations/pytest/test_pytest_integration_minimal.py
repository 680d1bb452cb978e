from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Protocol

import pytest

from iocwire import Container, Inject, MapValueProvider, Value


class _Notifier(Protocol):
    def notify(self, message: str) -> str: ...


class _FakeNotifier:
    def notify(self, message: str) -> str:
        return f"fake: {message}"


class _Mailer:
    sender: Annotated[str, Value("mail.sender")]
    notifier: Annotated[_Notifier, Inject()]


@pytest.fixture()
def iocwire_values() -> Mapping[str, Any]:
    return {"mail": {"sender": "noreply@example.com"}}


@pytest.fixture()
def iocwire_container(iocwire_values: Mapping[str, Any]) -> Container:
    container = Container()
    container.add_value_provider(MapValueProvider(iocwire_values))
    container.register(_FakeNotifier)
    container.register(_Mailer)
    return container


@pytest.fixture()
def value() -> int:
    return 42


def test_injected_parameters_are_resolved_from_iocwire_container(
    value: int,
    notifier: Annotated[_Notifier, Inject()],
) -> None:
    assert value == 42
    assert notifier.notify("hi") == "fake: hi"


def test_injected_objects_receive_configured_values(
    mailer: Annotated[_Mailer, Inject()],
) -> None:
    assert mailer.sender == "noreply@example.com"
    assert isinstance(mailer.notifier, _FakeNotifier)


def test_injected_collections(
    notifiers: Annotated[list[_Notifier], Inject("*")],
) -> None:
    assert [type(notifier) for notifier in notifiers] == [_FakeNotifier]


def test_regular_fixture_resolution_still_works_without_injected_parameters(value: int) -> None:
    assert value == 42


def test_public_iocwire_container_fixture_is_available(iocwire_container: Container) -> None:
    assert isinstance(iocwire_container, Container)
    assert iocwire_container.get_value("mail.sender") == "noreply@example.com"
