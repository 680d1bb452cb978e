from __future__ import annotations

import abc
from typing import Protocol

from iocwire._internal.capabilities import CapabilityMatcher, contract_members
from iocwire._internal.descriptors import ObjectDescriptor
from iocwire._internal.strategies import FieldConstructionStrategy


class _Closer(Protocol):
    def close(self) -> None: ...


class _Named(Protocol):
    name: str


class _NamedCloser(_Closer, _Named, Protocol):
    def describe(self) -> str: ...


class _Storage(abc.ABC):
    @abc.abstractmethod
    def read(self, key: str) -> bytes: ...


class _Marker(abc.ABC):
    pass


class _File:
    name: str

    def close(self) -> None:
        pass

    def describe(self) -> str:
        return "file"


class _Socket:
    def close(self) -> None:
        pass


class _DiskStorage(_Storage):
    def read(self, key: str) -> bytes:
        return key.encode()


class _MemoryStorage:
    def read(self, key: str) -> bytes:
        return b""


class _Plain:
    pass


def _descriptor(kind: type[object], *, implements: tuple[type[object], ...] = ()) -> ObjectDescriptor:
    return ObjectDescriptor(
        kind=kind,
        implements=implements,
        strategy=FieldConstructionStrategy(kind=kind),
    )


def test_protocol_contract_contains_methods_and_annotated_attributes() -> None:
    assert contract_members(_Closer) == frozenset({"close"})
    assert contract_members(_Named) == frozenset({"name"})
    assert contract_members(_NamedCloser) == frozenset({"close", "name", "describe"})


def test_abstract_class_contract_contains_abstract_methods() -> None:
    assert contract_members(_Storage) == frozenset({"read"})
    assert contract_members(_Marker) == frozenset()


def test_declared_capability_is_satisfied_without_structure() -> None:
    matcher = CapabilityMatcher()

    assert matcher.satisfies(_descriptor(_Plain, implements=(_Closer,)), _Closer)


def test_nominal_subclass_satisfies_abstract_class() -> None:
    matcher = CapabilityMatcher()

    assert matcher.satisfies(_descriptor(_DiskStorage), _Storage)


def test_structural_match_satisfies_abstract_class() -> None:
    matcher = CapabilityMatcher()

    assert matcher.satisfies(_descriptor(_MemoryStorage), _Storage)


def test_structural_match_satisfies_protocol() -> None:
    matcher = CapabilityMatcher()

    assert matcher.satisfies(_descriptor(_Socket), _Closer)
    assert matcher.satisfies(_descriptor(_File), _NamedCloser)


def test_annotated_attribute_satisfies_protocol_data_member() -> None:
    matcher = CapabilityMatcher()

    assert matcher.satisfies(_descriptor(_File), _Named)
    assert not matcher.satisfies(_descriptor(_Socket), _Named)


def test_missing_member_does_not_satisfy_protocol() -> None:
    matcher = CapabilityMatcher()

    assert not matcher.satisfies(_descriptor(_Socket), _NamedCloser)
    assert not matcher.satisfies(_descriptor(_Plain), _Closer)


def test_empty_contract_requires_nominal_or_declared_match() -> None:
    matcher = CapabilityMatcher()

    assert not matcher.satisfies(_descriptor(_Plain), _Marker)
    assert matcher.satisfies(_descriptor(_Plain, implements=(_Marker,)), _Marker)


def test_results_are_memoised_per_capability_and_kind() -> None:
    matcher = CapabilityMatcher()
    descriptor = _descriptor(_Socket)

    assert matcher.satisfies(descriptor, _Closer)
    assert not matcher.satisfies(_descriptor(_Plain), _Closer)
    # A later class attribute does not change the memoised verdict.
    _Plain.close = lambda self: None  # type: ignore[attr-defined]
    try:
        assert not matcher.satisfies(_descriptor(_Plain), _Closer)
        assert CapabilityMatcher().satisfies(_descriptor(_Plain), _Closer)
    finally:
        del _Plain.close  # type: ignore[attr-defined]
