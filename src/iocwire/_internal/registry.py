from __future__ import annotations

import re
from collections.abc import Iterator
from functools import lru_cache
from typing import Any

from iocwire._internal.capabilities import CapabilityMatcher
from iocwire._internal.conditions import ConditionGate
from iocwire._internal.descriptors import ObjectDescriptor
from iocwire._internal.type_checks import is_capability, type_identifier
from iocwire.exceptions import IocWireDuplicateRegistrationError, IocWireMultipleMatchesError


class ObjectRegistry:
    """Store object descriptors in registration order and answer lookups.

    Registration keys ``(kind, name)`` are unique. Lookups only consider
    descriptors whose condition is currently true; the condition gate is
    consulted on every call so value changes are observed. Descriptors
    satisfying a capability are memoised per capability and the table is
    extended as new descriptors are added.
    """

    def __init__(
        self,
        condition_gate: ConditionGate,
        matcher: CapabilityMatcher | None = None,
    ) -> None:
        self._condition_gate = condition_gate
        self._matcher = matcher or CapabilityMatcher()
        self._descriptors: dict[tuple[type[Any], str], ObjectDescriptor] = {}
        self._by_kind: dict[type[Any], list[ObjectDescriptor]] = {}
        self._by_capability: dict[type[Any], list[ObjectDescriptor]] = {}

    def add(self, descriptor: ObjectDescriptor) -> None:
        """Add a descriptor to the registry.

        Args:
            descriptor: Descriptor to register.

        Raises:
            IocWireDuplicateRegistrationError: If ``(kind, name)`` is already registered.

        """
        if descriptor.key in self._descriptors:
            msg = (
                f"Object {descriptor.identifier} is already registered. "
                "Use a different name to register another instance of the same kind."
            )
            raise IocWireDuplicateRegistrationError(msg)
        self._descriptors[descriptor.key] = descriptor
        self._by_kind.setdefault(descriptor.kind, []).append(descriptor)
        for capability, satisfying in self._by_capability.items():
            if self._matcher.satisfies(descriptor, capability):
                satisfying.append(descriptor)

    def get(self, kind: type[Any], name: str = "") -> ObjectDescriptor | None:
        """Return the descriptor registered under ``(kind, name)`` regardless of its condition."""
        return self._descriptors.get((kind, name))

    def list_active(self) -> list[ObjectDescriptor]:
        """Return descriptors whose condition is true, in registration order."""
        return [
            descriptor
            for descriptor in self._descriptors.values()
            if self._condition_gate.is_active(descriptor)
        ]

    def find_one(
        self,
        target: type[Any],
        name_expr: str = "",
        *,
        pattern: bool = True,
    ) -> ObjectDescriptor | None:
        """Return the single active descriptor matching target and name_expr.

        Args:
            target: Concrete kind (matched exactly) or capability (matched by the
                capability matcher).
            name_expr: Name, alias or glob. Empty matches only unnamed objects.
            pattern: Whether ``*`` and ``?`` in name_expr act as wildcards.

        Raises:
            IocWireMultipleMatchesError: If more than one descriptor matches.

        """
        matches = self.find_all(target, name_expr, pattern=pattern)
        if not matches:
            return None
        if len(matches) > 1:
            candidates = ", ".join(descriptor.identifier for descriptor in matches)
            requested = type_identifier(target)
            if name_expr:
                requested = f"{requested}@{name_expr}"
            msg = (
                f"Multiple objects match {requested}: {candidates}. "
                "Request a specific name or narrow the registration conditions."
            )
            raise IocWireMultipleMatchesError(msg)
        return matches[0]

    def find_all(
        self,
        target: type[Any],
        name_expr: str = "",
        *,
        pattern: bool = True,
    ) -> list[ObjectDescriptor]:
        """Return every active descriptor matching target and name_expr in registration order."""
        candidates = self._candidates(target)
        return [
            descriptor
            for descriptor in candidates
            if names_match(descriptor, name_expr, pattern=pattern)
            and self._condition_gate.is_active(descriptor)
        ]

    def _candidates(self, target: type[Any]) -> list[ObjectDescriptor]:
        if not is_capability(target):
            return self._by_kind.get(target, [])
        satisfying = self._by_capability.get(target)
        if satisfying is None:
            satisfying = [
                descriptor
                for descriptor in self._descriptors.values()
                if self._matcher.satisfies(descriptor, target)
            ]
            self._by_capability[target] = satisfying
        return satisfying

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[ObjectDescriptor]:
        return iter(list(self._descriptors.values()))

    def __contains__(self, key: object) -> bool:
        return key in self._descriptors


def names_match(descriptor: ObjectDescriptor, name_expr: str, *, pattern: bool = True) -> bool:
    """Return whether descriptor is selected by name_expr.

    An empty expression selects only unnamed descriptors. Otherwise the
    declared name or any alias must equal the expression or, when pattern
    is true, match it as a glob where ``*`` is any run of characters and
    ``?`` is a single character.
    """
    if not name_expr:
        return not descriptor.name
    if name_expr in descriptor.names:
        return True
    if not pattern or not _has_wildcards(name_expr):
        return False
    regex = _glob_regex(name_expr)
    return any(regex.fullmatch(name) for name in descriptor.names)


def _has_wildcards(name_expr: str) -> bool:
    return "*" in name_expr or "?" in name_expr


@lru_cache(maxsize=256)
def _glob_regex(name_expr: str) -> re.Pattern[str]:
    parts = [
        ".*" if char == "*" else "." if char == "?" else re.escape(char) for char in name_expr
    ]
    return re.compile("".join(parts), re.DOTALL)


__all__ = ["ObjectRegistry", "names_match"]
