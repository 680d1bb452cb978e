from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any

from iocwire._internal.descriptors import ObjectDescriptor
from iocwire._internal.type_checks import is_protocol_class

logger = logging.getLogger(__name__)

_IGNORED_MEMBERS = frozenset(
    {
        "__abstractmethods__",
        "__annotate__",
        "__annotate_func__",
        "__annotations_cache__",
        "__class_getitem__",
        "__init__",
        "__init_subclass__",
        "__subclasshook__",
        "_abc_impl",
        "_is_protocol",
        "_is_runtime_protocol",
    },
)
_TYPING_MODULES = frozenset({"typing", "typing_extensions", "abc"})


@dataclass(slots=True)
class CapabilityMatcher:
    """Decide whether a registered object satisfies a capability.

    A capability is satisfied when it was declared through ``implements``,
    when the kind subclasses it, or when the kind exposes every member of
    the capability's contract. Results are memoised per
    ``(capability, kind)`` pair.
    """

    _cache: dict[tuple[type[Any], type[Any]], bool] = field(default_factory=dict)

    def satisfies(self, descriptor: ObjectDescriptor, capability: type[Any]) -> bool:
        if capability in descriptor.implements:
            return True
        cache_key = (capability, descriptor.kind)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached
        result = self._kind_satisfies(descriptor.kind, capability)
        self._cache[cache_key] = result
        logger.debug(
            "Capability %s %s by %s",
            capability.__qualname__,
            "satisfied" if result else "not satisfied",
            descriptor.kind.__qualname__,
        )
        return result

    def _kind_satisfies(self, kind: type[Any], capability: type[Any]) -> bool:
        try:
            if issubclass(kind, capability):
                return True
        except TypeError:
            # Protocols with non-method members refuse issubclass checks.
            pass

        members = contract_members(capability)
        if not members:
            return False
        annotated = _annotated_names(kind)
        return all(hasattr(kind, member) or member in annotated for member in members)


def contract_members(capability: type[Any]) -> frozenset[str]:
    """Return the member names a kind must expose to satisfy capability.

    For protocols these are the methods, properties and annotated attributes
    declared on the protocol and its protocol bases. For abstract classes
    they are the abstract methods plus annotated attributes.
    """
    members: set[str] = set()
    protocol = is_protocol_class(capability)
    if not protocol:
        members.update(getattr(capability, "__abstractmethods__", ()))

    for base in capability.__mro__:
        if base is object or base.__module__ in _TYPING_MODULES:
            continue
        if protocol and not getattr(base, "_is_protocol", False):
            continue
        members.update(inspect.get_annotations(base))
        if protocol:
            members.update(
                name
                for name, value in vars(base).items()
                if not _is_bookkeeping(name, value)
            )
    return frozenset(members - _IGNORED_MEMBERS)


def _is_bookkeeping(name: str, value: Any) -> bool:
    if name in _IGNORED_MEMBERS:
        return True
    if name.startswith("__") and name.endswith("__"):
        return not inspect.isfunction(value)
    return False


def _annotated_names(kind: type[Any]) -> set[str]:
    names: set[str] = set()
    for base in kind.__mro__:
        names.update(inspect.get_annotations(base))
    return names


__all__ = ["CapabilityMatcher", "contract_members"]
