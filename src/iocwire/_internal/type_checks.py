from __future__ import annotations

import abc
import inspect
import types
from typing import Any, TypeGuard


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_protocol_class(candidate: object) -> bool:
    """Return true when candidate is a ``typing.Protocol`` subclass."""
    return is_runtime_class(candidate) and bool(getattr(candidate, "_is_protocol", False))


def is_capability(candidate: object) -> bool:
    """Return whether candidate names an abstract contract rather than a concrete kind.

    Protocols, abstract base classes with abstract members and classes deriving
    directly from ``abc.ABC`` are capabilities. Dependencies on capabilities
    are matched structurally; dependencies on concrete kinds compare the
    registered kind exactly.

    Args:
        candidate: Dependency target to classify.

    """
    if not is_runtime_class(candidate):
        return False
    if is_protocol_class(candidate):
        return True
    if inspect.isabstract(candidate):
        return True
    return abc.ABC in candidate.__bases__


def type_identifier(target: Any) -> str:
    """Return the stable ``module.qualname`` identifier of a kind or capability."""
    if is_runtime_class(target):
        module = target.__module__
        qualname = target.__qualname__
        if module == "builtins":
            return qualname
        return f"{module}.{qualname}"
    return repr(target)


__all__ = [
    "is_capability",
    "is_protocol_class",
    "is_runtime_class",
    "type_identifier",
]
