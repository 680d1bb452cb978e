from __future__ import annotations

import types
from typing import Annotated, Any, NamedTuple, Union, get_args, get_origin

_ANNOTATED_MARKER_MIN_ARGS = 2


class Inject(NamedTuple):
    """Declare an object dependency on an annotated field or parameter.

    The annotated type decides what is injected: a class or capability for a
    single object, ``list[T]``/``tuple[T, ...]``/``set[T]`` for every matching
    object, and ``dict[str, T]`` for matching objects keyed by their declared
    name.

    Name matching rules: an empty ``name`` matches only unnamed objects;
    otherwise the exact name, any alias, or (when ``pattern`` is true) a glob
    with ``*`` and ``?`` wildcards.

    Examples:
        .. code-block:: python

            class App:
                repo: Annotated[Repository, Inject()]
                cache: Annotated[Cache, Inject("redis")]
                audit: Annotated[Auditor, Inject(optional=True)]
                handlers: Annotated[list[Handler], Inject("*")]

    """

    name: str = ""
    optional: bool = False
    pattern: bool = True


class Value(NamedTuple):
    """Declare a configuration value read from the container value source.

    ``key`` is a dot-separated path into the merged provider mappings. The
    raw value is coerced into the annotated type.

    Examples:
        .. code-block:: python

            class Server:
                port: Annotated[int, Value("server.port")]
                banner: Annotated[str, Value("server.banner", optional=True)] = ""

    """

    key: str
    optional: bool = False


class Nested(NamedTuple):
    """Flatten the marked fields of a sub-structure into its owner's dependencies."""


Marker = Inject | Value | Nested


def split_annotated(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """Return the inner type and metadata of an ``Annotated`` annotation.

    Non-annotated values are returned unchanged with empty metadata.
    """
    if get_origin(annotation) is not Annotated:
        return annotation, ()
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return annotation, ()  # pragma: no cover - Annotated requires at least 2 args
    return annotation_args[0], annotation_args[1:]


def find_marker(annotation: Any) -> tuple[Any, Marker | None]:
    """Return the inner type and the first iocwire marker attached to annotation."""
    inner, metadata = split_annotated(annotation)
    marker = next(
        (item for item in metadata if isinstance(item, Inject | Value | Nested)),
        None,
    )
    return inner, marker


def strip_optional(annotation: Any) -> tuple[Any, bool]:
    """Return ``(T, True)`` for ``T | None`` or ``Optional[T]``, else ``(annotation, False)``."""
    origin = get_origin(annotation)
    if origin is not Union and origin is not types.UnionType:
        return annotation, False
    members = [member for member in get_args(annotation) if member is not type(None)]
    if len(members) != 1 or len(members) == len(get_args(annotation)):
        return annotation, False
    return members[0], True


__all__ = [
    "Inject",
    "Marker",
    "Nested",
    "Value",
    "find_marker",
    "split_annotated",
    "strip_optional",
]
