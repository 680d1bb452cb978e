from __future__ import annotations

import copy
import json
import logging
import threading
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    PydanticSchemaGenerationError,
    TypeAdapter,
    ValidationError,
)

from iocwire._internal.type_checks import type_identifier
from iocwire.exceptions import IocWireCoercionError, IocWireError, IocWireInvalidValueSourceError

if TYPE_CHECKING:
    from iocwire._internal.descriptors import DependencyDescriptor

logger = logging.getLogger(__name__)

_JSON_SUFFIXES = frozenset({".json"})
_YAML_SUFFIXES = frozenset({".yaml", ".yml"})
_UNTYPED_TARGETS: tuple[Any, ...] = (object, Any)


class ValueProvider(Protocol):
    """Supply a (possibly nested) mapping of configuration values."""

    def provide(self) -> Mapping[str, Any]: ...


class MapValueProvider:
    """Provide values from an in-memory mapping."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = values

    def provide(self) -> Mapping[str, Any]:
        return self._values

    def __repr__(self) -> str:
        return f"MapValueProvider(keys={sorted(self._values)!r})"


class FileValueProvider:
    """Provide values from a JSON or YAML file.

    The file is read when the value source first needs it, not when the
    provider is created.

    Args:
        path: File path. ``.json`` is parsed with :mod:`json`; ``.yaml`` and
            ``.yml`` are parsed with PyYAML's safe loader.

    Raises:
        IocWireInvalidValueSourceError: If the suffix is not supported.

    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        suffix = self.path.suffix.lower()
        if suffix not in _JSON_SUFFIXES | _YAML_SUFFIXES:
            msg = (
                f"Unsupported value file format '{self.path.suffix}' for {self.path}. "
                "Use .json, .yaml or .yml."
            )
            raise IocWireInvalidValueSourceError(msg)
        self._suffix = suffix

    def provide(self) -> Mapping[str, Any]:
        try:
            with self.path.open(encoding="utf-8") as file:
                if self._suffix in _YAML_SUFFIXES:
                    data = yaml.safe_load(file)
                else:
                    data = json.load(file)
        except OSError as error:
            msg = f"Cannot read value file {self.path}: {error}"
            raise IocWireInvalidValueSourceError(msg) from error
        except (yaml.YAMLError, json.JSONDecodeError) as error:
            msg = f"Cannot parse value file {self.path}: {error}"
            raise IocWireInvalidValueSourceError(msg) from error

        if data is None:
            return {}
        if not isinstance(data, Mapping):
            msg = (
                f"Value file {self.path} must contain a mapping at the top level, "
                f"got {type(data).__name__}."
            )
            raise IocWireInvalidValueSourceError(msg)
        logger.info("Loaded values from %s", self.path)
        return data

    def __repr__(self) -> str:
        return f"FileValueProvider({str(self.path)!r})"


class SettingsValueProvider:
    """Provide values from a pydantic model or pydantic-settings ``BaseSettings``.

    A model class is instantiated on first use, so ``BaseSettings``
    subclasses read the environment at that point.

    Examples:
        .. code-block:: python

            class AppSettings(BaseSettings):
                model_config = SettingsConfigDict(env_prefix="APP_")

                port: int = 8080


            container.add_value_provider(SettingsValueProvider(AppSettings))

    """

    def __init__(self, settings: BaseModel | type[BaseModel]) -> None:
        self._settings = settings

    def provide(self) -> Mapping[str, Any]:
        settings = self._settings
        if isinstance(settings, type):
            try:
                settings = settings()
            except ValidationError as error:
                msg = f"Cannot load settings {type_identifier(self._settings)}: {error}"
                raise IocWireInvalidValueSourceError(msg) from error
        return settings.model_dump()

    def __repr__(self) -> str:
        return f"SettingsValueProvider({type_identifier(self._settings)})"


class ValueSource:
    """Merge value providers into one keyed configuration view.

    Providers are deep-merged in the order they were added, so the last
    added provider wins on key collision. Values written with
    :meth:`set_value` form an overlay above every provider. Keys are dotted
    paths into the merged mapping; numeric segments index into lists.
    """

    def __init__(self, *providers: ValueProvider) -> None:
        self._lock = threading.Lock()
        self._pending: list[ValueProvider] = list(providers)
        self._merged: dict[str, Any] = {}
        self._overlay: dict[str, Any] = {}
        self._view: dict[str, Any] | None = None

    def add_provider(self, provider: ValueProvider) -> None:
        with self._lock:
            self._pending.append(provider)
            self._view = None

    def set_value(self, key: str, value: Any) -> None:
        """Override key for every later lookup; already built objects keep their values."""
        with self._lock:
            _assign_path(self._overlay, key, value)
            self._view = None

    def get_value(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, True)`` for a known key and ``(None, False)`` otherwise."""
        with self._lock:
            value, found = _lookup(self._current_view(), key)
        if isinstance(value, dict | list):
            value = copy.deepcopy(value)
        return value, found

    def get_typed_value(self, key: str, target: Any) -> tuple[Any, bool]:
        """Return the value under key coerced into target.

        Raises:
            IocWireCoercionError: If the raw value cannot be converted to target.

        """
        value, found = self.get_value(key)
        if not found:
            return None, False
        return coerce_value(key, value, target), True

    def as_dict(self) -> dict[str, Any]:
        """Return a deep copy of the merged configuration including overrides."""
        with self._lock:
            return copy.deepcopy(self._current_view())

    def _current_view(self) -> dict[str, Any]:
        while self._pending:
            provider = self._pending[0]
            try:
                data = provider.provide()
            except IocWireError:
                raise
            except Exception as error:
                msg = f"Value provider {provider!r} failed: {error}"
                raise IocWireInvalidValueSourceError(msg) from error
            _deep_merge(self._merged, data)
            self._pending.pop(0)
            logger.debug("Merged values from %r", provider)

        if self._view is None:
            view = copy.deepcopy(self._merged)
            _deep_merge(view, self._overlay)
            self._view = view
        return self._view


class ValueBridge:
    """Read value dependencies from a value source and coerce them to the declared type."""

    def __init__(self, value_source: ValueSource) -> None:
        self._value_source = value_source

    def resolve(self, dependency: DependencyDescriptor) -> tuple[Any, bool]:
        return self._value_source.get_typed_value(dependency.name_expr, dependency.target)


def coerce_value(key: str, value: Any, target: Any) -> Any:
    """Convert value into target using pydantic lax validation.

    Numbers are accepted for ``str`` targets. Nested targets such as
    dataclasses, pydantic models, ``TypedDict`` and ``list[...]`` are
    validated recursively.

    Raises:
        IocWireCoercionError: If validation fails or target is not supported.

    """
    if target in _UNTYPED_TARGETS:
        return value
    try:
        adapter = _type_adapter(target)
        return adapter.validate_python(value)
    except ValidationError as error:
        msg = f"Cannot convert value '{key}' ({value!r}) to {type_identifier(target)}: {error}"
        raise IocWireCoercionError(msg) from error
    except PydanticSchemaGenerationError as error:
        msg = f"Unsupported value type {type_identifier(target)} for '{key}': {error}"
        raise IocWireCoercionError(msg) from error


def _type_adapter(target: Any) -> TypeAdapter[Any]:
    try:
        hash(target)
    except TypeError:
        return _build_type_adapter(target)
    return _cached_type_adapter(target)


@lru_cache(maxsize=256)
def _cached_type_adapter(target: Any) -> TypeAdapter[Any]:
    return _build_type_adapter(target)


def _build_type_adapter(target: Any) -> TypeAdapter[Any]:
    if target is str:
        return TypeAdapter(str, config=ConfigDict(coerce_numbers_to_str=True))
    return TypeAdapter(target)


def _deep_merge(target: dict[str, Any], source: Mapping[Any, Any]) -> None:
    for raw_key, value in source.items():
        key = str(raw_key)
        if isinstance(value, Mapping):
            existing = target.get(key)
            if not isinstance(existing, dict):
                existing = {}
                target[key] = existing
            _deep_merge(existing, value)
        else:
            target[key] = copy.deepcopy(value)


def _lookup(data: Mapping[str, Any], key: str) -> tuple[Any, bool]:
    if key in data:
        return data[key], True

    current: Any = data
    for part in key.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None, False
    return current, True


def _assign_path(data: dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


__all__ = [
    "FileValueProvider",
    "MapValueProvider",
    "SettingsValueProvider",
    "ValueBridge",
    "ValueProvider",
    "ValueSource",
    "coerce_value",
]
