from iocwire._internal.values import (
    FileValueProvider,
    MapValueProvider,
    SettingsValueProvider,
    ValueProvider,
    ValueSource,
)

__all__ = [
    "FileValueProvider",
    "MapValueProvider",
    "SettingsValueProvider",
    "ValueProvider",
    "ValueSource",
]
