from iocwire.conditions import ConditionEvaluator, ExpressionConditionEvaluator
from iocwire.container import Container
from iocwire.exceptions import (
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
from iocwire.lock_mode import LockMode
from iocwire.markers import Inject, Nested, Value
from iocwire.values import (
    FileValueProvider,
    MapValueProvider,
    SettingsValueProvider,
    ValueProvider,
    ValueSource,
)

__all__ = [
    "ConditionEvaluator",
    "Container",
    "ExpressionConditionEvaluator",
    "FileValueProvider",
    "Inject",
    "IocWireAmbiguousMapKeyError",
    "IocWireCircularDependencyError",
    "IocWireCoercionError",
    "IocWireConstructorError",
    "IocWireDuplicateRegistrationError",
    "IocWireError",
    "IocWireInitializationFailedError",
    "IocWireInvalidConditionError",
    "IocWireInvalidRegistrationError",
    "IocWireInvalidValueSourceError",
    "IocWireMissingImplementationError",
    "IocWireMissingObjectError",
    "IocWireMissingValueError",
    "IocWireMultipleMatchesError",
    "IocWireNonBooleanConditionError",
    "LockMode",
    "MapValueProvider",
    "Nested",
    "SettingsValueProvider",
    "Value",
    "ValueProvider",
    "ValueSource",
]
