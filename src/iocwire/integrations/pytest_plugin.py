from iocwire._internal.integrations.pytest_plugin import (
    _iocwire_state,
    iocwire_container,
    iocwire_values,
    pytest_pycollect_makeitem,
    pytest_pyfunc_call,
)

__all__ = [
    "_iocwire_state",
    "iocwire_container",
    "iocwire_values",
    "pytest_pycollect_makeitem",
    "pytest_pyfunc_call",
]
