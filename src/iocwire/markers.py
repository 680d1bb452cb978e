from iocwire._internal.markers import Inject, Nested, Value

__all__ = ["Inject", "Nested", "Value"]
