__version__ = "0.1.0"

from vesper_sdk.adapters.vesper_adapter import PoolMethods, VesperAdapter
from vesper_sdk.core import (
    BaseAdapter,
    OperationEvents,
    OperationResult,
    from_base_units,
    to_base_units,
)

__all__ = [
    "__version__",
    "BaseAdapter",
    "OperationEvents",
    "OperationResult",
    "PoolMethods",
    "VesperAdapter",
    "from_base_units",
    "to_base_units",
]
