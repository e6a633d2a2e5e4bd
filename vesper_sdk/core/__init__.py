from vesper_sdk.core.adapters.BaseAdapter import BaseAdapter
from vesper_sdk.core.adapters.models import OperationResult, TransactionOutcome
from vesper_sdk.core.utils.events import OperationEvents
from vesper_sdk.core.utils.units import from_base_units, to_base_units

__all__ = [
    "BaseAdapter",
    "OperationEvents",
    "OperationResult",
    "TransactionOutcome",
    "from_base_units",
    "to_base_units",
]
