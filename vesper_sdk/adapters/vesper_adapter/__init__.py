from .adapter import VesperAdapter
from .pool import PoolMethods
from .reads import PoolReader
from .registry import ContractRegistry, PoolHandle, ResolvedContracts

__all__ = [
    "ContractRegistry",
    "PoolHandle",
    "PoolMethods",
    "PoolReader",
    "ResolvedContracts",
    "VesperAdapter",
]
