"""Record store: durable tables, TTL cache and coherent mutations."""

from .cache import CacheEntry, ReadThroughGate, TTLCache
from .mutations import MutationCoordinator, MutationResult, MutationStatus
from .registry import TableRegistry
from .settings import StoreSettings, TableSpec
from .table import DurableTable, Record

__all__ = [
    "CacheEntry",
    "DurableTable",
    "MutationCoordinator",
    "MutationResult",
    "MutationStatus",
    "ReadThroughGate",
    "Record",
    "StoreSettings",
    "TTLCache",
    "TableRegistry",
    "TableSpec",
]
