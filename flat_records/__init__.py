"""Flat-file record store with a read-through TTL cache."""

from .errors import (
    IdGenerationError,
    RecordNotFoundError,
    StoreError,
    TableNotFoundError,
    TableParseError,
    TableWriteError,
)

__all__ = [
    "IdGenerationError",
    "RecordNotFoundError",
    "StoreError",
    "TableNotFoundError",
    "TableParseError",
    "TableWriteError",
]
