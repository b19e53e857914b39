"""Error types raised by the record store."""

from __future__ import annotations

from pathlib import Path


class StoreError(RuntimeError):
    """Base class for record store failures."""


class TableNotFoundError(StoreError, LookupError):
    """Raised when a table name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Table '{name}' not found")
        self.name = name


class RecordNotFoundError(StoreError, LookupError):
    """Raised when a mutation targets an id missing from its table."""

    def __init__(self, table: str, record_id: str, *, label: str | None = None) -> None:
        self.table = table
        self.record_id = record_id
        self.label = label or table
        super().__init__(f"{self.label} not found")


class TableParseError(StoreError):
    """Raised when a backing file exists but cannot be parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot parse {path}: {reason}")
        self.path = path


class IdGenerationError(StoreError):
    """Raised when no unused id could be drawn for a new record."""

    def __init__(self, table: str, attempts: int) -> None:
        super().__init__(
            f"Could not generate a unique id for table '{table}' after {attempts} attempts"
        )
        self.table = table


class TableWriteError(StoreError):
    """Raised when a table cannot be persisted to its backing file."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = path


__all__ = [
    "IdGenerationError",
    "RecordNotFoundError",
    "StoreError",
    "TableNotFoundError",
    "TableParseError",
    "TableWriteError",
]
