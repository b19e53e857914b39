"""Lookup of durable tables by collection name."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Iterator

from ..errors import TableNotFoundError
from .settings import StoreSettings
from .table import DurableTable

logger = logging.getLogger(__name__)


class TableRegistry:
    """Owns one :class:`DurableTable` per configured collection.

    The set of tables is fixed at construction; there is no runtime
    registration.
    """

    def __init__(self, tables: Iterable[DurableTable]) -> None:
        by_name: dict[str, DurableTable] = {}
        for table in tables:
            if table.name in by_name:
                msg = f"Duplicate table name {table.name!r}"
                raise ValueError(msg)
            by_name[table.name] = table
        self._tables = MappingProxyType(by_name)

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "TableRegistry":
        """Build and load every table named in ``settings``.

        A malformed backing file aborts construction with
        :class:`~flat_records.errors.TableParseError`.
        """

        tables = [
            DurableTable(spec, settings.resolve_path(spec), delimiter=settings.delimiter)
            for spec in settings.tables
        ]
        for table in tables:
            table.load()
        logger.info("Registered tables: %s", ", ".join(t.name for t in tables))
        return cls(tables)

    def get(self, name: str) -> DurableTable:
        table = self._tables.get(name)
        if table is None:
            raise TableNotFoundError(name)
        return table

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._tables)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __iter__(self) -> Iterator[DurableTable]:
        return iter(self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)


__all__ = ["TableRegistry"]
